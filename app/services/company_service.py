from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.companies import Company


def list_companies(db: Session) -> list[Company]:
    return list(db.execute(select(Company).order_by(Company.id)).scalars())


def get_company(db: Session, company_id: int) -> Company:
    company = db.get(Company, company_id)
    if not company:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Company not found"
        )
    return company


def create_company(db: Session, name: str) -> Company:
    company = Company(name=name.strip())
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def rename_company(db: Session, company: Company, name: str) -> Company:
    company.name = name.strip()
    db.commit()
    db.refresh(company)
    return company
