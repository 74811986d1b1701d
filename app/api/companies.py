from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.core.database import get_db
from app.models.companies import Company
from app.schemas.companies import CompanyCreate, CompanyOut, CompanyUpdate
from app.services import company_service

router = APIRouter(
    prefix="/companies",
    tags=["companies"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=list[CompanyOut])
def list_companies(db: Session = Depends(get_db)) -> list[Company]:
    return company_service.list_companies(db)


@router.post("", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
def create_company(payload: CompanyCreate, db: Session = Depends(get_db)) -> Company:
    return company_service.create_company(db, payload.name)


@router.get("/{company_id}", response_model=CompanyOut)
def get_company(company_id: int, db: Session = Depends(get_db)) -> Company:
    return company_service.get_company(db, company_id)


@router.put("/{company_id}", response_model=CompanyOut)
def update_company(
    company_id: int,
    payload: CompanyUpdate,
    db: Session = Depends(get_db),
) -> Company:
    company = company_service.get_company(db, company_id)
    return company_service.rename_company(db, company, payload.name)
