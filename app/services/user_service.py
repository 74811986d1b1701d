import logging
from datetime import UTC, datetime

from fastapi import HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import field_error
from app.models.roles import Role
from app.models.users import User
from app.schemas.users import UserUpdate
from app.services.authorization_service import ensure_same_company
from app.services.invitation_service import normalize_email

logger = logging.getLogger(__name__)

EMAIL_TAKEN_MESSAGE = "The email has already been taken."


def find_user(db: Session, user_id: int, *, with_deleted: bool = False) -> User | None:
    stmt = select(User).where(User.id == user_id)
    if not with_deleted:
        stmt = stmt.where(User.deleted_at.is_(None))
    return db.execute(stmt).scalar_one_or_none()


def find_user_by_email(
    db: Session, email: str, *, with_deleted: bool = False
) -> User | None:
    stmt = select(User).where(User.email == normalize_email(email))
    if not with_deleted:
        stmt = stmt.where(User.deleted_at.is_(None))
    return db.execute(stmt).scalar_one_or_none()


def email_taken(db: Session, email: str, *, exclude_user_id: int | None = None) -> bool:
    # soft-deleted rows still hold the unique email
    stmt = select(User.id).where(User.email == normalize_email(email))
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    return db.execute(stmt.limit(1)).first() is not None


def list_company_users(db: Session, company_id: int, role: Role) -> list[User]:
    stmt = (
        select(User)
        .where(
            User.company_id == company_id,
            User.role_id == int(role),
            User.deleted_at.is_(None),
        )
        .order_by(User.id)
    )
    return list(db.execute(stmt).scalars())


def get_company_member(
    db: Session,
    *,
    actor: User,
    company_id: int,
    user_id: int,
    role: Role,
    request: Request | None = None,
) -> User:
    """Resolve a user nested under a company URL.

    A user that belongs to another company is reported as forbidden, so that
    the existence of other tenants' users is not leaked as "not found".
    """
    user = find_user(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    ensure_same_company(
        actor=actor,
        company_id=company_id,
        resource_company_id=user.company_id,
        request=request,
    )

    if user.role_id != int(role):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def update_user(db: Session, user: User, payload: UserUpdate) -> User:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in changes:
        changes["email"] = normalize_email(changes["email"])
        if email_taken(db, changes["email"], exclude_user_id=user.id):
            raise field_error("email", EMAIL_TAKEN_MESSAGE)
    if "name" in changes:
        changes["name"] = changes["name"].strip()

    for field, value in changes.items():
        setattr(user, field, value)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise field_error("email", EMAIL_TAKEN_MESSAGE) from exc
    db.refresh(user)
    return user


def soft_delete_user(db: Session, user: User) -> None:
    user.deleted_at = datetime.now(UTC)
    db.commit()
    logger.info("User %s soft-deleted from company %s", user.id, user.company_id)
