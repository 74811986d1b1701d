import logging
from datetime import UTC, datetime

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.core.config import get_settings
from app.core.errors import field_error
from app.core.security import generate_raw_token, hash_token
from app.models.companies import Company
from app.models.roles import Role
from app.models.users import User, UserInvitation

logger = logging.getLogger(__name__)

PENDING_INVITATION_MESSAGE = "Invitation with this email address already requested."


class InvitationAlreadyConsumed(Exception):
    """Raised when an invitation was consumed by someone else in the meantime."""


def normalize_email(value: str) -> str:
    return value.strip().lower()


def _ensure_unique_token_hash(db: Session, raw_token: str) -> tuple[str, str]:
    token_hash = hash_token(raw_token)
    exists = db.execute(
        select(UserInvitation.id).where(UserInvitation.token_hash == token_hash)
    ).first()
    if exists:
        return _ensure_unique_token_hash(db, generate_raw_token(32))
    return raw_token, token_hash


def has_pending_invitation(db: Session, email: str) -> bool:
    stmt = (
        select(UserInvitation.id)
        .where(UserInvitation.email == normalize_email(email))
        .where(UserInvitation.registered_at.is_(None))
        .limit(1)
    )
    return db.execute(stmt).first() is not None


def issue_invitation(
    db: Session,
    *,
    issuer: User,
    company: Company,
    role: Role,
    email: str,
) -> tuple[UserInvitation, str]:
    email = normalize_email(email)
    if has_pending_invitation(db, email):
        raise field_error("email", PENDING_INVITATION_MESSAGE)

    raw_token, token_hash = _ensure_unique_token_hash(db, generate_raw_token(32))
    invitation = UserInvitation(
        email=email,
        company_id=company.id,
        role_id=int(role),
        token_hash=token_hash,
        invited_by_id=issuer.id,
    )
    db.add(invitation)
    try:
        db.commit()
    except IntegrityError as exc:
        # a concurrent request inserted a pending invitation for the same email
        db.rollback()
        raise field_error("email", PENDING_INVITATION_MESSAGE) from exc
    db.refresh(invitation)

    logger.info(
        "Invitation %s issued: email=%s company_id=%s role=%s invited_by=%s",
        invitation.id,
        email,
        company.id,
        role.name,
        issuer.id,
    )
    return invitation, raw_token


def get_pending_invitation(db: Session, raw_token: str | None) -> UserInvitation | None:
    if not raw_token:
        return None
    return db.execute(
        select(UserInvitation).where(
            UserInvitation.token_hash == hash_token(raw_token),
            UserInvitation.registered_at.is_(None),
        )
    ).scalar_one_or_none()


def consume_invitation(db: Session, invitation: UserInvitation) -> None:
    """Mark ``invitation`` as registered inside the caller's transaction.

    The update is conditional on the invitation still being pending, so two
    registrations racing for the same token cannot both succeed.
    """
    now = datetime.now(UTC)
    result = db.execute(
        update(UserInvitation)
        .where(
            UserInvitation.id == invitation.id,
            UserInvitation.registered_at.is_(None),
        )
        .values(registered_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvitationAlreadyConsumed(invitation.id)
    set_committed_value(invitation, "registered_at", now)


def require_invite_base_url() -> str:
    base_url = get_settings().invite_base_url
    if not base_url:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Invitation service is not configured",
        )
    return base_url.rstrip("/")


def build_invitation_link(base_url: str, raw_token: str) -> str:
    return f"{base_url}/{raw_token}"
