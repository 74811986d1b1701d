import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import field_error
from app.core.security import hash_password
from app.models.roles import Role
from app.models.users import User
from app.schemas.users import RegisterIn
from app.services.invitation_service import (
    InvitationAlreadyConsumed,
    consume_invitation,
    get_pending_invitation,
    has_pending_invitation,
    normalize_email,
)
from app.services.user_service import EMAIL_TAKEN_MESSAGE, email_taken

logger = logging.getLogger(__name__)

INVITATION_PENDING_MESSAGE = (
    "An invitation is pending for this email; register through the invitation link."
)


def register_user(db: Session, payload: RegisterIn, pending_token: str | None) -> User:
    """Create an account, binding it to a pending invitation when one is given.

    With a pending invitation the email, company and role come from the
    invitation and the invitation is consumed in the same transaction as the
    user insert. Otherwise the account is a plain customer; role and company
    supplied by the client are ignored, and an email with a pending invitation
    is refused.
    """
    invitation = get_pending_invitation(db, pending_token)
    if pending_token and invitation is None:
        logger.info("Registration with an unknown or already used invitation token")

    if invitation:
        email = invitation.email
        role = invitation.role
        company_id: int | None = invitation.company_id
        if normalize_email(payload.email) != email:
            logger.info(
                "Registration email %s replaced by invited email %s",
                payload.email,
                email,
            )
    else:
        email = normalize_email(payload.email)
        role = Role.CUSTOMER
        company_id = None
        if payload.role_id not in (None, int(Role.CUSTOMER)) or payload.company_id:
            logger.info(
                "Ignoring client supplied role_id=%s company_id=%s for %s",
                payload.role_id,
                payload.company_id,
                email,
            )
        # An account on this email would leave its invitation unconsumable.
        if has_pending_invitation(db, email):
            raise field_error("email", INVITATION_PENDING_MESSAGE)

    if email_taken(db, email):
        raise field_error("email", EMAIL_TAKEN_MESSAGE)

    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password.get_secret_value()),
        role_id=int(role),
        company_id=company_id,
    )
    db.add(user)
    try:
        db.flush()
        if invitation:
            consume_invitation(db, invitation)
        db.commit()
    except InvitationAlreadyConsumed as exc:
        db.rollback()
        logger.error(
            "Invitation %s was consumed concurrently, registration of %s aborted",
            exc.args[0],
            email,
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invitation has already been used",
        ) from exc
    except IntegrityError as exc:
        db.rollback()
        raise field_error("email", EMAIL_TAKEN_MESSAGE) from exc

    db.refresh(user)
    logger.info(
        "User %s registered: role=%s company_id=%s invitation=%s",
        user.id,
        role.name,
        company_id,
        invitation.id if invitation else None,
    )
    return user
