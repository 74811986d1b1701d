import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.security import hash_password
from app.models.roles import Role
from app.models.users import User
from app.services.invitation_service import normalize_email

logger = logging.getLogger(__name__)


def _has_administrator(db: Session) -> bool:
    stmt = select(User.id).where(User.role_id == int(Role.ADMINISTRATOR)).limit(1)
    return db.execute(stmt).first() is not None


def ensure_admin_user(db: Session, email: str, password: str) -> User | None:
    """Create the first administrator unless one already exists."""
    if _has_administrator(db):
        return None

    admin = User(
        name="Administrator",
        email=normalize_email(email),
        password_hash=hash_password(password),
        role_id=int(Role.ADMINISTRATOR),
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Bootstrap administrator %s created", admin.email)
    return admin


def run_admin_bootstrap() -> bool:
    settings = get_settings()
    if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
        return False

    db = SessionLocal()
    try:
        created = ensure_admin_user(
            db,
            settings.bootstrap_admin_email,
            settings.bootstrap_admin_password,
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Administrator bootstrap failed")
        return False
    finally:
        db.close()

    return created is not None
