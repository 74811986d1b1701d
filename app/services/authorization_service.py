import logging
from enum import StrEnum

from fastapi import HTTPException, Request, status

from app.models.roles import TENANT_ROLES, Role
from app.models.users import User

logger = logging.getLogger(__name__)


class CompanyAction(StrEnum):
    VIEW_ANY = "viewAny"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def authorize(actor: User, action: CompanyAction, company_id: int) -> bool:
    """Decide whether ``actor`` may perform ``action`` on resources of a company.

    Administrators may act on any company. Company owners and guides may act
    only inside the company they belong to. Everyone else is denied.
    """
    role = actor.role
    if role is Role.ADMINISTRATOR:
        return True
    if role in TENANT_ROLES:
        return actor.company_id is not None and int(actor.company_id) == int(company_id)
    return False


def log_access_denied(
    *,
    reason: str,
    actor: User,
    company_id: int | None,
    request: Request | None,
) -> None:
    endpoint = f"{request.method} {request.url.path}" if request else None
    logger.warning(
        "Access denied (%s): user_id=%s user_role=%s user_company=%s company_id=%s endpoint=%s",
        reason,
        getattr(actor, "id", None),
        getattr(actor, "role_id", None),
        getattr(actor, "company_id", None),
        company_id,
        endpoint,
    )


def ensure_authorized(
    *,
    actor: User,
    action: CompanyAction,
    company_id: int,
    request: Request | None = None,
) -> None:
    if not authorize(actor, action, company_id):
        log_access_denied(
            reason=f"{action}_denied",
            actor=actor,
            company_id=company_id,
            request=request,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def ensure_same_company(
    *,
    actor: User,
    company_id: int,
    resource_company_id: int | None,
    request: Request | None = None,
) -> None:
    """Reject targets that live in a different company than the one in the URL."""
    if resource_company_id is None or int(resource_company_id) != int(company_id):
        log_access_denied(
            reason="resource_outside_company",
            actor=actor,
            company_id=company_id,
            request=request,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
