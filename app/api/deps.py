import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.models.companies import Company
from app.models.roles import Role
from app.models.users import User
from app.services import company_service, user_service
from app.services.authorization_service import (
    CompanyAction,
    ensure_authorized,
    log_access_denied,
)


def _extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    scheme, _, param = auth_header.strip().partition(" ")
    if scheme.lower() != "bearer" or not param:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )
    return param.strip()


def _authenticate_token(
    raw_token: str,
    db: Session,
    settings: Settings,
) -> User:
    try:
        payload = jwt.decode(
            raw_token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algo],
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    user = user_service.find_user(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    last_error: HTTPException | None = None

    header_token = _extract_bearer_token(request)
    if header_token:
        try:
            return _authenticate_token(header_token, db, settings)
        except HTTPException as exc:
            last_error = exc

    cookie_token = request.cookies.get("access_token")
    if cookie_token:
        try:
            return _authenticate_token(cookie_token, db, settings)
        except HTTPException as exc:
            last_error = exc

    if last_error:
        raise last_error

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )


def require_admin(
    request: Request, user: User = Depends(get_current_user)
) -> User:
    if user.role is not Role.ADMINISTRATOR:
        log_access_denied(
            reason="admin_required",
            actor=user,
            company_id=None,
            request=request,
        )
        raise HTTPException(status_code=403, detail="The user is not an administrator")
    return user


class CompanyAccess:
    """Authorize the current user for ``action`` on the company in the path.

    The decision is made before the company is loaded, so a foreign company id
    is answered with 403 whether or not that company exists.
    """

    def __init__(self, action: CompanyAction):
        self.action = action

    def __call__(
        self,
        company_id: int,
        request: Request,
        db: Session = Depends(get_db),
        user: User = Depends(get_current_user),
    ) -> Company:
        ensure_authorized(
            actor=user,
            action=self.action,
            company_id=company_id,
            request=request,
        )
        return company_service.get_company(db, company_id)


can_view_company = CompanyAccess(CompanyAction.VIEW_ANY)
can_create_in_company = CompanyAccess(CompanyAction.CREATE)
can_update_in_company = CompanyAccess(CompanyAction.UPDATE)
can_delete_in_company = CompanyAccess(CompanyAction.DELETE)
