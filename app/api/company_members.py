from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.api.deps import (
    can_create_in_company,
    can_delete_in_company,
    can_update_in_company,
    can_view_company,
    get_current_user,
)
from app.core.database import get_db
from app.models.companies import Company
from app.models.roles import Role
from app.models.users import User
from app.schemas.users import InvitationOut, InviteIn, UserOut, UserUpdate
from app.services import invitation_service, user_service
from app.services.email_service import send_registration_invite


def build_member_router(segment: str, role: Role, tag: str) -> APIRouter:
    """Routes managing the company's staff accounts that hold ``role``.

    New members are never created directly: ``POST`` issues an invitation and
    the account appears once the invitee registers with its token.
    """
    router = APIRouter(prefix=f"/companies/{{company_id}}/{segment}", tags=[tag])

    @router.get("", response_model=list[UserOut])
    def list_members(
        company: Company = Depends(can_view_company),
        db: Session = Depends(get_db),
    ) -> list[User]:
        return user_service.list_company_users(db, company.id, role)

    @router.post("", response_model=InvitationOut, status_code=status.HTTP_201_CREATED)
    def invite_member(
        payload: InviteIn,
        bg: BackgroundTasks,
        company: Company = Depends(can_create_in_company),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
    ):
        base_url = invitation_service.require_invite_base_url()
        invitation, raw_token = invitation_service.issue_invitation(
            db,
            issuer=current_user,
            company=company,
            role=role,
            email=payload.email,
        )
        link = invitation_service.build_invitation_link(base_url, raw_token)
        bg.add_task(send_registration_invite, invitation.email, link, company.name, role)
        return invitation

    @router.get("/{user_id}", response_model=UserOut)
    def get_member(
        user_id: int,
        request: Request,
        company: Company = Depends(can_update_in_company),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
    ) -> User:
        return user_service.get_company_member(
            db,
            actor=current_user,
            company_id=company.id,
            user_id=user_id,
            role=role,
            request=request,
        )

    @router.put("/{user_id}", response_model=UserOut)
    def update_member(
        user_id: int,
        payload: UserUpdate,
        request: Request,
        company: Company = Depends(can_update_in_company),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
    ) -> User:
        member = user_service.get_company_member(
            db,
            actor=current_user,
            company_id=company.id,
            user_id=user_id,
            role=role,
            request=request,
        )
        return user_service.update_user(db, member, payload)

    @router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_member(
        user_id: int,
        request: Request,
        company: Company = Depends(can_delete_in_company),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
    ) -> Response:
        member = user_service.get_company_member(
            db,
            actor=current_user,
            company_id=company.id,
            user_id=user_id,
            role=role,
            request=request,
        )
        user_service.soft_delete_user(db, member)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


owners_router = build_member_router("users", Role.COMPANY_OWNER, "company-owners")
guides_router = build_member_router("guides", Role.GUIDE, "company-guides")
