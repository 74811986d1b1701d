import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.core.security import hash_token
from app.models.roles import Role
from app.models.users import UserInvitation
from app.services import invitation_service


def test_issue_invitation_stores_only_token_hash(db_session, make_company, make_user):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)

    invitation, raw_token = invitation_service.issue_invitation(
        db_session, issuer=owner, company=company, role=Role.GUIDE, email=" G@X.com "
    )

    assert invitation.email == "g@x.com"
    assert invitation.token_hash == hash_token(raw_token)
    assert invitation.token_hash != raw_token
    assert invitation.is_pending
    assert invitation_service.get_pending_invitation(db_session, raw_token) is invitation


def test_pending_index_rejects_concurrent_duplicate(
    db_session, make_company, make_user, monkeypatch
):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)
    invitation_service.issue_invitation(
        db_session, issuer=owner, company=company, role=Role.GUIDE, email="g@x.com"
    )
    # simulate a request that passed the pending check before the first insert
    monkeypatch.setattr(
        invitation_service, "has_pending_invitation", lambda db, email: False
    )

    with pytest.raises(HTTPException) as exc:
        invitation_service.issue_invitation(
            db_session,
            issuer=owner,
            company=company,
            role=Role.COMPANY_OWNER,
            email="g@x.com",
        )

    assert exc.value.status_code == 422
    assert exc.value.detail[0]["loc"] == ["body", "email"]
    rows = db_session.execute(select(UserInvitation)).scalars().all()
    assert len(rows) == 1


def test_consumed_invitation_is_no_longer_pending(db_session, make_company, make_user):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)
    invitation, raw_token = invitation_service.issue_invitation(
        db_session, issuer=owner, company=company, role=Role.GUIDE, email="g@x.com"
    )

    invitation_service.consume_invitation(db_session, invitation)
    db_session.commit()

    assert invitation.registered_at is not None
    assert invitation_service.get_pending_invitation(db_session, raw_token) is None
    assert not invitation_service.has_pending_invitation(db_session, "g@x.com")


def test_invite_requires_configured_base_url(
    act_as, make_company, make_user, db_session, sent_invites, monkeypatch
):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)
    monkeypatch.setattr(
        invitation_service.get_settings(), "invite_base_url", None
    )

    response = act_as(owner).post(
        f"/companies/{company.id}/guides", json={"email": "g@x.com"}
    )

    assert response.status_code == 500
    assert db_session.execute(select(UserInvitation)).first() is None
    assert sent_invites == []
