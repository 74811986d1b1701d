import pytest
from sqlalchemy import select

from app.core.security import verify_password
from app.models.roles import Role
from app.models.users import User, UserInvitation
from app.services import invitation_service, registration_service
from app.services.invitation_service import InvitationAlreadyConsumed


def _register_payload(email: str = "test@test.com", **extra) -> dict:
    payload = {
        "name": "Test User",
        "email": email,
        "password": "password",
        "password_confirmation": "password",
    }
    payload.update(extra)
    return payload


def _invite(client, company, segment: str, email: str, sent_invites) -> str:
    response = client.post(f"/companies/{company.id}/{segment}", json={"email": email})
    assert response.status_code == 201
    return sent_invites[-1]["link"].rsplit("/", 1)[1]


def test_new_users_can_register(client, db_session):
    response = client.post("/register", json=_register_payload())

    assert response.status_code == 201
    assert "access_token" in response.cookies

    me = client.get("/me")
    assert me.status_code == 200
    assert me.json()["email"] == "test@test.com"
    assert me.json()["role_id"] == Role.CUSTOMER.value
    assert me.json()["company_id"] is None

    user = db_session.execute(select(User)).scalar_one()
    assert verify_password("password", user.password_hash)


def test_tokenless_registration_ignores_requested_role_and_company(
    client, make_company, db_session
):
    company = make_company()

    response = client.post(
        "/register",
        json=_register_payload(
            role_id=Role.ADMINISTRATOR.value, company_id=company.id
        ),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["role_id"] == Role.CUSTOMER.value
    assert body["company_id"] is None


def test_registration_rejects_password_mismatch(client):
    response = client.post(
        "/register", json=_register_payload(password_confirmation="different")
    )

    assert response.status_code == 422


def test_registration_rejects_taken_email(client, make_user):
    make_user(Role.CUSTOMER, email="test@test.com")

    response = client.post("/register", json=_register_payload())

    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "email"]


@pytest.mark.parametrize(
    ("segment", "role"),
    [("users", Role.COMPANY_OWNER), ("guides", Role.GUIDE)],
)
def test_user_can_register_with_token_for_invited_role(
    act_as, make_company, make_user, db_session, sent_invites, segment, role
):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)
    client = act_as(owner)
    raw_token = _invite(client, company, segment, "test@test.com", sent_invites)
    client.cookies.clear()

    response = client.post(
        "/register", json=_register_payload(invitation_token=raw_token)
    )

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "test@test.com"
    assert body["company_id"] == company.id
    assert body["role_id"] == role.value
    assert "access_token" in response.cookies

    db_session.expire_all()
    invitation = db_session.execute(select(UserInvitation)).scalar_one()
    assert invitation.registered_at is not None


def test_invitation_link_stores_token_for_registration(
    act_as, make_company, make_user, db_session, sent_invites
):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)
    client = act_as(owner)
    raw_token = _invite(client, company, "guides", "guide@x.com", sent_invites)
    client.cookies.clear()

    opened = client.get(f"/invitation/{raw_token}", follow_redirects=False)

    assert opened.status_code == 303
    assert opened.headers["location"] == "/register"
    assert opened.cookies["invitation_token"] == raw_token

    response = client.post("/register", json=_register_payload(email="guide@x.com"))

    assert response.status_code == 201
    assert response.json()["role_id"] == Role.GUIDE.value
    assert response.json()["company_id"] == company.id


def test_unknown_invitation_link_is_not_found(client):
    response = client.get("/invitation/does-not-exist", follow_redirects=False)

    assert response.status_code == 404


def test_verify_invitation_describes_pending_invite(
    act_as, make_company, make_user, sent_invites
):
    company = make_company(name="Mountain Guides")
    owner = make_user(Role.COMPANY_OWNER, company)
    client = act_as(owner)
    raw_token = _invite(client, company, "guides", "g@x.com", sent_invites)

    response = client.post("/invitations/verify", json={"token": raw_token})
    unknown = client.post("/invitations/verify", json={"token": "nope"})

    assert response.status_code == 200
    assert response.json() == {
        "email": "g@x.com",
        "company_name": "Mountain Guides",
        "role_id": Role.GUIDE.value,
    }
    assert unknown.status_code == 400


def test_invited_email_wins_over_supplied_email(
    act_as, make_company, make_user, sent_invites
):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)
    client = act_as(owner)
    raw_token = _invite(client, company, "guides", "invited@x.com", sent_invites)
    client.cookies.clear()

    response = client.post(
        "/register",
        json=_register_payload(email="other@x.com", invitation_token=raw_token),
    )

    assert response.status_code == 201
    assert response.json()["email"] == "invited@x.com"


def test_consumed_token_falls_back_to_customer(
    act_as, make_company, make_user, sent_invites
):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)
    client = act_as(owner)
    raw_token = _invite(client, company, "guides", "first@x.com", sent_invites)
    client.cookies.clear()

    first = client.post(
        "/register",
        json=_register_payload(email="first@x.com", invitation_token=raw_token),
    )
    client.cookies.clear()
    second = client.post(
        "/register",
        json=_register_payload(email="second@x.com", invitation_token=raw_token),
    )

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.json()["email"] == "second@x.com"
    assert second.json()["role_id"] == Role.CUSTOMER.value
    assert second.json()["company_id"] is None


def test_invalid_token_falls_back_to_customer(client):
    response = client.post(
        "/register", json=_register_payload(invitation_token="made-up-token")
    )

    assert response.status_code == 201
    assert response.json()["role_id"] == Role.CUSTOMER.value


def test_invitation_cannot_be_consumed_twice(db_session, make_company, make_user):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)
    invitation, _ = invitation_service.issue_invitation(
        db_session, issuer=owner, company=company, role=Role.GUIDE, email="g@x.com"
    )

    invitation_service.consume_invitation(db_session, invitation)
    db_session.commit()

    with pytest.raises(InvitationAlreadyConsumed):
        invitation_service.consume_invitation(db_session, invitation)


def test_guide_invitation_full_lifecycle(
    act_as, make_company, make_user, db_session, sent_invites
):
    c1 = make_company()
    o1 = make_user(Role.COMPANY_OWNER, c1)
    admin = make_user(Role.ADMINISTRATOR)
    client = act_as(o1)

    raw_token = _invite(client, c1, "guides", "g@x.com", sent_invites)
    db_session.expire_all()
    pending = db_session.execute(select(UserInvitation)).scalar_one()
    assert pending.company_id == c1.id
    assert pending.role is Role.GUIDE
    assert pending.registered_at is None

    again = act_as(admin).post(f"/companies/{c1.id}/users", json={"email": "g@x.com"})
    assert again.status_code == 422

    client.cookies.clear()
    registered = client.post(
        "/register", json=_register_payload(email="g@x.com", invitation_token=raw_token)
    )
    assert registered.status_code == 201

    db_session.expire_all()
    user = db_session.execute(select(User).where(User.email == "g@x.com")).scalar_one()
    assert user.company_id == c1.id
    assert user.role is Role.GUIDE
    consumed = db_session.get(UserInvitation, pending.id)
    assert consumed.registered_at is not None

    client.cookies.clear()
    reinvite = act_as(o1).post(f"/companies/{c1.id}/guides", json={"email": "g@x.com"})
    assert reinvite.status_code == 201


def test_registration_rejects_short_password(client, db_session):
    response = client.post(
        "/register",
        json=_register_payload(password="short", password_confirmation="short"),
    )

    assert response.status_code == 422
    assert db_session.execute(select(User)).first() is None


def test_tokenless_registration_refuses_email_with_pending_invitation(
    act_as, make_company, make_user, db_session, sent_invites
):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)
    client = act_as(owner)
    raw_token = _invite(client, company, "guides", "g@x.com", sent_invites)
    client.cookies.clear()

    plain = client.post("/register", json=_register_payload(email="g@x.com"))

    assert plain.status_code == 422
    assert plain.json()["detail"][0]["loc"] == ["body", "email"]
    assert (
        db_session.execute(select(User).where(User.email == "g@x.com")).first()
        is None
    )

    invited = client.post(
        "/register", json=_register_payload(email="g@x.com", invitation_token=raw_token)
    )

    assert invited.status_code == 201
    assert invited.json()["role_id"] == Role.GUIDE.value
    assert invited.json()["company_id"] == company.id


def test_concurrently_consumed_invitation_rolls_back_registration(
    act_as, make_company, make_user, db_session, sent_invites, monkeypatch
):
    company = make_company()
    owner = make_user(Role.COMPANY_OWNER, company)
    client = act_as(owner)
    raw_token = _invite(client, company, "guides", "g@x.com", sent_invites)
    client.cookies.clear()

    def consumed_elsewhere(db, invitation):
        raise InvitationAlreadyConsumed(invitation.id)

    monkeypatch.setattr(registration_service, "consume_invitation", consumed_elsewhere)

    response = client.post(
        "/register", json=_register_payload(email="g@x.com", invitation_token=raw_token)
    )

    assert response.status_code == 409
    db_session.expire_all()
    assert (
        db_session.execute(select(User).where(User.email == "g@x.com")).first()
        is None
    )
    invitation = db_session.execute(select(UserInvitation)).scalar_one()
    assert invitation.registered_at is None
