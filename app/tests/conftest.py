import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("INVITE_BASE_URL", "https://frontend.local/invitation")

from collections.abc import Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import StaticPool, create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.api import company_members  # noqa: E402
from app.core.database import Base, get_db  # noqa: E402
from app.core.security import create_access, hash_password  # noqa: E402
from app.core.storage import LocalImageStorage, get_image_storage  # noqa: E402
from app.main import app  # noqa: E402
from app.models.companies import Company  # noqa: E402
from app.models.roles import Role  # noqa: E402
from app.models.users import User  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session]:
    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, expire_on_commit=False, future=True
    )
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def image_storage(tmp_path) -> LocalImageStorage:
    return LocalImageStorage(tmp_path / "media")


@pytest.fixture
def client(db_session, image_storage) -> Generator[TestClient]:
    # Override FastAPI's get_db to use our testing session
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_image_storage] = lambda: image_storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def sent_invites(monkeypatch) -> list[dict]:
    captured: list[dict] = []

    def fake_send(to_email: str, link: str, company_name: str, role: Role) -> None:
        captured.append(
            {
                "to_email": to_email,
                "link": link,
                "company_name": company_name,
                "role": role,
            }
        )

    monkeypatch.setattr(company_members, "send_registration_invite", fake_send)
    return captured


@pytest.fixture
def make_company(db_session) -> Callable[..., Company]:
    counter = {"n": 0}

    def _make(name: str | None = None) -> Company:
        counter["n"] += 1
        company = Company(name=name or f"Company {counter['n']}")
        db_session.add(company)
        db_session.commit()
        db_session.refresh(company)
        return company

    return _make


@pytest.fixture
def make_user(db_session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(
        role: Role = Role.CUSTOMER,
        company: Company | None = None,
        email: str | None = None,
        name: str | None = None,
        password: str | None = None,
    ) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"{role.label} {counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password) if password else None,
            role_id=int(role),
            company_id=company.id if company else None,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def act_as(client) -> Callable[[User], TestClient]:
    def _act_as(user: User) -> TestClient:
        token = create_access(str(user.id), user.role_id)
        client.cookies.set("access_token", token, path="/")
        return client

    return _act_as
