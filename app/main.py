import logging
import sys

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.api import activities, companies, company_members
from app.api.deps import get_current_user
from app.core.config import get_settings, lifespan
from app.core.database import engine, get_db, ping_database
from app.core.security import create_access, verify_password
from app.models import Base, User
from app.schemas.users import (
    InvitationVerifyIn,
    InvitationVerifyOut,
    LoginIn,
    RegisterIn,
    UserOut,
)
from app.services import company_service, invitation_service, registration_service
from app.services.user_service import find_user_by_email

root = logging.getLogger()
if not root.handlers:  # don't double-add in reloads
    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(h)

root.setLevel(logging.INFO)

settings = get_settings()
INVITATION_COOKIE = "invitation_token"
INVITATION_COOKIE_MAX_AGE = 60 * 60 * 24

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Reservations API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(companies.router)
app.include_router(company_members.owners_router)
app.include_router(company_members.guides_router)
app.include_router(activities.router)


def _set_access_cookie(resp: JSONResponse, user: User) -> None:
    access = create_access(str(user.id), user.role_id)
    resp.headers["Cache-Control"] = "no-store"
    resp.set_cookie(
        key="access_token",
        value=access,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=settings.access_min * 60,
        path="/",
    )


@app.post("/register", response_model=UserOut, status_code=201)
def register(payload: RegisterIn, request: Request, db: Session = Depends(get_db)):
    if payload.invitation_token is not None:
        pending_token = payload.invitation_token.get_secret_value()
    else:
        pending_token = request.cookies.get(INVITATION_COOKIE)

    user = registration_service.register_user(db, payload, pending_token)

    resp = JSONResponse(
        UserOut.model_validate(user).model_dump(mode="json"),
        status_code=status.HTTP_201_CREATED,
    )
    _set_access_cookie(resp, user)
    resp.delete_cookie(key=INVITATION_COOKIE, path="/")
    return resp


@app.get("/invitation/{token}")
def open_invitation(token: str, db: Session = Depends(get_db)):
    inv = invitation_service.get_pending_invitation(db, token)
    if not inv:
        raise HTTPException(status_code=404, detail="Invalid or used invitation")

    resp = RedirectResponse(url=settings.frontend_register_url, status_code=303)
    resp.set_cookie(
        key=INVITATION_COOKIE,
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=INVITATION_COOKIE_MAX_AGE,
        path="/",
    )
    return resp


@app.post("/invitations/verify", response_model=InvitationVerifyOut)
def verify_invitation(body: InvitationVerifyIn, db: Session = Depends(get_db)):
    inv = invitation_service.get_pending_invitation(db, body.token.get_secret_value())
    if not inv:
        raise HTTPException(status_code=400, detail="Invalid or used invitation")
    company = company_service.get_company(db, inv.company_id)
    return {"email": inv.email, "company_name": company.name, "role_id": inv.role_id}


@app.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = find_user_by_email(db, payload.email)
    if (
        not user
        or not user.password_hash
        or not verify_password(payload.password, user.password_hash)
    ):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    resp = JSONResponse({"message": "ok"})
    _set_access_cookie(resp, user)
    return resp


@app.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)


@app.post("/logout")
def logout():
    resp = JSONResponse({"message": "ok"})
    resp.headers["Cache-Control"] = "no-store"

    resp.delete_cookie(
        key="access_token",
        path="/",
    )

    return resp


@app.get("/health", tags=["health"])
def health_check():
    """Report service status and confirm database connectivity."""
    database_status = "ok" if ping_database() else "error"
    return {
        "status": "ok",
        "database": database_status,
    }
