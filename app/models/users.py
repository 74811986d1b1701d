import datetime

from sqlalchemy import DateTime, ForeignKey, Index, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.roles import Role


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    name: Mapped[str]
    email: Mapped[str] = mapped_column(unique=True)
    password_hash: Mapped[str | None] = mapped_column(default=None, repr=False)
    role_id: Mapped[int] = mapped_column(default=int(Role.CUSTOMER), index=True)
    company_id: Mapped[int | None] = mapped_column(
        ForeignKey("companies.id"), default=None, index=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )
    deleted_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    @property
    def role(self) -> Role:
        return Role(self.role_id)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class UserInvitation(Base):
    __tablename__ = "user_invitations"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    email: Mapped[str] = mapped_column(index=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    role_id: Mapped[int]
    token_hash: Mapped[str] = mapped_column(unique=True, repr=False)
    invited_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), default=None
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )
    registered_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    __table_args__ = (
        # at most one pending invitation per email address
        Index(
            "uq_user_invitations_pending_email",
            "email",
            unique=True,
            sqlite_where=text("registered_at IS NULL"),
            postgresql_where=text("registered_at IS NULL"),
        ),
    )

    @property
    def role(self) -> Role:
        return Role(self.role_id)

    @property
    def is_pending(self) -> bool:
        return self.registered_at is None
