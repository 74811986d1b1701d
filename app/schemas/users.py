from datetime import datetime

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)

from app.models.roles import TENANT_ROLES, Role


class InviteIn(BaseModel):
    email: EmailStr


class InvitationOut(BaseModel):
    id: int
    email: EmailStr
    company_id: int
    role_id: int
    created_at: datetime
    registered_at: datetime | None

    model_config = ConfigDict(
        from_attributes=True,
    )


class InvitationVerifyIn(BaseModel):
    token: SecretStr


class InvitationVerifyOut(BaseModel):
    email: EmailStr
    company_name: str
    role_id: int


class RegisterIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: SecretStr = Field(min_length=8)
    password_confirmation: SecretStr
    invitation_token: SecretStr | None = None
    # Ignored; registration without a token always creates a customer.
    role_id: int | None = None
    company_id: int | None = None

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterIn":
        if (
            self.password.get_secret_value()
            != self.password_confirmation.get_secret_value()
        ):
            raise ValueError("The password confirmation does not match.")
        return self


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    role_id: int
    company_id: int | None
    created_at: datetime
    deleted_at: datetime | None = None

    model_config = ConfigDict(
        from_attributes=True,
    )


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    role_id: int | None = None

    @field_validator("role_id")
    @classmethod
    def tenant_role_only(cls, value: int | None) -> int | None:
        if value is not None and value not in {int(role) for role in TENANT_ROLES}:
            raise ValueError(
                f"Role must be one of {Role.COMPANY_OWNER.value} or {Role.GUIDE.value}"
            )
        return value
