from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import EmailStr, Field, StringConstraints, field_validator
from pydantic_core import PydanticCustomError

from migestion.core.security_password import PASSWORD_MAX_LENGTH, validate_password_strength
from migestion.schemas.common import CamelModel
from migestion.schemas.user import IdentityOut, TenantOut, UserOut

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]
Slug = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=50, pattern=r"^[a-z0-9-]+$")]


def _lower_email(v: str) -> str:
    return v.strip().lower()


class RegisterRequest(CamelModel):
    company_name: Name
    slug: Slug
    email: EmailStr
    password: str = Field(max_length=PASSWORD_MAX_LENGTH)
    first_name: Name
    last_name: Name

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        return _lower_email(v)

    @field_validator("password")
    @classmethod
    def _strong_password(cls, v: str) -> str:
        violations = validate_password_strength(v)
        if violations:
            raise PydanticCustomError(
                "password_strength", "{summary}", {"summary": "; ".join(violations), "violations": violations}
            )
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        return _lower_email(v)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


class AuthResponse(CamelModel):
    user: UserOut
    tenant: TenantOut
    access_token: str
    refresh_token: str
    expires_at: datetime


class TokenRefreshResponse(CamelModel):
    access_token: str
    refresh_token: str
    expires_at: datetime


class MeResponse(CamelModel):
    user: UserOut
    tenant: TenantOut


class AuthStatusResponse(CamelModel):
    authenticated: bool
    user: Optional[IdentityOut] = None
