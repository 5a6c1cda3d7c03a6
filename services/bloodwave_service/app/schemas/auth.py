from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from ..core.errors import AuthErrorKind


class CamelModel(BaseModel):
    """Game clients exchange camelCase JSON; Python code keeps snake_case names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    username: str = Field(..., max_length=50)
    password: str = Field(..., max_length=128)
    email: EmailStr = Field(..., max_length=100)


class LoginRequest(CamelModel):
    username: str
    password: str


class RefreshRequest(CamelModel):
    refresh_token: str


class UserSummary(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    username: str
    email: str


class AuthResult(CamelModel):
    success: bool
    message: str
    token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None
    user: UserSummary | None = None
    error: AuthErrorKind | None = None

    @classmethod
    def failure(cls, error: AuthErrorKind, message: str) -> AuthResult:
        return cls(success=False, message=message, error=error)
