"""
API request and response models for the Users API.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format notes:
  Token bodies keep the camelCase keys existing clients send and expect
  (currentRefreshToken, accessToken, refreshToken). Pydantic aliases carry
  them; Python code uses snake_case names.

  UserResponse never carries hashed_password or refresh_token.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Identity, User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _ProfileNormalized(BaseModel):
    @field_validator("email", "first_name", "last_name", mode="before", check_fields=False)
    @classmethod
    def strip_text(cls, value):
        """Trim profile text. Passwords are hashed exactly as sent."""
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="after", check_fields=False)
    @classmethod
    def lowercase_email(cls, value: Optional[str]) -> Optional[str]:
        """Emails are unique case-insensitively; store and compare lowercased."""
        return value.lower() if value is not None else value


class UserCreate(_ProfileNormalized):
    """Request body for POST /users (public registration).

    No role field: self-registered accounts are always "user". Admins are
    promoted by another admin or seeded with `python main.py create-admin`.
    """

    model_config = ConfigDict(extra="forbid")

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)


class UserSelfUpdate(_ProfileNormalized):
    """Request body for PUT /users/me. Role is not self-service."""

    model_config = ConfigDict(extra="forbid")

    email: Optional[str] = Field(default=None, min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: Optional[str] = Field(default=None, min_length=1, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)


class UserAdminUpdate(UserSelfUpdate):
    """Request body for PUT /users/{user_id} (admin only)."""

    role: Optional[RoleEnum] = None


class LoginRequest(BaseModel):
    """Request body for POST /users/login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class RefreshRequest(BaseModel):
    """Request body for POST /users/refreshTokens."""

    model_config = ConfigDict(populate_by_name=True)

    current_refresh_token: str = Field(alias="currentRefreshToken", min_length=1, max_length=4096)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenPairResponse(BaseModel):
    """Response body for login and refresh."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")


class CreatedResponse(BaseModel):
    """Response body for POST /users."""

    model_config = ConfigDict(frozen=True)

    id: str


class UserResponse(BaseModel):
    """Public view of a user record."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: RoleEnum
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Factory Method: the domain -> wire mapping lives beside the wire model."""
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            first_name=user.first_name,
            last_name=user.last_name,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class IdentityResponse(BaseModel):
    """The resolved identity of the caller, as seen by the auth gate."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: RoleEnum

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(id=identity.user_id, role=identity.role)


class UserLookupResponse(BaseModel):
    """Response body for GET /users/{user_id}."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    current_requesting_user: IdentityResponse = Field(alias="currentRequestingUser")
    user: UserResponse


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
