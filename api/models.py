"""
API request and response models for the user/session REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format is camelCase (accessToken, coverImage, statusCode); Python
attributes stay snake_case via the to_camel alias generator.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import PublicProfile, TokenPair
from auth.passwords import MAX_PASSWORD_BYTES

# Character cap only. The byte limit is enforced by SessionController, since
# multibyte characters can exceed it well below this many characters.
_PASSWORD_MAX = MAX_PASSWORD_BYTES

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/login.

    Either username or email identifies the account; both are matched
    case-insensitively against both columns.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: str = Field(default="", max_length=_PASSWORD_MAX)

    @property
    def identifier(self) -> Optional[str]:
        return self.username or self.email


class RefreshRequest(BaseModel):
    """Optional body for POST /api/v1/users/refresh-token (cookie takes priority)."""

    model_config = _CAMEL

    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    model_config = _CAMEL

    old_password: str = Field(max_length=_PASSWORD_MAX)
    new_password: str = Field(max_length=_PASSWORD_MAX)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserProfileResponse(BaseModel):
    """Public view of a user. Has no field for the password hash or the session slot."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    fullname: str
    username: str
    email: str
    avatar: str
    cover_image: str
    created_at: str
    updated_at: str

    @classmethod
    def from_profile(cls, profile: PublicProfile) -> "UserProfileResponse":
        return cls(
            id=profile.id,
            fullname=profile.fullname,
            username=profile.username,
            email=profile.email,
            avatar=profile.avatar,
            cover_image=profile.cover_image,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class TokenPairResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    access_token: str
    refresh_token: str

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(access_token=pair.access_token, refresh_token=pair.refresh_token)


class LoginResponse(TokenPairResponse):
    user: UserProfileResponse


class ApiResponse(BaseModel):
    """Success envelope: {statusCode, data, message, success}."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    status_code: int
    data: Any = None
    message: str = "Success"
    success: bool = True


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    status_code: int
    error: ErrorDetail
    success: bool = False


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
