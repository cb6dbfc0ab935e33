"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the session
controller do the work; these classes only own the shape.

Two views of a user exist on purpose:
  User          -- the full record, including hashed_password and the
                   refresh-token slot. Never leaves the auth/ layer.
  PublicProfile -- what clients see. It has no field for the hash or the
                   slot, so a route cannot leak them by accident.

Layer rule: no imports from api/, core/, or media/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class User:
    """A registered account.

    refresh_token is the session slot: the single refresh token currently
    accepted for this user, or None when logged out. Only the store mutates it
    (set on login, compare-and-set on refresh, cleared on logout).

    username is always stored lower-cased; email is stored trimmed and
    lower-cased. id is None before the record is written to the database.
    """

    fullname: str
    username: str
    email: str
    hashed_password: str
    avatar_url: str = ""
    cover_image_url: str = ""
    id: Optional[str] = None
    refresh_token: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass(frozen=True)
class PublicProfile:
    """Client-facing view of a User."""

    id: str
    fullname: str
    username: str
    email: str
    avatar: str
    cover_image: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "PublicProfile":
        return cls(
            id=user.id or "",
            fullname=user.fullname,
            username=user.username,
            email=user.email,
            avatar=user.avatar_url,
            cover_image=user.cover_image_url,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


@dataclass(frozen=True)
class Identity:
    """Reduced identity resolved by the auth guard for downstream handlers."""

    id: str
    username: str
    email: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    user: PublicProfile
    tokens: TokenPair
