"""
auth/tokens.py -- JWT issuance / verification and token cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with two
       different secrets, and each carries a "type" claim, so a refresh token
       can never be replayed as an access token (or the other way round).

  Access tokens are short-lived (minutes) and embed {sub, username, email}.
  Refresh tokens are long-lived (days) and embed only {sub}. Both carry a
  random jti so two tokens issued in the same second are never identical --
  the rotation compare-and-set in auth/store.py depends on that.

  verify() raises TokenExpiredError or TokenInvalidError. Callers need the
  difference: an expired token means "log in again", an invalid one means
  "reject outright".

  Tokens are never logged or echoed in exception messages.

Layer rule: no imports from api/ or media/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING

from jose import ExpiredSignatureError, JOSEError, JWTError, jwt

from auth.models import TokenPair, User

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("userauth.auth")

_ALGORITHM = "HS256"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"

    @property
    def cookie_name(self) -> str:
        return "accessToken" if self is TokenKind.ACCESS else "refreshToken"


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpiredError(TokenError):
    """Signature is valid but the exp claim is in the past."""


class TokenInvalidError(TokenError):
    """Malformed token, bad signature, wrong token type, or missing claims."""


class TokenSigningError(Exception):
    """Signing failed. Always mapped to an internal error, never swallowed."""


class TokenService:
    """Stateless signer / verifier for access and refresh tokens.

    Usage:
        tokens = TokenService.from_settings(get_settings())
        pair = tokens.issue_pair(user)
        claims = tokens.verify(pair.refresh_token, TokenKind.REFRESH)
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_expire_seconds: int,
        refresh_expire_seconds: int,
    ) -> None:
        self._secrets = {TokenKind.ACCESS: access_secret, TokenKind.REFRESH: refresh_secret}
        self._lifetimes = {TokenKind.ACCESS: access_expire_seconds, TokenKind.REFRESH: refresh_expire_seconds}

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_expire_seconds=settings.access_token_expire_seconds,
            refresh_expire_seconds=settings.refresh_token_expire_seconds,
        )

    def lifetime(self, kind: TokenKind) -> int:
        """Token lifetime in seconds. Cookies reuse it as max_age."""
        return self._lifetimes[kind]

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access_token(self, user: User) -> str:
        return self._sign(
            TokenKind.ACCESS,
            {"sub": user.id, "username": user.username, "email": user.email},
        )

    def issue_refresh_token(self, user: User) -> str:
        return self._sign(TokenKind.REFRESH, {"sub": user.id})

    def issue_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(user),
            refresh_token=self.issue_refresh_token(user),
        )

    def _sign(self, kind: TokenKind, claims: dict) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "type": kind.value,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + timedelta(seconds=self._lifetimes[kind]),
        }
        try:
            return jwt.encode(payload, self._secrets[kind], algorithm=_ALGORITHM)
        except JOSEError as exc:
            logger.error("Failed to sign %s token for user %s", kind.value, claims.get("sub"))
            raise TokenSigningError(f"could not sign {kind.value} token") from exc

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str, kind: TokenKind) -> dict:
        """Return the verified claims of a token of the given kind.

        Raises TokenExpiredError if the token is past its exp claim, and
        TokenInvalidError for everything else that is wrong with it.
        """
        try:
            claims = jwt.decode(token, self._secrets[kind], algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError(f"{kind.value} token expired") from exc
        except JWTError as exc:
            raise TokenInvalidError(f"{kind.value} token invalid") from exc
        if claims.get("type") != kind.value or not claims.get("sub"):
            raise TokenInvalidError(f"{kind.value} token invalid")
        return claims


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_token_cookies(response, pair: TokenPair, tokens: TokenService, secure: bool = True) -> None:
    """Write both tokens as httpOnly cookies on the response.

    httponly=True: JS cannot read the cookies (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS. Defaults on; SECURE_COOKIES=false is for
        plain-http local development only.
    max_age: matches each token's expiry so cookie and token expire together.
    """
    for kind, value in ((TokenKind.ACCESS, pair.access_token), (TokenKind.REFRESH, pair.refresh_token)):
        response.set_cookie(
            kind.cookie_name,
            value=value,
            httponly=True,
            samesite="lax",
            secure=secure,
            max_age=tokens.lifetime(kind),
        )


def clear_token_cookies(response, secure: bool = True) -> None:
    for kind in TokenKind:
        response.delete_cookie(kind.cookie_name, httponly=True, samesite="lax", secure=secure)
