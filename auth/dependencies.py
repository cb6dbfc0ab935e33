"""
auth/dependencies.py -- Auth guard and FastAPI Depends() helper.

Token sources are checked in priority order:
  1. Cookie ("accessToken" / "refreshToken") -- set by login and refresh.
  2. Authorization: Bearer <token> header -- access tokens only, for API
     clients that do not keep cookies.

AuthGuard.authorize() is the pure gate: it verifies the access token, resolves
the user it names, and returns a reduced Identity. It never mutates state.

get_current_identity() is the FastAPI dependency. The resolved Identity is
handed to the route as an ordinary parameter -- nothing is attached to the
request object behind the handler's back.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from auth.models import Identity
from auth.results import FailureError, Result, Success, unauthorized
from auth.store import CredentialStore
from auth.tokens import TokenExpiredError, TokenInvalidError, TokenKind, TokenService


def extract_token(request: Request, kind: TokenKind) -> Optional[str]:
    """Return the raw token of the given kind carried by the request, or None."""
    token = request.cookies.get(kind.cookie_name)
    if token:
        return token
    if kind is TokenKind.ACCESS:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[7:].strip() or None
    return None


class AuthGuard:
    """Per-request gate for protected routes."""

    def __init__(self, store: CredentialStore, tokens: TokenService) -> None:
        self.store = store
        self.tokens = tokens

    def authorize(self, token: Optional[str]) -> Result[Identity]:
        if not token:
            return unauthorized("Authentication required.", code="missing_token")
        try:
            claims = self.tokens.verify(token, TokenKind.ACCESS)
        except TokenExpiredError:
            return unauthorized("Access token expired.", code="token_expired")
        except TokenInvalidError:
            return unauthorized("Invalid access token.", code="token_invalid")

        user = self.store.find_by_id(claims["sub"])
        if user is None:
            return unauthorized("Invalid access token.", code="token_invalid")
        return Success(Identity(id=user.id, username=user.username, email=user.email))


def get_current_identity(request: Request) -> Identity:
    """Require a valid access token. Raises FailureError (-> 401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...

    Declared as a plain def so FastAPI runs the store lookup in its threadpool.
    """
    guard: AuthGuard = request.app.state.auth_guard
    result = guard.authorize(extract_token(request, TokenKind.ACCESS))
    if not result.ok:
        raise FailureError(result)
    return result.value
