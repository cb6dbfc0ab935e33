"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - access tokens carry id, username, email; refresh tokens carry only the id
  - access and refresh tokens are not interchangeable
  - expired vs invalid tokens raise distinct errors
  - two refresh tokens issued back to back differ (rotation depends on it)
  - signing failures surface as TokenSigningError
"""

from __future__ import annotations

import pytest
from jose.exceptions import JWSError

from auth.models import User
from auth.tokens import (
    TokenExpiredError,
    TokenInvalidError,
    TokenKind,
    TokenService,
    TokenSigningError,
)


def _user() -> User:
    return User(
        id="0123456789abcdef0123456789abcdef",
        fullname="Alice Doe",
        username="alice",
        email="alice@x.com",
        hashed_password="not-a-real-hash",
    )


class TestIssue:
    def test_access_token_claims(self, tokens: TokenService) -> None:
        claims = tokens.verify(tokens.issue_access_token(_user()), TokenKind.ACCESS)
        assert claims["sub"] == "0123456789abcdef0123456789abcdef"
        assert claims["username"] == "alice"
        assert claims["email"] == "alice@x.com"
        assert claims["type"] == "access"
        assert claims["exp"] > claims["iat"]

    def test_refresh_token_embeds_only_identity(self, tokens: TokenService) -> None:
        claims = tokens.verify(tokens.issue_refresh_token(_user()), TokenKind.REFRESH)
        assert claims["sub"] == "0123456789abcdef0123456789abcdef"
        assert "username" not in claims
        assert "email" not in claims

    def test_refresh_tokens_are_unique(self, tokens: TokenService) -> None:
        user = _user()
        assert tokens.issue_refresh_token(user) != tokens.issue_refresh_token(user)

    def test_lifetimes_follow_configuration(self, token_factory) -> None:
        service = token_factory(access_expire=60, refresh_expire=3600)
        assert service.lifetime(TokenKind.ACCESS) == 60
        assert service.lifetime(TokenKind.REFRESH) == 3600


class TestVerify:
    def test_refresh_token_rejected_as_access(self, tokens: TokenService) -> None:
        refresh = tokens.issue_refresh_token(_user())
        with pytest.raises(TokenInvalidError):
            tokens.verify(refresh, TokenKind.ACCESS)

    def test_access_token_rejected_as_refresh(self, tokens: TokenService) -> None:
        access = tokens.issue_access_token(_user())
        with pytest.raises(TokenInvalidError):
            tokens.verify(access, TokenKind.REFRESH)

    def test_expired_token(self, token_factory) -> None:
        service = token_factory(access_expire=-30)
        token = service.issue_access_token(_user())
        with pytest.raises(TokenExpiredError):
            service.verify(token, TokenKind.ACCESS)

    def test_tampered_signature(self, tokens: TokenService) -> None:
        token = tokens.issue_access_token(_user())
        head, payload, signature = token.split(".")
        forged = ".".join([head, payload, signature[::-1]])
        with pytest.raises(TokenInvalidError):
            tokens.verify(forged, TokenKind.ACCESS)

    def test_token_signed_with_other_secret(self, tokens: TokenService) -> None:
        other = TokenService("x" * 40, "y" * 40, 900, 900)
        with pytest.raises(TokenInvalidError):
            tokens.verify(other.issue_access_token(_user()), TokenKind.ACCESS)

    def test_garbage(self, tokens: TokenService) -> None:
        with pytest.raises(TokenInvalidError):
            tokens.verify("not-a-token", TokenKind.REFRESH)

    def test_error_messages_do_not_echo_token(self, tokens: TokenService) -> None:
        token = tokens.issue_access_token(_user())
        with pytest.raises(TokenInvalidError) as exc_info:
            tokens.verify(token, TokenKind.REFRESH)
        assert token not in str(exc_info.value)


def test_signing_failure_raises(monkeypatch: pytest.MonkeyPatch, tokens: TokenService) -> None:
    def boom(*args, **kwargs):
        raise JWSError("signing backend unavailable")

    monkeypatch.setattr("auth.tokens.jwt.encode", boom)
    with pytest.raises(TokenSigningError):
        tokens.issue_pair(_user())
