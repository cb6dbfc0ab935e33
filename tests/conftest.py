"""
tests/conftest.py -- Shared test fixtures.

This module provides:
  - FakeMedia: in-process stand-in for the upload collaborator
  - tokens / store / controller / guard: unit-level building blocks
  - api_client: TestClient over the real app with a patched lifespan

Design: API tests use named shared-memory SQLite URIs (not plain :memory:)
because TestClient runs sync route handlers in a thread pool. Plain ':memory:'
DBs are per-connection and would present a blank schema to each worker thread.
Unit tests stay on one thread, so plain ':memory:' is enough there.

The client talks to https://testserver so the Secure token cookies set by
login and refresh are stored and sent back like a browser would.

DEBUG and RATE_LIMIT_ENABLED must be set before any app import: get_settings()
auto-generates the signing secrets in dev mode, and the login limiter would
otherwise trip after ten logins from the same test client.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

# CRITICAL: set before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.dependencies import AuthGuard
from auth.session import SessionController
from auth.store import CredentialStore
from auth.tokens import TokenService
from media.store import UploadError, UploadResult

ACCESS_SECRET = "a" * 48
REFRESH_SECRET = "r" * 48


class FakeMedia:
    """Upload collaborator double. Records every path it was asked to store."""

    def __init__(self) -> None:
        self.uploaded: list[Path] = []
        self.fail_on: set[str] = set()

    def upload(self, local_path: Path) -> UploadResult:
        path = Path(local_path)
        self.uploaded.append(path)
        if any(marker in path.name for marker in self.fail_on):
            raise UploadError("simulated upload failure")
        return UploadResult(url=f"https://media.test/{path.name}")


def make_tokens(access_expire: int = 900, refresh_expire: int = 864000) -> TokenService:
    return TokenService(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        access_expire_seconds=access_expire,
        refresh_expire_seconds=refresh_expire,
    )


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tokens() -> TokenService:
    return make_tokens()


@pytest.fixture
def token_factory():
    """Build a TokenService with custom lifetimes (negative values mint already-expired tokens)."""
    return make_tokens


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    s = CredentialStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def media() -> FakeMedia:
    return FakeMedia()


@pytest.fixture
def controller(store: CredentialStore, tokens: TokenService, media: FakeMedia) -> SessionController:
    return SessionController(store, tokens, media)


@pytest.fixture
def guard(store: CredentialStore, tokens: TokenService) -> AuthGuard:
    return AuthGuard(store, tokens)


@pytest.fixture
def avatar_file(tmp_path: Path) -> Path:
    path = tmp_path / "avatar.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\nfake-avatar")
    return path


@pytest.fixture
def cover_file(tmp_path: Path) -> Path:
    path = tmp_path / "cover.jpg"
    path.write_bytes(b"\xff\xd8\xfffake-cover")
    return path


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: CredentialStore, tokens: TokenService, media: FakeMedia):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store, token service and fake media into app.state so
    routes hit isolated collaborators instead of the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.tokens = tokens
        app.state.media = media
        app.state.sessions = SessionController(store, tokens, media)
        app.state.auth_guard = AuthGuard(store, tokens)
        yield

    return test_lifespan


@pytest.fixture
def api_client() -> Generator[tuple[TestClient, CredentialStore, FakeMedia], None, None]:
    """Yield (client, store, media) backed by a fresh shared-memory database per test."""
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    api_store = CredentialStore(db_url)
    fake_media = FakeMedia()

    app.router.lifespan_context = _patch_lifespan(api_store, make_tokens(), fake_media)

    with TestClient(app, base_url="https://testserver", raise_server_exceptions=True) as client:
        yield client, api_store, fake_media

    api_store.close()
