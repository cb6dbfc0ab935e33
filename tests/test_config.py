"""
tests/test_config.py -- Signing-secret policy enforced by core/config.Settings.

Settings are built with explicit keyword arguments and _env_file=None so the
result does not depend on the developer's environment or .env file.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

_ACCESS = "A" * 40
_REFRESH = "R" * 40


def test_production_requires_secrets() -> None:
    with pytest.raises(ValidationError, match="ACCESS_TOKEN_SECRET is required"):
        Settings(_env_file=None, debug=False, access_token_secret="", refresh_token_secret=_REFRESH)


def test_debug_generates_distinct_secrets() -> None:
    settings = Settings(_env_file=None, debug=True, access_token_secret="", refresh_token_secret="")
    assert len(settings.access_token_secret) >= 32
    assert len(settings.refresh_token_secret) >= 32
    assert settings.access_token_secret != settings.refresh_token_secret


def test_short_secret_rejected() -> None:
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(_env_file=None, access_token_secret="short", refresh_token_secret=_REFRESH)


def test_shared_secret_rejected() -> None:
    with pytest.raises(ValidationError, match="must differ"):
        Settings(_env_file=None, access_token_secret=_ACCESS, refresh_token_secret=_ACCESS)


def test_non_positive_expiry_rejected() -> None:
    with pytest.raises(ValidationError, match="positive"):
        Settings(
            _env_file=None,
            access_token_secret=_ACCESS,
            refresh_token_secret=_REFRESH,
            access_token_expire_seconds=0,
        )


def test_defaults() -> None:
    settings = Settings(_env_file=None, access_token_secret=_ACCESS, refresh_token_secret=_REFRESH)
    assert settings.access_token_expire_seconds == 900
    assert settings.refresh_token_expire_seconds == 864000
    assert settings.secure_cookies is True
