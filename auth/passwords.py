"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

bcrypt is CPU-bound by design. Callers run inside FastAPI's worker threadpool
(every auth route is a plain `def`), so one slow hash never stalls the event
loop serving other users.
"""

from __future__ import annotations

import bcrypt

# bcrypt only looks at the first 72 bytes of its input, and bcrypt 5 raises
# ValueError for anything longer.
MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    """Return True if the UTF-8 encoding of the password exceeds what bcrypt accepts."""
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Callers reject passwords over MAX_PASSWORD_BYTES first (see
    password_too_long); bcrypt raises ValueError for them.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


# Timing equalization dummy hash.
# Computed once at module load. Login always runs bcrypt, even when the
# identifier is unknown, so response time does not reveal whether a username
# or email is registered.
DUMMY_HASH: str = hash_password("userauth_timing_dummy")
