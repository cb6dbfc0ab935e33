"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_user is the mapper. The session controller never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  username and email carry UNIQUE constraints -- the database is the authority
  on uniqueness. create() checks first to produce a friendly error, then
  translates an IntegrityError from a concurrent insert into the same
  DuplicateUserError.

Session slot (users.refresh_token):
  compare_and_set_refresh_token() is one UPDATE ... WHERE id = ? AND
  refresh_token = ? statement. The database applies it atomically, so of N
  concurrent refreshes presenting the same token exactly one matches a row and
  the rest see rowcount == 0. There is no read-then-write for callers to race.

  set_refresh_token() (login) and clear_refresh_token() (logout) overwrite
  unconditionally: both express a fresh intent by the account owner.

Layer rule: no imports from api/, core/, or media/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.passwords import hash_password, verify_password

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex, opaque to clients
    Column("fullname", String(255), nullable=False),
    Column("username", String(255), nullable=False, unique=True),  # stored lower-cased
    Column("email", String(255), nullable=False, unique=True),  # stored lower-cased
    Column("hashed_password", Text, nullable=False),
    Column("refresh_token", Text),  # session slot; NULL when logged out
    Column("avatar_url", Text, nullable=False, server_default=""),
    Column("cover_image_url", Text, nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


class DuplicateUserError(Exception):
    """Raised by create() when the username or email is already registered."""


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_identifier(value: str) -> str:
    """Usernames and emails are matched case-insensitively."""
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for User records and their refresh-token slot.

    Usage:
        store = CredentialStore("sqlite:///users.db")
        user = store.create(User(fullname="Alice", username="alice",
                                 email="alice@x.com", hashed_password=hash_password("pw123")))
        store.compare_and_set_refresh_token(user.id, None, token)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def find_by_identifier(self, identifier: str) -> Optional[User]:
        """Look up a user by username or email (case-insensitive). Returns None if not found."""
        value = normalize_identifier(identifier)
        if not value:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(or_(_users.c.username == value, _users.c.email == value))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> Optional[User]:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def exists(self, username: str, email: str) -> bool:
        """Return True if either value is already taken as a username or an email.

        Usernames and emails share one namespace: login accepts either, so a
        username equal to someone else's email would make that login ambiguous.
        """
        values = {normalize_identifier(username), normalize_identifier(email)}
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_users.c.id).where(or_(_users.c.username.in_(values), _users.c.email.in_(values)))
            ).first()
        return row is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, user: User) -> User:
        """Insert a new user and return the stored record.

        username and email are normalized before insert. Raises
        DuplicateUserError if either is taken, whether detected by the
        pre-check or by the UNIQUE constraint during a concurrent insert.
        """
        username = normalize_identifier(user.username)
        email = normalize_identifier(user.email)
        if self.exists(username, email):
            raise DuplicateUserError("username or email already registered")

        user_id = uuid.uuid4().hex
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user_id,
                        fullname=user.fullname.strip(),
                        username=username,
                        email=email,
                        hashed_password=user.hashed_password,
                        refresh_token=None,
                        avatar_url=user.avatar_url,
                        cover_image_url=user.cover_image_url,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateUserError("username or email already registered") from exc

        created = self.find_by_id(user_id)
        if created is None:
            raise RuntimeError("user not found after insert")
        return created

    def hash_and_set_password(self, user_id: str, plaintext: str) -> bool:
        """Hash plaintext and store it. Touches only the password and updated_at.

        Returns True if a row was updated, False if user_id was not found.
        """
        hashed = hash_password(plaintext)
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(hashed_password=hashed, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def verify_password(self, user: User, plaintext: str) -> bool:
        return verify_password(plaintext, user.hashed_password)

    # ------------------------------------------------------------------
    # Session slot
    # ------------------------------------------------------------------

    def compare_and_set_refresh_token(self, user_id: str, expected: Optional[str], new_value: str) -> bool:
        """Atomically replace the slot only if it currently equals expected.

        Returns False on mismatch (already rotated, replayed, or logged out)
        and when user_id does not exist.
        """
        if expected is None:
            slot_matches = _users.c.refresh_token.is_(None)
        else:
            slot_matches = _users.c.refresh_token == expected
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & slot_matches)
                .values(refresh_token=new_value, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount == 1

    def set_refresh_token(self, user_id: str, value: str) -> bool:
        """Unconditionally overwrite the slot. Login only -- a fresh login replaces any prior session."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(refresh_token=value, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def clear_refresh_token(self, user_id: str) -> None:
        """Unconditionally empty the slot. Idempotent."""
        with self.engine.connect() as conn:
            conn.execute(
                _users.update().where(_users.c.id == user_id).values(refresh_token=None, updated_at=_now_iso())
            )
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        fullname=row.fullname,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        refresh_token=row.refresh_token,
        avatar_url=row.avatar_url or "",
        cover_image_url=row.cover_image_url or "",
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
