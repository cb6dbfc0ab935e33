"""
auth/session.py -- Session lifecycle: register, login, refresh, logout, change-password.

Per-user session state machine:

    Anonymous --login--> Authenticated --refresh--> Authenticated(rotated) ...
                              |                          |
                              +--------logout------------+--> LoggedOut

LoggedOut has no way back except a fresh login.

Every public method returns a Result (auth/results.py): Success(value) or
Failure(kind, code, message). Nothing here raises for a business-rule failure;
the FailureError handler in api/main.py is the only place a Failure
becomes an HTTP status.

Security:
  Login runs bcrypt whether or not the identifier exists and returns one
  uniform failure for "unknown user" and "wrong password". Neither timing nor
  message reveals which check failed.

  Refresh rotation goes through CredentialStore.compare_and_set_refresh_token.
  A token that verifies cryptographically but no longer matches the slot
  (already rotated, replayed, or logged out) is rejected with session_reused.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

from auth.models import LoginResult, PublicProfile, TokenPair, User
from auth.passwords import DUMMY_HASH, MAX_PASSWORD_BYTES, hash_password, password_too_long, verify_password
from auth.results import Failure, Result, Success, conflict, internal_error, unauthorized, validation_error
from auth.store import CredentialStore, DuplicateUserError
from auth.tokens import TokenExpiredError, TokenInvalidError, TokenKind, TokenService, TokenSigningError
from media.store import MediaUploader, UploadError

logger = logging.getLogger("userauth.auth")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

BAD_CREDENTIALS = unauthorized("Invalid username, email or password.", code="bad_credentials")
_PASSWORD_TOO_LONG = validation_error(
    f"Password must be at most {MAX_PASSWORD_BYTES} bytes long", code="password_too_long"
)


class SessionController:
    """Orchestrates the session lifecycle on top of TokenService and CredentialStore.

    Usage:
        controller = SessionController(store, tokens, media)
        result = controller.login("alice", "pw123")
        if result.ok:
            pair = result.value.tokens
    """

    def __init__(self, store: CredentialStore, tokens: TokenService, media: MediaUploader) -> None:
        self.store = store
        self.tokens = tokens
        self.media = media

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(
        self,
        fullname: str,
        email: str,
        username: str,
        password: str,
        avatar_path: Optional[Path],
        cover_path: Optional[Path] = None,
    ) -> Result[PublicProfile]:
        """Create an account and return its public profile.

        Order matters: input validation, then the uniqueness check, then the
        avatar upload, then the insert. A failed avatar upload therefore never
        leaves a half-created record behind.
        """
        fields = [fullname, email, username, password]
        if any(field is None or not field.strip() for field in fields):
            return validation_error("All fields are required")
        if not _EMAIL_RE.match(email.strip()):
            return validation_error("Email address is not valid", code="invalid_email")
        if password_too_long(password):
            return _PASSWORD_TOO_LONG

        if self.store.exists(username, email):
            return conflict("User with email or username already exists")

        if avatar_path is None:
            return validation_error("Avatar file is required", code="avatar_required")
        try:
            avatar = self.media.upload(avatar_path)
        except UploadError:
            return validation_error("Avatar file is required", code="avatar_upload_failed")

        cover_url = ""
        if cover_path is not None:
            try:
                cover_url = self.media.upload(cover_path).url
            except UploadError:
                logger.warning("Cover image upload failed for new user %s; continuing without it", username)

        new_user = User(
            fullname=fullname,
            username=username,
            email=email,
            hashed_password=hash_password(password),
            avatar_url=avatar.url,
            cover_image_url=cover_url,
        )
        try:
            created = self.store.create(new_user)
        except DuplicateUserError:
            # Lost a race with a concurrent registration of the same name.
            # MediaUploader has no delete, so the uploads are left for cleanup.
            logger.warning(
                "Registration of %s lost a uniqueness race; orphaned media: %s",
                username,
                ", ".join(url for url in (avatar.url, cover_url) if url),
            )
            return conflict("User with email or username already exists")

        logger.info("Registered user %s (%s)", created.username, created.id)
        return Success(PublicProfile.from_user(created))

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def authenticate(self, identifier: str, password: str) -> Optional[User]:
        """Return the User if identifier/password match, None otherwise. Constant-work."""
        user = self.store.find_by_identifier(identifier)
        if user is None:
            # Equalize timing -- do NOT return early before running bcrypt.
            verify_password(password, DUMMY_HASH)
            return None
        if not self.store.verify_password(user, password):
            return None
        return user

    def login(self, identifier: Optional[str], password: Optional[str]) -> Result[LoginResult]:
        """Verify credentials and open a new session, replacing any previous one."""
        if identifier is None or not identifier.strip():
            return validation_error("username or email is required")
        if not password:
            return BAD_CREDENTIALS

        user = self.authenticate(identifier, password)
        if user is None:
            logger.info("Failed login attempt")
            return BAD_CREDENTIALS

        pair = self._issue_pair(user)
        if isinstance(pair, Failure):
            return pair
        # Deliberate unconditional overwrite: a fresh login invalidates any
        # refresh token still held by an older session.
        self.store.set_refresh_token(user.id, pair.refresh_token)

        logger.info("User %s logged in", user.id)
        return Success(LoginResult(user=PublicProfile.from_user(user), tokens=pair))

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, presented: Optional[str]) -> Result[TokenPair]:
        """Rotate the session: exchange a current refresh token for a new pair.

        The presented token is accepted at most once. Whoever wins the
        compare-and-set gets the new pair; every other caller holding the same
        token (retry, race, or attacker replay) gets session_reused.
        """
        if not presented:
            return unauthorized("Unauthorized request", code="missing_token")

        try:
            claims = self.tokens.verify(presented, TokenKind.REFRESH)
        except TokenExpiredError:
            return unauthorized("Refresh token expired", code="token_expired")
        except TokenInvalidError:
            return unauthorized("Invalid refresh token", code="token_invalid")

        user = self.store.find_by_id(claims["sub"])
        if user is None:
            return unauthorized("Invalid refresh token", code="token_invalid")

        pair = self._issue_pair(user)
        if isinstance(pair, Failure):
            return pair
        if not self.store.compare_and_set_refresh_token(user.id, presented, pair.refresh_token):
            logger.warning("Rejected stale or reused refresh token for user %s", user.id)
            return unauthorized("Refresh token is expired or used", code="session_reused")

        logger.info("Rotated session for user %s", user.id)
        return Success(pair)

    # ------------------------------------------------------------------
    # Authenticated operations
    # ------------------------------------------------------------------

    def logout(self, user_id: str) -> Result[None]:
        """Close the session. Idempotent: logging out twice is not an error."""
        self.store.clear_refresh_token(user_id)
        logger.info("User %s logged out", user_id)
        return Success(None)

    def change_password(self, user_id: str, old_password: str, new_password: str) -> Result[None]:
        """Replace the password. The current session slot is left untouched."""
        if new_password is None or not new_password.strip():
            return validation_error("New password is required")
        if password_too_long(new_password):
            return _PASSWORD_TOO_LONG

        user = self.store.find_by_id(user_id)
        if user is None or not self.store.verify_password(user, old_password or ""):
            return unauthorized("Invalid old password", code="bad_credentials")

        self.store.hash_and_set_password(user.id, new_password)
        logger.info("User %s changed password", user.id)
        return Success(None)

    def get_current_user(self, user_id: str) -> Result[PublicProfile]:
        user = self.store.find_by_id(user_id)
        if user is None:
            return unauthorized("Authentication required.", code="token_invalid")
        return Success(PublicProfile.from_user(user))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue_pair(self, user: User) -> TokenPair | Failure:
        try:
            return self.tokens.issue_pair(user)
        except TokenSigningError:
            return internal_error("Something went wrong while generating tokens")
