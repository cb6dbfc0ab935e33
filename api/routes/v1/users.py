"""
api/routes/v1/users.py -- Registration and session REST endpoints.

Routes:
  POST /api/v1/users/register         -- multipart signup; avatar required
  POST /api/v1/users/login            -- username/email + password; sets token cookies
  POST /api/v1/users/refresh-token    -- rotate the session; sets token cookies
  POST /api/v1/users/logout           -- ends the session; clears cookies (requires auth)
  POST /api/v1/users/change-password  -- requires auth
  GET  /api/v1/users/current-user     -- requires auth

Every handler is a plain `def`: FastAPI runs it in the worker threadpool, so
bcrypt and store calls never block the event loop.

Handlers call the SessionController and pass its Result through unwrap().
A Failure becomes FailureError, which the handler in api/main.py renders.

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  Cache-Control: no-store on every response that carries tokens.
"""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    ApiResponse,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    TokenPairResponse,
    UserProfileResponse,
)
from auth.dependencies import extract_token, get_current_identity
from auth.models import Identity
from auth.results import unwrap
from auth.session import SessionController
from auth.tokens import TokenKind, clear_token_cookies, set_token_cookies
from core.config import get_settings

# Auth policy:
# - POST /users/register:         public
# - POST /users/login:            public, rate limited
# - POST /users/refresh-token:    public -- the refresh token itself is the credential
# - POST /users/logout:           requires auth (get_current_identity)
# - POST /users/change-password:  requires auth (get_current_identity)
# - GET  /users/current-user:     requires auth (get_current_identity)
router = APIRouter()


def _controller(request: Request) -> SessionController:
    return request.app.state.sessions


def _envelope(status_code: int, data, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(status_code=status_code, data=data, message=message).model_dump(by_alias=True),
    )


def _spool(upload: Optional[UploadFile]) -> Optional[Path]:
    """Copy an uploaded file to a local temp path for the media store."""
    if upload is None or not upload.filename:
        return None
    tmp = tempfile.NamedTemporaryFile(delete=False, suffix=Path(upload.filename).suffix)
    path = Path(tmp.name)
    try:
        with tmp:
            shutil.copyfileobj(upload.file, tmp)
    except OSError:
        path.unlink(missing_ok=True)
        raise
    return path


@contextmanager
def _spooled(*uploads: Optional[UploadFile]) -> Iterator[list[Optional[Path]]]:
    """Spool each upload to a temp file and remove all of them on exit.

    The media store consumes files it accepts; whatever is left is deleted,
    including files already spooled when a later upload fails to copy.
    """
    paths: list[Optional[Path]] = []
    try:
        for upload in uploads:
            paths.append(_spool(upload))
        yield paths
    finally:
        for path in paths:
            if path is not None:
                path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/users/register", status_code=201)
def register(
    request: Request,
    fullname: str = Form(default=""),
    email: str = Form(default=""),
    username: str = Form(default=""),
    password: str = Form(default="", max_length=72),
    avatar: Optional[UploadFile] = File(default=None),
    cover_image: Optional[UploadFile] = File(default=None, alias="coverImage"),
) -> JSONResponse:
    """Create an account. Returns the public profile -- never the hash or the session slot."""
    with _spooled(avatar, cover_image) as (avatar_path, cover_path):
        result = _controller(request).register(fullname, email, username, password, avatar_path, cover_path)
    profile = unwrap(result)
    return _envelope(
        201,
        UserProfileResponse.from_profile(profile).model_dump(by_alias=True),
        "User registered successfully",
    )


@limiter.limit(get_settings().login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/users/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username or email plus password; set both token cookies.

    Unknown identifier and wrong password produce the same 401 body
    ("bad_credentials") so the response does not reveal which one failed.
    """
    result = unwrap(_controller(request).login(body.identifier, body.password))

    payload = LoginResponse(
        user=UserProfileResponse.from_profile(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )
    resp = _envelope(200, payload.model_dump(by_alias=True), "User logged in successfully")
    set_token_cookies(resp, result.tokens, request.app.state.tokens, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/users/refresh-token")
def refresh_token(request: Request, body: Optional[RefreshRequest] = None) -> JSONResponse:
    """Exchange the current refresh token for a new pair. Each refresh token works once."""
    presented = extract_token(request, TokenKind.REFRESH)
    if not presented and body is not None:
        presented = body.refresh_token

    pair = unwrap(_controller(request).refresh(presented))

    resp = _envelope(200, TokenPairResponse.from_pair(pair).model_dump(by_alias=True), "Access token refreshed")
    set_token_cookies(resp, pair, request.app.state.tokens, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/users/logout")
def logout(request: Request, identity: Identity = Depends(get_current_identity)) -> JSONResponse:
    """End the session and clear both cookies. Safe to call repeatedly."""
    unwrap(_controller(request).logout(identity.id))
    resp = _envelope(200, {}, "User logged out")
    clear_token_cookies(resp, secure=get_settings().secure_cookies)
    return resp


@router.post("/users/change-password")
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
) -> JSONResponse:
    unwrap(_controller(request).change_password(identity.id, body.old_password, body.new_password))
    return _envelope(200, {}, "Password changed successfully")


@router.get("/users/current-user")
def current_user(request: Request, identity: Identity = Depends(get_current_identity)) -> JSONResponse:
    """Return the public profile of the authenticated user."""
    profile = unwrap(_controller(request).get_current_user(identity.id))
    return _envelope(
        200,
        UserProfileResponse.from_profile(profile).model_dump(by_alias=True),
        "Current user fetched successfully",
    )
