"""
auth/results.py -- Tagged success / failure values for session operations.

SessionController and AuthGuard never raise for business-rule failures. They
return either Success(value) or Failure(kind, code, message). Route handlers
call unwrap(), and the FailureError handler in api/main.py turns a Failure into
a status code and error body.

ErrorKind is the whole taxonomy:
  VALIDATION   -- 400, malformed or missing input
  CONFLICT     -- 409, duplicate username or email
  UNAUTHORIZED -- 401, missing/invalid/expired/replayed credentials or tokens.
                  Retryable: the client can log in again.
  INTERNAL     -- 500, token signing failure or store unavailability. Fatal.

Layer rule: no imports from api/, core/, or media/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal_error"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def retryable(self) -> bool:
        return self is ErrorKind.UNAUTHORIZED


_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INTERNAL: 500,
}


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class Failure:
    """A business-rule failure.

    code is a stable machine-readable reason (e.g. "bad_credentials",
    "token_expired", "session_reused") so clients can tell an expired session
    (prompt re-login) from a forged token (reject outright). message is the
    human-readable text sent to the client; it never carries tokens,
    passwords, or store error text.
    """

    kind: ErrorKind
    code: str
    message: str
    ok: bool = False


Result = Union[Success[T], Failure]


class FailureError(Exception):
    """Carries a Failure across the HTTP boundary.

    Raised only by unwrap() and the auth guard dependency; the exception
    handler in api/main.py is the single place that turns it into a response.
    """

    def __init__(self, failure: Failure) -> None:
        super().__init__(failure.message)
        self.failure = failure


def unwrap(result: Result[T]) -> T:
    """Return the success value or raise FailureError."""
    if isinstance(result, Failure):
        raise FailureError(result)
    return result.value


def validation_error(message: str, code: str = "validation_error") -> Failure:
    return Failure(ErrorKind.VALIDATION, code, message)


def conflict(message: str, code: str = "conflict") -> Failure:
    return Failure(ErrorKind.CONFLICT, code, message)


def unauthorized(message: str, code: str = "unauthorized") -> Failure:
    return Failure(ErrorKind.UNAUTHORIZED, code, message)


def internal_error(message: str = "Something went wrong.", code: str = "internal_error") -> Failure:
    return Failure(ErrorKind.INTERNAL, code, message)
