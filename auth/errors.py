"""
auth/errors.py -- Error taxonomy shared by the login process, password
rotation, the access gate, and the HTTP layer.

Expected failures (wrong password, locked account, missing token, missing
field) are values, not exceptions: LoginProcess, PasswordRotation and
evaluate_access() return a Rejection. Only the HTTP seam turns a Rejection
into an exception (RequestRejected), because FastAPI dependencies and route
handlers have no other way to short-circuit a request. Anything else that
escapes a handler is an internal error and is rendered generically.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Error kinds with the HTTP status each one maps to.

    The member value is the machine-readable "code" field of error bodies.
    """

    UNAUTHENTICATED = "unauthenticated"
    MUST_CHANGE_PASSWORD = "must_change_password"
    FORBIDDEN = "forbidden"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_LOCKED = "account_locked"
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal_error"

    @property
    def status_code(self) -> int:
        return _STATUS[self]


_STATUS: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.MUST_CHANGE_PASSWORD: 403,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.ACCOUNT_LOCKED: 401,
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


@dataclass(frozen=True)
class Rejection:
    """A terminal, user-facing failure for one request.

    message is shown to the caller verbatim, so it must never contain
    internals (SQL, stack traces, hashes).
    """

    kind: ErrorKind
    message: str

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def to_body(self) -> dict:
        return {"error": self.message, "code": self.kind.value}


class RequestRejected(Exception):
    """Raised at the HTTP seam to short-circuit a request with a Rejection.

    api/main.py registers a handler that renders rejection.to_body() with
    rejection.status_code. No other layer should catch this.
    """

    def __init__(self, rejection: Rejection) -> None:
        super().__init__(rejection.message)
        self.rejection = rejection


def validation_error(message: str) -> RequestRejected:
    """Build the exception a handler raises for a user-actionable input problem.

    Usage:
        raise validation_error("Missing required fields: name.")
    """
    return RequestRejected(Rejection(ErrorKind.VALIDATION, message))
