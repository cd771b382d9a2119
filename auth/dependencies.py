"""
auth/dependencies.py -- The access gate: FastAPI Depends() helpers for protected routes.

Every protected route runs the same checks, in this order, stopping at the
first failure:

  1. No "Authorization: Bearer <token>" header        -> 401 unauthenticated
  2. Token fails signature or expiry verification     -> 401 unauthenticated
  3. Token says a password change is pending and the
     route is not the change-password route           -> 403 must_change_password
  4. Route declares roles and the token's role is
     not among them                                   -> 403 forbidden

A route declares only its roles:

    @router.get("/users")
    def list_users(identity: Claims = Depends(AccessGate(Role.ADMIN))): ...

    AccessGate() with no roles admits any authenticated role.

Body handling (the gate's fifth step) is read_json_body(): requests with a
body are parsed leniently and a parse failure yields an empty payload. Each
handler then validates the fields it needs (see api/models.py). The sixth
step, rendering handler errors, is the exception handlers in api/main.py.

The gate never touches the account store: a verified token is sufficient.
Role or rotation changes therefore take effect at the next login, and a
session stays valid until it expires.

Layer rule: no imports from api/ or inventory/. FastAPI imports are allowed
because this module is part of the dependency injection system.
"""

from __future__ import annotations

import json

from fastapi import Request

from auth.errors import ErrorKind, Rejection, RequestRejected
from auth.models import Claims, Role
from auth.tokens import TokenCodec

CHANGE_PASSWORD_PATH = "/auth/change-password"

_READ_ONLY_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an Authorization header value, or None."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def is_change_password_route(path: str) -> bool:
    """True for the password-rotation route regardless of the API prefix it is mounted under."""
    return path.rstrip("/").endswith(CHANGE_PASSWORD_PATH)


def evaluate_access(
    codec: TokenCodec,
    authorization: str | None,
    path: str,
    allowed_roles: frozenset[Role],
) -> Claims | Rejection:
    """Run gate checks 1-4. Returns the verified Claims or the first Rejection.

    Pure: no I/O beyond the token signature check, so it can be unit tested
    without an app or a database.
    """
    token = bearer_token(authorization)
    if token is None:
        return Rejection(ErrorKind.UNAUTHENTICATED, "Authentication required.")

    claims = codec.verify(token)
    if claims is None:
        return Rejection(ErrorKind.UNAUTHENTICATED, "Invalid or expired token.")

    if claims.must_change_password and not is_change_password_route(path):
        return Rejection(
            ErrorKind.MUST_CHANGE_PASSWORD,
            "You must change your password before continuing.",
        )

    if allowed_roles and claims.role not in allowed_roles:
        return Rejection(ErrorKind.FORBIDDEN, "Insufficient permissions.")

    return claims


class AccessGate:
    """Callable dependency that admits a request or raises RequestRejected.

    The TokenCodec is read from request.app.state.token_codec, which the
    application lifespan creates from Settings.secret_key.
    """

    def __init__(self, *allowed_roles: Role) -> None:
        self.allowed_roles: frozenset[Role] = frozenset(allowed_roles)

    def __call__(self, request: Request) -> Claims:
        codec: TokenCodec = request.app.state.token_codec
        outcome = evaluate_access(
            codec,
            request.headers.get("Authorization"),
            request.url.path,
            self.allowed_roles,
        )
        if isinstance(outcome, Rejection):
            raise RequestRejected(outcome)
        return outcome


async def read_json_body(request: Request) -> dict:
    """Return the JSON object body of a write request, or {} if there is none.

    Malformed JSON, a non-object body, or a read-only method all yield {}.
    Missing required fields are reported later by the handler as a 400 with
    a specific message, which is more useful than a generic parse error.
    """
    if request.method in _READ_ONLY_METHODS:
        return {}
    raw = await request.body()
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}
