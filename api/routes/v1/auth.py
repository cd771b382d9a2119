"""
api/routes/v1/auth.py -- Login and password rotation endpoints.

Routes:
  POST /api/v1/auth/login            -- password login; returns a bearer token
  POST /api/v1/auth/change-password  -- rotate own password (any authenticated role)

Security:
  [H2] POST /login is rate-limited per IP (Settings.login_rate_limit).
  [C1] LoginProcess handles timing equalization and lockout -- always go
       through it, never inline store lookups + bcrypt here.
  [M5] Cache-Control: no-store on login responses (success and failure).
  change-password is the one route a session with a pending mandatory
  rotation may reach; the gate recognises it by path.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import ChangePasswordRequest, LoginRequest, LoginResponse, MessageResponse
from auth.dependencies import CHANGE_PASSWORD_PATH, AccessGate, read_json_body
from auth.errors import Rejection, RequestRejected
from auth.login import LoginProcess
from auth.models import Claims
from auth.rotation import PasswordRotation

# Auth policy:
# - POST /api/v1/auth/login:            public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/change-password:  any authenticated role (AccessGate())
router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit)  # [H2]
def login(request: Request, raw: dict = Depends(read_json_body)) -> JSONResponse:
    """Authenticate with email and password; return a session token.

    Wrong password and unknown email produce the same status, code, and
    first-attempt message. The body never contains the password hash.
    """
    body = LoginRequest.parse(raw)
    process: LoginProcess = request.app.state.login_process
    outcome = process.login(body.email, body.password)

    if isinstance(outcome, Rejection):
        resp = JSONResponse(status_code=outcome.status_code, content=outcome.to_body())
    else:
        resp = JSONResponse(
            status_code=200,
            content=LoginResponse.from_session(outcome).model_dump(by_alias=True, mode="json"),
        )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post(CHANGE_PASSWORD_PATH, response_model=MessageResponse)
def change_password(
    request: Request,
    identity: Claims = Depends(AccessGate()),
    raw: dict = Depends(read_json_body),
) -> MessageResponse:
    """Replace the caller's password and clear any pending mandatory rotation.

    The current session keeps its old claims until it expires; the client
    logs in again to obtain a token without the rotation flag.
    """
    body = ChangePasswordRequest.parse(raw)
    rotation: PasswordRotation = request.app.state.password_rotation
    rejection = rotation.rotate(identity.account_id, body.new_password)
    if rejection is not None:
        raise RequestRejected(rejection)
    return MessageResponse(message="Password updated successfully.")
