"""
api/routes/v1/users.py -- Account administration endpoints (ADMIN only).

Routes:
  GET  /api/v1/users   -- list accounts, newest first
  POST /api/v1/users   -- create an account with a temporary password

Every account created here starts with must_change_password=True, so the new
user can do nothing but change-password until they pick their own password.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.models import UserCreate, UserResponse
from auth.dependencies import AccessGate, read_json_body
from auth.errors import ErrorKind, Rejection, RequestRejected, validation_error
from auth.models import Account, Claims, Role
from auth.store import AccountStore
from auth.tokens import MAX_PASSWORD_BYTES, CredentialVault, password_too_long

logger = logging.getLogger("stockkeeper.api.users")

# Auth policy:
# - GET  /api/v1/users:  ADMIN
# - POST /api/v1/users:  ADMIN
router = APIRouter()

_admins = AccessGate(Role.ADMIN)


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, identity: Claims = Depends(_admins)) -> list[UserResponse]:
    accounts: AccountStore = request.app.state.account_store
    return [UserResponse.from_domain(a) for a in accounts.list_accounts()]


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    identity: Claims = Depends(_admins),
    raw: dict = Depends(read_json_body),
) -> UserResponse:
    """Create an account. The password given here is temporary by construction."""
    body = UserCreate.parse(raw)
    if password_too_long(body.password):
        raise validation_error(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

    accounts: AccountStore = request.app.state.account_store
    vault: CredentialVault = request.app.state.vault

    # Existence pre-check gives a clean 409 in the common case; the UNIQUE
    # constraint still decides when two creates race.
    if accounts.get_by_email(body.email) is not None:
        raise RequestRejected(Rejection(ErrorKind.CONFLICT, "An account with that email already exists."))

    new_account = Account(
        email=body.email,
        name=body.name,
        role=body.role,
        password_hash=vault.hash(body.password),
        must_change_password=True,
    )
    try:
        account_id = accounts.create_account(new_account)
    except IntegrityError as exc:
        raise RequestRejected(
            Rejection(ErrorKind.CONFLICT, "An account with that email already exists.")
        ) from exc

    logger.info("Account %s created by admin %s (role=%s)", account_id, identity.account_id, body.role.value)
    return UserResponse.from_domain(accounts.get_by_id(account_id))
