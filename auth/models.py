"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in inventory/models.py -- dataclasses own domain shape; stores, the login
process and routes do the work.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Closed set of roles. The member value is the wire and storage value."""

    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"


@dataclass
class Account:
    """A login identity for the inventory application.

    password_hash is a bcrypt digest and must never leave the server. It is
    deliberately absent from every API response model.

    must_change_password starts True for every new account and after an
    administrative password reset; only a successful rotation clears it.

    failed_attempts stays in [0, 3). The store resets it to 0 in the same
    UPDATE that sets locked_until, so the two never disagree.

    locked_until is an aware UTC datetime. A value in the past is treated as
    "not locked" without needing a write to clear it.
    """

    email: str
    name: str
    role: Role
    password_hash: str
    id: int | None = None
    must_change_password: bool = True
    failed_attempts: int = 0
    locked_until: datetime | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Claims:
    """Identity asserted by a verified session token, as of issuance time."""

    account_id: int
    role: Role
    must_change_password: bool


@dataclass(frozen=True)
class FailedAttempt:
    """Post-write state returned by AccountStore.record_failed_attempt().

    applied is False when the conditional UPDATE matched nothing because a
    concurrent request had already locked the account. attempts and
    locked_until always reflect the row as it is after the call.
    """

    applied: bool
    attempts: int
    locked_until: datetime | None
