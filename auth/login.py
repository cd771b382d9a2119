"""
auth/login.py -- Login state machine with brute-force lockout.

Per account, a login attempt finds the account in one of two states:

  Active(n)      n = failed_attempts, 0 <= n < 3
  Locked(until)  locked_until is set and still in the future

  Locked, now < until      any attempt   -> reject (remaining seconds), no write
  Locked, now >= until     treated as Active(0)
  Active(n), n < 2         bad password  -> Active(n + 1), reject "attempt n+1 of 3"
  Active(2)                bad password  -> Locked(now + 60s) with counter 0
  Active(n)                good password -> Active(0), lock cleared, session issued

The lockout policy is fixed: three strikes, sixty seconds.

Security:
  [C1] An unknown email still costs one bcrypt comparison (against the
       vault's dummy hash) and yields the same body a first wrong password
       does, so neither timing nor the first message reveals which emails
       exist. A second failure does: a real account answers "attempt 2 of 3"
       while an unknown email keeps answering "attempt 1 of 3".
  [L1] All counter and lock writes go through AccountStore's conditional
       UPDATEs. This module decides, the store serializes. See auth/store.py.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from auth.errors import ErrorKind, Rejection
from auth.models import Account, Claims
from auth.store import AccountStore
from auth.tokens import CredentialVault, TokenCodec

logger = logging.getLogger("stockkeeper.auth.login")

MAX_FAILED_ATTEMPTS = 3
LOCKOUT_SECONDS = 60


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Session:
    """A successful login: the signed token plus the account it was issued for."""

    token: str
    account: Account

    def profile(self) -> dict:
        """Public view of the account. Never includes the password hash."""
        return {
            "email": self.account.email,
            "name": self.account.name,
            "role": self.account.role.value,
        }


# ---------------------------------------------------------------------------
# Rejection builders -- one place for every user-facing login message
# ---------------------------------------------------------------------------


def _invalid_credentials(attempt: int) -> Rejection:
    return Rejection(
        ErrorKind.INVALID_CREDENTIALS,
        f"Invalid email or password. Attempt {attempt} of {MAX_FAILED_ATTEMPTS}.",
    )


def _locked(until: datetime, now: datetime) -> Rejection:
    # A request that lost a race may hold a `now` from before the winning write.
    wait = min(LOCKOUT_SECONDS, max(1, math.ceil((until - now).total_seconds())))
    return Rejection(ErrorKind.ACCOUNT_LOCKED, f"Account locked. Try again in {wait} seconds.")


def _lockout_triggered() -> Rejection:
    return Rejection(
        ErrorKind.ACCOUNT_LOCKED,
        f"Too many failed attempts. Account locked for {LOCKOUT_SECONDS} seconds.",
    )


def _active_lock(account: Account, now: datetime) -> datetime | None:
    """Return locked_until if the lock is still running at `now`, else None."""
    if account.locked_until is not None and now < account.locked_until:
        return account.locked_until
    return None


# ---------------------------------------------------------------------------
# LoginProcess
# ---------------------------------------------------------------------------


class LoginProcess:
    """Verify credentials, enforce the lockout policy, and issue sessions.

    Args:
        store: AccountStore shared by the whole process.
        vault: CredentialVault used for bcrypt comparisons.
        codec: TokenCodec that signs the issued session.
        clock: Returns the current aware UTC datetime. Tests inject a fake
               clock to step through lock expiry without sleeping.
    """

    def __init__(
        self,
        store: AccountStore,
        vault: CredentialVault,
        codec: TokenCodec,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._vault = vault
        self._codec = codec
        self._clock = clock

    def login(self, email: str, password: str) -> Session | Rejection:
        """Run one login attempt. Returns a Session on success, a Rejection otherwise."""
        now = self._clock()
        account = self._store.get_by_email(email)

        if account is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self._vault.verify(password, self._vault.dummy_hash)
            logger.warning("Login failed: unknown email")
            return _invalid_credentials(1)

        until = _active_lock(account, now)
        if until is not None:
            # Credentials are deliberately not checked while locked.
            logger.warning("Login refused: account %s is locked", account.id)
            return _locked(until, now)

        if not self._vault.verify(password, account.password_hash):
            return self._register_failure(account, now)

        if not self._store.reset_login_state(account.id, now):
            return self._lost_race(account.id, now)

        token = self._codec.issue(
            Claims(
                account_id=account.id,
                role=account.role,
                must_change_password=account.must_change_password,
            ),
            now=now,
        )
        logger.info(
            "Login succeeded for account %s (must_change_password=%s)", account.id, account.must_change_password
        )
        return Session(token=token, account=account)

    def _register_failure(self, account: Account, now: datetime) -> Rejection:
        outcome = self._store.record_failed_attempt(
            account.id,
            now,
            max_attempts=MAX_FAILED_ATTEMPTS,
            lock_for=timedelta(seconds=LOCKOUT_SECONDS),
        )
        if outcome is None:
            # Account deleted between read and write.
            return _invalid_credentials(1)
        if not outcome.applied:
            # A concurrent request locked the account after our read.
            if outcome.locked_until is not None:
                return _locked(outcome.locked_until, now)
            return _invalid_credentials(max(outcome.attempts, 1))
        if outcome.locked_until is not None:
            logger.warning(
                "Account %s locked for %ds after %d failed attempts", account.id, LOCKOUT_SECONDS, MAX_FAILED_ATTEMPTS
            )
            return _lockout_triggered()
        logger.warning(
            "Login failed for account %s (attempt %d of %d)", account.id, outcome.attempts, MAX_FAILED_ATTEMPTS
        )
        return _invalid_credentials(outcome.attempts)

    def _lost_race(self, account_id: int, now: datetime) -> Rejection:
        """Explain why reset_login_state() refused a correct password."""
        current = self._store.get_by_id(account_id)
        if current is not None:
            until = _active_lock(current, now)
            if until is not None:
                return _locked(until, now)
        return _invalid_credentials(1)
