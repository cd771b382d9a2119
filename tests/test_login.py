"""Unit tests for auth/login.py -- the lockout state machine.

A fake clock drives lock expiry so no test sleeps. Each test gets a fresh
in-memory AccountStore (conftest.account_store).

Covers:
- three wrong passwords: "attempt 1 of 3", "attempt 2 of 3", then lockout
- while locked, even the correct password is refused and nothing is written
- after expiry, a correct login clears the lock; a wrong one counts as attempt 1
- a success resets the counter
- unknown email and first wrong password produce identical rejections
- the session carries the account's role and rotation flag
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.errors import ErrorKind, Rejection
from auth.login import LOCKOUT_SECONDS, MAX_FAILED_ATTEMPTS, LoginProcess, Session
from auth.models import Account, Role

PASSWORD = "right-password"


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def process(account_store, vault, codec, clock) -> LoginProcess:
    return LoginProcess(account_store, vault, codec, clock=clock)


@pytest.fixture
def account_id(account_store, vault) -> int:
    return account_store.create_account(
        Account(
            email="u1@example.com",
            name="User One",
            role=Role.EDITOR,
            password_hash=vault.hash(PASSWORD),
            must_change_password=False,
        )
    )


def _fail(process: LoginProcess) -> Rejection:
    outcome = process.login("u1@example.com", "wrong-password")
    assert isinstance(outcome, Rejection)
    return outcome


class TestLockoutStateMachine:
    def test_policy_constants(self) -> None:
        assert MAX_FAILED_ATTEMPTS == 3
        assert LOCKOUT_SECONDS == 60

    def test_three_strikes_lock_the_account(self, process, account_store, account_id, clock) -> None:
        first = _fail(process)
        assert first.kind is ErrorKind.INVALID_CREDENTIALS
        assert "Attempt 1 of 3" in first.message
        assert account_store.get_by_id(account_id).failed_attempts == 1

        second = _fail(process)
        assert second.kind is ErrorKind.INVALID_CREDENTIALS
        assert "Attempt 2 of 3" in second.message
        assert account_store.get_by_id(account_id).failed_attempts == 2

        third = _fail(process)
        assert third.kind is ErrorKind.ACCOUNT_LOCKED
        assert "locked for 60 seconds" in third.message
        account = account_store.get_by_id(account_id)
        assert account.failed_attempts == 0
        assert account.locked_until == clock.now + timedelta(seconds=60)

    def test_locked_account_refuses_correct_password_without_writes(
        self, process, account_store, account_id, clock
    ) -> None:
        for _ in range(3):
            _fail(process)
        before = account_store.get_by_id(account_id)

        clock.advance(1)
        outcome = process.login("u1@example.com", PASSWORD)
        assert isinstance(outcome, Rejection)
        assert outcome.kind is ErrorKind.ACCOUNT_LOCKED
        assert outcome.message == "Account locked. Try again in 59 seconds."
        assert outcome.status_code == 401

        wrong = _fail(process)
        assert wrong.kind is ErrorKind.ACCOUNT_LOCKED

        after = account_store.get_by_id(account_id)
        assert (after.failed_attempts, after.locked_until) == (before.failed_attempts, before.locked_until)

    def test_remaining_seconds_right_after_lockout(self, process, account_id) -> None:
        for _ in range(3):
            _fail(process)
        outcome = process.login("u1@example.com", PASSWORD)
        assert outcome.message == "Account locked. Try again in 60 seconds."

    def test_expired_lock_then_correct_password_succeeds(self, process, account_store, account_id, clock) -> None:
        for _ in range(3):
            _fail(process)
        clock.advance(LOCKOUT_SECONDS)

        outcome = process.login("u1@example.com", PASSWORD)
        assert isinstance(outcome, Session)
        account = account_store.get_by_id(account_id)
        assert account.locked_until is None
        assert account.failed_attempts == 0

    def test_expired_lock_then_wrong_password_is_attempt_one(
        self, process, account_store, account_id, clock
    ) -> None:
        for _ in range(3):
            _fail(process)
        clock.advance(LOCKOUT_SECONDS + 5)

        outcome = _fail(process)
        assert outcome.kind is ErrorKind.INVALID_CREDENTIALS
        assert "Attempt 1 of 3" in outcome.message
        account = account_store.get_by_id(account_id)
        assert account.failed_attempts == 1
        assert account.locked_until is None

    def test_success_resets_counter(self, process, account_store, account_id) -> None:
        _fail(process)
        _fail(process)
        assert isinstance(process.login("u1@example.com", PASSWORD), Session)
        assert account_store.get_by_id(account_id).failed_attempts == 0
        # A fresh run of failures starts from attempt 1 again.
        assert "Attempt 1 of 3" in _fail(process).message


class TestEnumerationResistance:
    def test_unknown_email_matches_first_wrong_password(self, process, account_id) -> None:
        unknown = process.login("nobody@example.com", "whatever")
        wrong = process.login("u1@example.com", "whatever")
        assert isinstance(unknown, Rejection) and isinstance(wrong, Rejection)
        assert unknown.to_body() == wrong.to_body()
        assert unknown.status_code == wrong.status_code == 401


class TestSession:
    def test_session_carries_role_and_rotation_flag(self, account_store, vault, codec, clock) -> None:
        new_id = account_store.create_account(
            Account(
                email="fresh@example.com",
                name="Fresh",
                role=Role.VIEWER,
                password_hash=vault.hash(PASSWORD),
            )
        )
        outcome = LoginProcess(account_store, vault, codec, clock=clock).login("fresh@example.com", PASSWORD)
        assert isinstance(outcome, Session)
        assert outcome.profile() == {"email": "fresh@example.com", "name": "Fresh", "role": "VIEWER"}

        claims = codec.verify(outcome.token)
        assert claims is not None
        assert claims.account_id == new_id
        assert claims.role is Role.VIEWER
        assert claims.must_change_password is True

    def test_profile_never_exposes_hash(self, process, account_id) -> None:
        outcome = process.login("u1@example.com", PASSWORD)
        assert isinstance(outcome, Session)
        assert "password_hash" not in outcome.profile()
        assert set(outcome.profile()) == {"email", "name", "role"}


class TestLockoutDiscoveredAtWriteTime:
    """Another request locks the account between this request's read and write."""

    @pytest.fixture
    def stale_read(self, account_store, account_id, clock, monkeypatch) -> None:
        snapshot = account_store.get_by_email("u1@example.com")
        lock_for = timedelta(seconds=LOCKOUT_SECONDS)
        # The winning request stamped its lock a second after our clock reading.
        for _ in range(MAX_FAILED_ATTEMPTS):
            account_store.record_failed_attempt(account_id, clock.now + timedelta(seconds=1), 3, lock_for)
        monkeypatch.setattr(account_store, "get_by_email", lambda email: snapshot)

    def test_wrong_password_reports_the_lock(self, process, account_store, account_id, stale_read) -> None:
        outcome = _fail(process)
        assert outcome.kind is ErrorKind.ACCOUNT_LOCKED
        assert outcome.message == "Account locked. Try again in 60 seconds."
        assert account_store.get_by_id(account_id).failed_attempts == 0

    def test_correct_password_reports_the_lock(self, process, account_store, account_id, stale_read) -> None:
        outcome = process.login("u1@example.com", PASSWORD)
        assert isinstance(outcome, Rejection)
        assert outcome.kind is ErrorKind.ACCOUNT_LOCKED
        assert outcome.message == "Account locked. Try again in 60 seconds."
        assert account_store.get_by_id(account_id).locked_until is not None

    def test_wait_never_exceeds_lockout(self, process, account_id, stale_read, clock) -> None:
        clock.advance(0.5)
        assert "Try again in 60 seconds." in _fail(process).message


class TestUnknownEmailCounter:
    def test_unknown_email_never_advances(self, process) -> None:
        messages = [process.login("nobody@example.com", "x").message for _ in range(2)]
        assert all("Attempt 1 of 3" in m for m in messages)
