"""Unit tests for auth/rotation.py -- PasswordRotation."""

import pytest

from auth.errors import ErrorKind
from auth.models import Account, Role
from auth.rotation import PasswordRotation


@pytest.fixture
def rotation(account_store, vault) -> PasswordRotation:
    return PasswordRotation(account_store, vault)


@pytest.fixture
def account_id(account_store, vault) -> int:
    return account_store.create_account(
        Account(email="r@example.com", name="R", role=Role.VIEWER, password_hash=vault.hash("temporary"))
    )


def test_rotate_rehashes_and_clears_flag(rotation, account_store, vault, account_id) -> None:
    assert rotation.rotate(account_id, "brand-new-pass") is None

    account = account_store.get_by_id(account_id)
    assert account.must_change_password is False
    assert vault.verify("brand-new-pass", account.password_hash)
    assert not vault.verify("temporary", account.password_hash)


def test_repeating_the_same_password_rehashes(rotation, account_store, account_id) -> None:
    rotation.rotate(account_id, "same-pass")
    first = account_store.get_by_id(account_id).password_hash
    rotation.rotate(account_id, "same-pass")
    second = account_store.get_by_id(account_id).password_hash
    assert first != second


@pytest.mark.parametrize("new_password", [None, ""])
def test_missing_password_is_a_validation_error(rotation, account_store, account_id, new_password) -> None:
    rejection = rotation.rotate(account_id, new_password)
    assert rejection is not None
    assert rejection.kind is ErrorKind.VALIDATION
    assert rejection.status_code == 400
    assert account_store.get_by_id(account_id).must_change_password is True


def test_overlong_password_is_a_validation_error(rotation, account_id) -> None:
    rejection = rotation.rotate(account_id, "x" * 73)
    assert rejection is not None
    assert rejection.kind is ErrorKind.VALIDATION


def test_weak_passwords_are_accepted(rotation, account_id) -> None:
    assert rotation.rotate(account_id, "a") is None


def test_missing_account_is_unauthenticated(rotation) -> None:
    rejection = rotation.rotate(9999, "whatever")
    assert rejection is not None
    assert rejection.kind is ErrorKind.UNAUTHENTICATED
