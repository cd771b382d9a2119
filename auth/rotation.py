"""
auth/rotation.py -- Forced and voluntary password change.

No strength policy is applied: any non-empty password bcrypt can hash is
accepted. Each call re-hashes with a fresh salt, even when the new password
equals the current one.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

import logging

from auth.errors import ErrorKind, Rejection
from auth.store import AccountStore
from auth.tokens import MAX_PASSWORD_BYTES, CredentialVault, password_too_long

logger = logging.getLogger("stockkeeper.auth.rotation")


class PasswordRotation:
    def __init__(self, store: AccountStore, vault: CredentialVault) -> None:
        self._store = store
        self._vault = vault

    def rotate(self, account_id: int, new_password: str | None) -> Rejection | None:
        """Set a new password and clear the must-change flag.

        Returns None on success, or a Rejection:
          validation_error -- new_password missing, empty, or too long for bcrypt
          unauthenticated  -- the account behind the session no longer exists
        """
        if not new_password:
            return Rejection(ErrorKind.VALIDATION, "New password is required.")
        if password_too_long(new_password):
            return Rejection(ErrorKind.VALIDATION, f"New password must be at most {MAX_PASSWORD_BYTES} bytes.")

        digest = self._vault.hash(new_password)
        if not self._store.set_password(account_id, digest, must_change_password=False):
            logger.warning("Password change for missing account %s", account_id)
            return Rejection(ErrorKind.UNAUTHENTICATED, "Account no longer exists.")
        logger.info("Password changed for account %s", account_id)
        return None
