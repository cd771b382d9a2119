"""
auth/tokens.py -- Session tokens (TokenCodec) and password hashing (CredentialVault).

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the account id (sub), role, the pending-rotation flag, iat and exp.
       Verification returns None on any failure -- the access gate turns that
       into a 401. The server keeps no session state: the only way to end a
       session early is to rotate SECRET_KEY, which invalidates every token.

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt is the right choice
       for low-entropy secrets because its cost factor makes brute-force
       expensive. The cost factor is bcrypt's default and must not be lowered.
       dummy_hash enables timing equalization in LoginProcess so response
       time does not reveal whether an email exists [C1].

  Both classes are plain objects constructed once at startup (api/main.py
  lifespan) and shared by every request. Neither holds mutable state after
  construction, so concurrent use is safe.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import Claims, Role

logger = logging.getLogger("stockkeeper.auth.tokens")

_ALGORITHM = "HS256"

SESSION_LIFETIME = timedelta(hours=8)

MAX_PASSWORD_BYTES = 72


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def password_too_long(plain: str) -> bool:
    """Return True if plain exceeds what bcrypt will hash (72 UTF-8 bytes)."""
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


class CredentialVault:
    """Salted, deliberately slow one-way password hashing.

    Usage:
        vault = CredentialVault()
        digest = vault.hash("s3cret")
        vault.verify("s3cret", digest)   # True
    """

    def __init__(self) -> None:
        # Computed once so the first unknown-email login is not measurably
        # slower than later ones [C1].
        self.dummy_hash: str = self.hash("stockkeeper_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest of plain. A fresh salt is drawn on every call.

        bcrypt only reads the first 72 bytes and recent releases reject longer
        input outright. Callers check password_too_long() before hashing.
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    def verify(self, plain: str, digest: str) -> bool:
        """Return True if plain matches digest. Malformed digests are a non-match."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), digest.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            return False


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class TokenCodec:
    """Issue and verify signed, time-bounded session tokens.

    The secret is fixed for the lifetime of the codec. Construct one codec per
    process from Settings.secret_key.
    """

    def __init__(self, secret: str, lifetime: timedelta = SESSION_LIFETIME) -> None:
        if not secret:
            raise ValueError("TokenCodec requires a non-empty signing secret.")
        self._secret = secret
        self.lifetime = lifetime

    def issue(self, claims: Claims, now: datetime | None = None) -> str:
        """Encode claims into a signed JWT expiring `lifetime` after issuance.

        Args:
            claims: Identity to embed.
            now:    Issuance time; defaults to the current UTC time. Tests pass
                    a past instant to obtain an already-expired token.
        """
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(claims.account_id),
            "role": claims.role.value,
            "must_change_password": claims.must_change_password,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.lifetime).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> Claims | None:
        """Decode and verify a JWT. Returns Claims, or None on any failure.

        Returning None (rather than raising) keeps the caller simple: any
        invalid, tampered, or expired token is treated as unauthenticated.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        try:
            return Claims(
                account_id=int(payload["sub"]),
                role=Role(payload["role"]),
                must_change_password=bool(payload["must_change_password"]),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Rejected signed token with malformed claims")
            return None
