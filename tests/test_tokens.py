"""Unit tests for auth/tokens.py -- CredentialVault and TokenCodec.

Covers:
- bcrypt digests are salted (same password, different digest) and verify correctly
- malformed digests are a non-match, never an exception
- issued tokens verify back to identical claims
- expired, tampered, foreign-secret, and garbage tokens verify to None
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import Claims, Role
from auth.tokens import SESSION_LIFETIME, TokenCodec, password_too_long


class TestCredentialVault:
    def test_same_password_hashes_differently(self, vault) -> None:
        assert vault.hash("hunter22") != vault.hash("hunter22")

    def test_verify_matches_only_the_original_password(self, vault) -> None:
        digest = vault.hash("hunter22")
        assert vault.verify("hunter22", digest) is True
        assert vault.verify("hunter23", digest) is False

    @pytest.mark.parametrize("digest", ["", "not-a-bcrypt-hash", "$2b$12$short"])
    def test_malformed_digest_is_a_non_match(self, vault, digest: str) -> None:
        assert vault.verify("anything", digest) is False

    def test_dummy_hash_is_a_real_digest(self, vault) -> None:
        assert vault.dummy_hash.startswith("$2")
        assert vault.verify("anything", vault.dummy_hash) is False

    def test_password_length_limit_counts_bytes(self) -> None:
        assert password_too_long("a" * 72) is False
        assert password_too_long("a" * 73) is True
        # 36 two-byte characters = 72 bytes; one more crosses the limit
        assert password_too_long("é" * 36) is False
        assert password_too_long("é" * 37) is True


class TestTokenCodec:
    def test_issue_then_verify_recovers_claims(self, codec: TokenCodec) -> None:
        claims = Claims(account_id=42, role=Role.EDITOR, must_change_password=True)
        assert codec.verify(codec.issue(claims)) == claims

    def test_token_expires_after_eight_hours(self, codec: TokenCodec) -> None:
        assert SESSION_LIFETIME == timedelta(hours=8)
        claims = Claims(account_id=1, role=Role.ADMIN, must_change_password=False)

        recent = datetime.now(timezone.utc) - timedelta(hours=7, minutes=59)
        assert codec.verify(codec.issue(claims, now=recent)) == claims

        stale = datetime.now(timezone.utc) - timedelta(hours=8, minutes=1)
        assert codec.verify(codec.issue(claims, now=stale)) is None

    def test_payload_carries_iat_and_exp(self, codec: TokenCodec) -> None:
        issued = datetime(2030, 1, 1, tzinfo=timezone.utc)
        token = codec.issue(Claims(account_id=7, role=Role.VIEWER, must_change_password=False), now=issued)
        payload = jwt.get_unverified_claims(token)
        assert payload["sub"] == "7"
        assert payload["role"] == "VIEWER"
        assert payload["exp"] - payload["iat"] == 8 * 3600

    def test_tampered_token_is_invalid(self, codec: TokenCodec) -> None:
        token = codec.issue(Claims(account_id=1, role=Role.VIEWER, must_change_password=False))
        header, payload, signature = token.split(".")
        forged = jwt.encode(
            {"sub": "1", "role": "ADMIN", "must_change_password": False, "exp": 4102444800},
            "some-other-secret-that-is-long-enough-0000",
            algorithm="HS256",
        ).split(".")[1]
        assert codec.verify(f"{header}.{forged}.{signature}") is None

    def test_token_from_another_secret_is_invalid(self, codec: TokenCodec) -> None:
        other = TokenCodec("a-completely-different-secret-value-0123456789")
        token = other.issue(Claims(account_id=1, role=Role.ADMIN, must_change_password=False))
        assert codec.verify(token) is None

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "Bearer x"])
    def test_garbage_is_invalid_not_an_error(self, codec: TokenCodec, token: str) -> None:
        assert codec.verify(token) is None

    def test_signed_token_with_unknown_role_is_invalid(self) -> None:
        secret = "role-check-secret-0123456789abcdef0123"
        token = jwt.encode(
            {"sub": "1", "role": "ROOT", "must_change_password": False, "exp": 4102444800},
            secret,
            algorithm="HS256",
        )
        assert TokenCodec(secret).verify(token) is None

    def test_empty_secret_is_refused(self) -> None:
        with pytest.raises(ValueError):
            TokenCodec("")
