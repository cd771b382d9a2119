"""
tests/conftest.py -- Shared test fixtures for Stockkeeper tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for accounts + inventory
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: Harness around a TestClient with helpers to seed accounts and mint tokens
  - vault / codec: shared unit-test instances (bcrypt setup is slow, build once)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process.

SECRET_KEY must be set before any project import: get_settings() refuses to
build Settings without it. Rate limiting is switched off so the suite can log
in more often than a real client is allowed to.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set before any auth/core/api import.
TEST_SECRET = "stockkeeper-test-secret-0123456789abcdef0123456789abcdef"
os.environ.setdefault("SECRET_KEY", TEST_SECRET)
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, attach_services
from auth.models import Account, Claims, Role
from auth.store import AccountStore
from auth.tokens import CredentialVault, TokenCodec
from inventory.store import InventoryStore

DEFAULT_PASSWORD = "correct-horse-battery"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[AccountStore, InventoryStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB names so tests never
                   share state.
    """
    accounts_url = f"sqlite:///file:test_accounts_{db_suffix}?mode=memory&cache=shared&uri=true"
    inventory_url = f"sqlite:///file:test_inventory_{db_suffix}?mode=memory&cache=shared&uri=true"
    return AccountStore(db_url=accounts_url), InventoryStore(db_url=inventory_url)


def _patch_lifespan(account_store: AccountStore, inventory: InventoryStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state through the same
    attach_services() the production lifespan uses.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        limiter.enabled = False
        attach_services(app, account_store, inventory, TEST_SECRET)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


@dataclass
class Harness:
    """Everything an integration test needs: the client and the live stores behind it."""

    client: TestClient
    accounts: AccountStore
    inventory: InventoryStore
    vault: CredentialVault
    codec: TokenCodec

    def add_account(
        self,
        email: str,
        role: Role = Role.VIEWER,
        password: str = DEFAULT_PASSWORD,
        name: str = "Test User",
        must_change_password: bool = False,
    ) -> int:
        return self.accounts.create_account(
            Account(
                email=email,
                name=name,
                role=role,
                password_hash=self.vault.hash(password),
                must_change_password=must_change_password,
            )
        )

    def token_for(self, account_id: int, role: Role, must_change_password: bool = False) -> str:
        return self.codec.issue(Claims(account_id=account_id, role=role, must_change_password=must_change_password))

    def headers_for(self, account_id: int, role: Role, must_change_password: bool = False) -> dict:
        return {"Authorization": f"Bearer {self.token_for(account_id, role, must_change_password)}"}

    def login(self, email: str, password: str = DEFAULT_PASSWORD):
        return self.client.post("/api/v1/auth/login", json={"email": email, "password": password})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def api() -> Generator[Harness, None, None]:
    """Yield a Harness over the real FastAPI app with isolated in-memory stores."""
    account_store, inventory = _make_test_stores(uuid.uuid4().hex[:12])
    app.router.lifespan_context = _patch_lifespan(account_store, inventory)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield Harness(
            client=client,
            accounts=account_store,
            inventory=inventory,
            vault=app.state.vault,
            codec=app.state.token_codec,
        )

    account_store.close()
    inventory.close()


@pytest.fixture(scope="session")
def vault() -> CredentialVault:
    return CredentialVault()


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TEST_SECRET)


@pytest.fixture
def account_store() -> Generator[AccountStore, None, None]:
    store = AccountStore("sqlite:///:memory:")
    yield store
    store.close()
