"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper (same as inventory/store.py).
AccountStore is the repository; _row_to_account is the mapper.
Route and login code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency [L1]:
  Two login attempts for the same account can run at the same time (FastAPI
  runs sync handlers in a thread pool, and there may be several workers).
  The failed-attempt counter is therefore never read, incremented in Python,
  and written back. record_failed_attempt() does the increment-and-compare in
  a single conditional UPDATE, so the database row lock is the only
  synchronization point and it holds across processes. The same WHERE clause
  refuses to touch a row whose lock is still active, so a request that read
  stale "unlocked" state cannot overwrite a lockout set by a concurrent one.
  Both CASE expressions read failed_attempts and rely on SET seeing the
  pre-update row, which holds on SQLite and PostgreSQL. MySQL assigns SET
  columns left to right and would never set locked_until.

Timestamps:
  Stored as fixed-width UTC ISO 8601 strings (always with microseconds and
  +00:00). Fixed width makes lexical comparison in SQL equal chronological
  comparison, which the lockout WHERE clauses rely on.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    case,
    create_engine,
    event,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import Account, FailedAttempt, Role

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'stockkeeper.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("role", String(10), nullable=False, server_default=Role.VIEWER.value),
    Column("must_change_password", Integer, nullable=False, server_default="1"),
    Column("failed_attempts", Integer, nullable=False, server_default="0"),
    Column("locked_until", String(32)),  # fixed-width UTC ISO 8601, NULL = not locked
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _now_iso() -> str:
    return _to_iso(datetime.now(timezone.utc))


def _not_locked_at(now_iso: str):
    """WHERE clause fragment: the row carries no lock, or its lock has expired."""
    return or_(_accounts.c.locked_until.is_(None), _accounts.c.locked_until <= now_iso)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Lifecycle: the constructor opens the engine and creates the schema;
    close() disposes the connection pool. One instance is created at startup
    and shared by every request.

    Usage:
        store = AccountStore("sqlite:///stockkeeper.db")
        account_id = store.create_account(Account(email="a@b.c", name="A", role=Role.ADMIN, password_hash=h))
        account = store.get_by_email("a@b.c")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        POST /users catches it and answers 409.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    email=account.email,
                    name=account.name,
                    password_hash=account.password_hash,
                    role=account.role.value,
                    must_change_password=1 if account.must_change_password else 0,
                    failed_attempts=0,
                    locked_until=None,
                    created_at=_now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def list_accounts(self) -> list[Account]:
        """Return all accounts, newest first. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _accounts.select().order_by(_accounts.c.created_at.desc(), _accounts.c.id.desc())
            ).fetchall()
        return [_row_to_account(r) for r in rows]

    def count_accounts(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_accounts)).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Login state (atomic per account) [L1]
    # ------------------------------------------------------------------

    def record_failed_attempt(
        self,
        account_id: int,
        now: datetime,
        max_attempts: int,
        lock_for: timedelta,
    ) -> FailedAttempt | None:
        """Count one failed login, locking the account when the limit is reached.

        One UPDATE statement computes both new column values from the row's
        current counter: either failed_attempts + 1, or (0, now + lock_for)
        when that increment would reach max_attempts. An expired lock is
        cleared by the same write. The UPDATE is skipped when the account is
        currently locked.

        Returns the post-write state, or None if the account does not exist.
        """
        now_iso = _to_iso(now)
        next_count = _accounts.c.failed_attempts + 1
        trips_lock = next_count >= max_attempts
        with self.engine.begin() as conn:
            result = conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .where(_not_locked_at(now_iso))
                .values(
                    failed_attempts=case((trips_lock, 0), else_=next_count),
                    locked_until=case((trips_lock, _to_iso(now + lock_for)), else_=None),
                )
            )
            row = conn.execute(
                select(_accounts.c.failed_attempts, _accounts.c.locked_until).where(_accounts.c.id == account_id)
            ).fetchone()
        if row is None:
            return None
        return FailedAttempt(
            applied=result.rowcount > 0,
            attempts=row.failed_attempts,
            locked_until=_from_iso(row.locked_until),
        )

    def reset_login_state(self, account_id: int, now: datetime) -> bool:
        """Clear the failed-attempt counter and any expired lock after a successful login.

        Returns False (and writes nothing) if the account is missing or was
        locked by a concurrent request after the caller checked it.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .where(_not_locked_at(_to_iso(now)))
                .values(failed_attempts=0, locked_until=None)
            )
        return result.rowcount > 0

    def set_password(self, account_id: int, password_hash: str, must_change_password: bool) -> bool:
        """Replace the password hash and set the rotation flag.

        PasswordRotation passes must_change_password=False; an administrative
        reset passes True. Returns False if account_id was not found.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(
                    password_hash=password_hash,
                    must_change_password=1 if must_change_password else 0,
                )
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        name=row.name,
        password_hash=row.password_hash,
        role=Role(row.role),
        must_change_password=bool(row.must_change_password),
        failed_attempts=row.failed_attempts,
        locked_until=_from_iso(row.locked_until),
        created_at=row.created_at,
    )
