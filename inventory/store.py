"""
inventory/store.py -- SQLAlchemy-backed persistence layer for the product catalog.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in inventory/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. InventoryStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = InventoryStore()                               # SQLite default
    store = InventoryStore("postgresql://user:pw@host/db") # PostgreSQL
    type_id = store.create_type("Dried coconut")
    store.create_product(Product(name="Batch 7", expiration=date(2026, 1, 31), type_id=type_id))
    products = store.list_products()
    store.close()
"""

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from inventory.models import Product, ProductType

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'stockkeeper.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_types = Table(
    "product_types",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
)

_products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("expiration", String(10), nullable=False),  # YYYY-MM-DD
    Column("type_id", Integer, ForeignKey("product_types.id"), nullable=False),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """WAL for concurrent reads; foreign_keys so type_id is enforced by SQLite too."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class InventoryStore:
    """Repository for Product and ProductType entities."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Product types
    # ------------------------------------------------------------------

    def list_types(self) -> list[ProductType]:
        with self.engine.connect() as conn:
            rows = conn.execute(_types.select().order_by(_types.c.name)).fetchall()
        return [_row_to_type(r) for r in rows]

    def get_type(self, type_id: int) -> Optional[ProductType]:
        with self.engine.connect() as conn:
            row = conn.execute(_types.select().where(_types.c.id == type_id)).fetchone()
        return _row_to_type(row) if row is not None else None

    def create_type(self, name: str) -> int:
        """Insert a product type and return its ID. Existing names are reused, not duplicated."""
        with self.engine.begin() as conn:
            existing = conn.execute(select(_types.c.id).where(_types.c.name == name)).scalar()
            if existing is not None:
                return existing
            result = conn.execute(_types.insert().values(name=name))
            return result.inserted_primary_key[0]

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def list_products(self) -> list[Product]:
        """Return all products with their type, newest first."""
        stmt = (
            select(_products, _types.c.name.label("type_name"))
            .select_from(_products.outerjoin(_types, _products.c.type_id == _types.c.id))
            .order_by(_products.c.created_at.desc(), _products.c.id.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_product(r) for r in rows]

    def get_product(self, product_id: int) -> Optional[Product]:
        stmt = (
            select(_products, _types.c.name.label("type_name"))
            .select_from(_products.outerjoin(_types, _products.c.type_id == _types.c.id))
            .where(_products.c.id == product_id)
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_product(row) if row is not None else None

    def create_product(self, product: Product) -> int:
        """Insert a product and return its ID.

        The caller is expected to have checked that product.type_id exists;
        a dangling type_id raises sqlalchemy.exc.IntegrityError on SQLite
        (foreign_keys pragma) and PostgreSQL alike.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _products.insert().values(
                    name=product.name,
                    expiration=product.expiration.isoformat(),
                    type_id=product.type_id,
                    created_at=_now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def delete_product(self, product_id: int) -> bool:
        """Delete a product. Returns True if deleted, False if not found."""
        with self.engine.begin() as conn:
            result = conn.execute(_products.delete().where(_products.c.id == product_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Aggregates (dashboard)
    # ------------------------------------------------------------------

    def count_products(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_products)).scalar()
        return result or 0

    def product_counts_by_type(self) -> list[tuple[str, int]]:
        """Return (type name, product count) for every type, including empty ones.

        Single aggregate query: LEFT JOIN + GROUP BY instead of one count per type.
        """
        stmt = (
            select(_types.c.name, func.count(_products.c.id))
            .select_from(_types.outerjoin(_products, _products.c.type_id == _types.c.id))
            .group_by(_types.c.id, _types.c.name)
            .order_by(_types.c.name)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [(name, count) for name, count in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_type(row) -> ProductType:
    return ProductType(id=row.id, name=row.name)


def _row_to_product(row) -> Product:
    product_type = ProductType(id=row.type_id, name=row.type_name) if row.type_name is not None else None
    return Product(
        id=row.id,
        name=row.name,
        expiration=date.fromisoformat(row.expiration),
        type_id=row.type_id,
        created_at=row.created_at,
        type=product_type,
    )
