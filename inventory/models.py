"""
inventory/models.py -- Domain dataclasses for the product catalog.

These are pure data containers with zero logic. Persistence lives in
inventory/store.py; request validation lives in api/models.py.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass
class ProductType:
    """A product category (e.g. "Fresh coconut"). Referenced by Product.type_id."""

    name: str
    id: Optional[int] = None


@dataclass
class Product:
    """A stocked item with an expiration date.

    type is populated by list/get queries that join product_types; it is None
    on a freshly constructed Product that has not been written yet.

    id is None before the record is written to the database.
    """

    name: str
    expiration: date
    type_id: int
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    type: Optional[ProductType] = None
