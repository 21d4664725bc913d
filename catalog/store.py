"""
catalog/store.py -- SQLAlchemy-backed persistence layer for products.

Uses SQLAlchemy Core (not ORM) so the dataclasses in catalog/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. ProductRepository is the interface the
service depends on; ProductStore is the SQL implementation and _row_to_product
is the mapper. Tests substitute an in-memory implementation of the same
protocol.

The store does no validation and assigns no ids or timestamps -- those are
ProductService decisions. It raises SQLAlchemy exceptions untouched; the
service maps them onto the error taxonomy.

Security: all queries use bound parameters. Substring filters escape LIKE
wildcards so a client-supplied "%" matches a literal percent sign.

Usage:
    store = ProductStore()                               # SQLite default
    store = ProductStore("postgresql://user:pw@host/db") # PostgreSQL
    store.insert(product)
    products = store.list(ProductFilters(category="elect"))
    store.close()
"""

from __future__ import annotations

from typing import Optional, Protocol

from sqlalchemy import Boolean, Column, Float, Integer, MetaData, String, Table, Text, select
from sqlalchemy.engine import Engine

from catalog.models import Product, ProductFilters
from core.config import get_settings
from core.db import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_products = Table(
    "products",
    metadata,
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("id", String(24), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    # Lowercased name; the UNIQUE index makes names unique case-insensitively.
    Column("name_key", String(100), nullable=False, unique=True),
    Column("price", Float, nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("category", String(20), nullable=False),
    Column("in_stock", Boolean, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Attribute name on Product -> column name. Only these may be written.
_WRITABLE = {
    "name": "name",
    "price": "price",
    "description": "description",
    "category": "category",
    "in_stock": "in_stock",
    "updated_at": "updated_at",
}


class ProductRepository(Protocol):
    """What ProductService needs from a product store."""

    def list(self, filters: ProductFilters) -> list[Product]: ...

    def get(self, product_id: str) -> Optional[Product]: ...

    def insert(self, product: Product) -> None: ...

    def update(self, product_id: str, fields: dict) -> bool: ...

    def delete(self, product_id: str) -> bool: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_filter_clauses(filters: ProductFilters) -> list:
    """Translate ProductFilters into SQLAlchemy WHERE clauses (ANDed by caller).

    An unset filter contributes no clause, so ProductFilters() selects everything.
    """
    clauses = []
    if filters.category is not None:
        clauses.append(_products.c.category.ilike(_like_pattern(filters.category), escape="\\"))
    if filters.name is not None:
        clauses.append(_products.c.name.ilike(_like_pattern(filters.name), escape="\\"))
    if filters.in_stock is not None:
        clauses.append(_products.c.in_stock == filters.in_stock)
    if filters.min_price is not None:
        clauses.append(_products.c.price >= filters.min_price)
    if filters.max_price is not None:
        clauses.append(_products.c.price <= filters.max_price)
    return clauses


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ProductStore:
    """SQL implementation of ProductRepository."""

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def list(self, filters: ProductFilters) -> list[Product]:
        """Return matching products, newest-created first."""
        query = (
            select(_products)
            .where(*build_filter_clauses(filters))
            .order_by(_products.c.created_at.desc(), _products.c.pk.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_product(r) for r in rows]

    def get(self, product_id: str) -> Optional[Product]:
        with self.engine.connect() as conn:
            row = conn.execute(select(_products).where(_products.c.id == product_id)).fetchone()
        return _row_to_product(row) if row is not None else None

    def insert(self, product: Product) -> None:
        """Persist a fully-populated product (id and timestamps already set).

        Raises sqlalchemy.exc.IntegrityError if the name is already taken.
        """
        with self.engine.connect() as conn:
            conn.execute(
                _products.insert().values(
                    id=product.id,
                    name=product.name,
                    name_key=product.name.lower(),
                    price=product.price,
                    description=product.description,
                    category=product.category,
                    in_stock=product.in_stock,
                    created_at=product.created_at,
                    updated_at=product.updated_at,
                )
            )
            conn.commit()

    def update(self, product_id: str, fields: dict) -> bool:
        """Write the given Product attributes. Returns False if product_id is unknown.

        Raises ValueError for attributes that are not writable, and
        sqlalchemy.exc.IntegrityError if a rename collides with another product.
        """
        unknown = set(fields) - set(_WRITABLE)
        if unknown:
            raise ValueError(f"Unknown product fields: {unknown!r}")
        values = {_WRITABLE[key]: value for key, value in fields.items()}
        if "name" in values:
            values["name_key"] = values["name"].lower()
        with self.engine.connect() as conn:
            result = conn.execute(_products.update().where(_products.c.id == product_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete(self, product_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_products.delete().where(_products.c.id == product_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_product(row) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        price=row.price,
        description=row.description,
        category=row.category,
        in_stock=bool(row.in_stock),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
