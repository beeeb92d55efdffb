"""SQLAlchemy repository for the product catalog.

This module provides database persistence for catalog products (name,
unit price and available quantity) using SQLAlchemy. It supports creating
products, bulk lookups by id and bulk absolute quantity overwrites.

The connection URL is read from the ``DATABASE_URL`` env var; when it is
not set one is built from the ``DB_*`` variables for PostgreSQL.
"""

import os
import uuid
from contextlib import contextmanager
from decimal import Decimal
from typing import Optional

from sqlalchemy import Integer, Numeric, String, create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Session, mapped_column
from sqlalchemy.pool import StaticPool

DB_HOST = os.getenv("DB_HOST", "inventory-db")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "inventory")
DB_USER = os.getenv("DB_USER", "inventory_user")
DB_PASSWORD = os.getenv("DB_PASSWORD", "inventory-pass")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)


def make_engine(url: str):
    """Create an engine for ``url``.

    In-memory SQLite databases share a single connection so every session
    sees the same data.
    """
    if url.startswith("sqlite") and ":memory:" in url:
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, pool_pre_ping=True)


engine = make_engine(DATABASE_URL)


class Base(DeclarativeBase):
    pass


class ProductRow(Base):
    """SQLAlchemy model representing a catalog product.

    Attributes:
        id: UUID string primary key.
        name: Unique product name.
        price: Unit price with two decimal places.
        quantity: Available quantity in stock.
    """
    __tablename__ = "products"
    id = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = mapped_column(String(255), nullable=False, unique=True)
    price = mapped_column(Numeric(10, 2), nullable=False)
    quantity = mapped_column(Integer, nullable=False, default=0)


def init_db() -> None:
    Base.metadata.create_all(engine)


@contextmanager
def get_session():
    """Context manager that yields a SQLAlchemy session.

    The session is automatically closed when exiting the context.
    """
    with Session(engine) as s:
        yield s


class ProductAlreadyExists(Exception):
    pass


class UnknownProducts(Exception):
    def __init__(self, ids: list[str]):
        super().__init__(", ".join(ids))
        self.ids = ids


def _as_dict(row: ProductRow) -> dict:
    return {"id": row.id, "name": row.name, "price": Decimal(row.price), "quantity": row.quantity}


class InventoryRepo:
    """Repository class for catalog operations."""

    def create(self, name: str, price: Decimal, quantity: int) -> dict:
        """Insert a new product.

        Raises:
            ProductAlreadyExists: If a product with ``name`` already exists.
        """
        with get_session() as s:
            row = ProductRow(id=str(uuid.uuid4()), name=name, price=price, quantity=quantity)
            s.add(row)
            try:
                s.commit()
            except IntegrityError:
                s.rollback()
                raise ProductAlreadyExists(name)
            return _as_dict(row)

    def find_by_name(self, name: str) -> Optional[dict]:
        with get_session() as s:
            row = s.execute(select(ProductRow).where(ProductRow.name == name)).scalars().first()
            return _as_dict(row) if row else None

    def find_all_by_id(self, ids: list[str]) -> list[dict]:
        """Return the products whose id is in ``ids``; unknown ids are skipped."""
        if not ids:
            return []
        with get_session() as s:
            rows = s.execute(select(ProductRow).where(ProductRow.id.in_(ids)).order_by(ProductRow.id)).scalars().all()
            return [_as_dict(r) for r in rows]

    def update_quantity(self, items: list[tuple[str, int]]) -> int:
        """Atomically overwrite quantities for multiple products.

        Uses SELECT FOR UPDATE so concurrent writers serialize. Either all
        quantities are written or none.

        Args:
            items: List of (product_id, new_quantity) tuples.

        Returns:
            int: Number of products updated.

        Raises:
            UnknownProducts: If any id does not exist (nothing is written).
        """
        with get_session() as s:
            wanted = dict(items)
            rows = s.execute(
                select(ProductRow).where(ProductRow.id.in_(list(wanted))).with_for_update()
            ).scalars().all()
            found = {r.id: r for r in rows}
            missing = [pid for pid, _ in items if pid not in found]
            if missing:
                s.rollback()
                raise UnknownProducts(missing)
            for pid, qty in wanted.items():
                found[pid].quantity = qty
            s.commit()
            return len(found)
