"""In-process adapters for the orders domain ports.

These implementations keep everything in dictionaries and perform no I/O.
They are intended for unit tests and local development where
deterministic behavior is useful and a database is not required.
"""

import uuid
from contextlib import nullcontext
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from .domain import (
    Customer,
    CustomerStore,
    Order,
    OrderLine,
    OrderProductRequest,
    OrderStore,
    Product,
    ProductStore,
    StockUpdate,
    UnitOfWork,
)


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryCustomerRepository(CustomerStore):
    """Customer store backed by a dict keyed by id."""

    def __init__(self, customers: Optional[List[Customer]] = None):
        self.customers: Dict[str, Customer] = {c.id: c for c in customers or []}

    def find_by_id(self, customer_id: str) -> Optional[Customer]:
        return self.customers.get(customer_id)

    def find_by_email(self, email: str) -> Optional[Customer]:
        return next((c for c in self.customers.values() if c.email == email), None)

    def create(self, name: str, email: str) -> Customer:
        customer = Customer(id=_new_id(), name=name, email=email)
        self.customers[customer.id] = customer
        return customer


class InMemoryProductRepository(ProductStore):
    """Product catalog backed by a dict keyed by id.

    Every call to ``update_quantity`` is recorded in ``updates`` so tests
    can assert on the exact stock writes requested.
    """

    def __init__(self, products: Optional[List[Product]] = None):
        self.products: Dict[str, Product] = {p.id: p for p in products or []}
        self.updates: List[List[StockUpdate]] = []

    def find_all_by_id(self, products: List[OrderProductRequest]) -> List[Product]:
        return [self.products[p.id] for p in products if p.id in self.products]

    def update_quantity(self, updates: List[StockUpdate]) -> None:
        self.updates.append(list(updates))
        for u in updates:
            current = self.products[u.id]
            self.products[u.id] = Product(
                id=current.id, price=current.price, quantity=u.quantity, name=current.name
            )

    def find_by_name(self, name: str) -> Optional[Product]:
        return next((p for p in self.products.values() if p.name == name), None)

    def create(self, name: str, price: Decimal, quantity: int) -> Product:
        product = Product(id=_new_id(), price=Decimal(price), quantity=quantity, name=name)
        self.products[product.id] = product
        return product


class InMemoryOrderRepository(OrderStore):
    """Order store keeping created orders in insertion order."""

    def __init__(self):
        self.orders: Dict[str, Order] = {}

    def create(self, customer: Customer, products: List[OrderLine]) -> Order:
        order = Order(
            id=_new_id(),
            customer=customer,
            order_products=list(products),
            created_at=datetime.now(timezone.utc),
        )
        self.orders[order.id] = order
        return order

    def find_by_id(self, order_id: str) -> Optional[Order]:
        return self.orders.get(order_id)


class NullUnitOfWork(UnitOfWork):
    """Unit of work without transactional guarantees."""

    def atomic(self):
        return nullcontext()
