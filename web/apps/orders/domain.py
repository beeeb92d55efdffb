"""Domain models, ports, errors and services for orders.

This module contains simple dataclasses used as DTOs for customers,
products and orders, protocol definitions (ports) for the repositories the
services depend on, the typed errors raised when a business rule is
violated, and the domain services themselves. It does not know about
Django, HTTP or any storage engine.
"""

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol


logger = logging.getLogger(__name__)


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class Customer:
    """A customer able to place orders.

    Attributes:
        id: Opaque identifier assigned by the customer store.
        name: Display name.
        email: Contact email, unique across customers.
    """

    id: str
    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class Product:
    """A catalog snapshot of a product.

    Attributes:
        id: Opaque identifier assigned by the catalog.
        price: Unit price, non-negative.
        quantity: Units available in stock, non-negative.
        name: Product name, unique across the catalog.
    """

    id: str
    price: Decimal
    quantity: int
    name: str = ""


@dataclass(frozen=True)
class OrderProductRequest:
    """A requested product and the number of units wanted."""

    id: str
    quantity: int


@dataclass(frozen=True)
class OrderLine:
    """A line item of an order.

    ``price`` is the catalog unit price captured when the order was
    validated; it is never looked up again afterwards.
    """

    product_id: str
    quantity: int
    price: Decimal


@dataclass(frozen=True)
class StockUpdate:
    """Absolute quantity to store for a product."""

    id: str
    quantity: int


@dataclass
class Order:
    """Container for persisted order data.

    Attributes:
        id: Identifier assigned by the order store, or None if not yet saved.
        customer: The customer that placed the order.
        order_products: Line items as persisted by the order store.
        created_at: Creation timestamp, when the store provides one.
    """

    id: Optional[str]
    customer: Customer
    order_products: List[OrderLine] = field(default_factory=list)
    created_at: Optional[datetime] = None


# ---- Errors ----
class OrderError(Exception):
    """Base class for business rule violations.

    Every subclass carries a short machine readable ``code``, a human
    readable ``message`` and the HTTP-style ``status_code`` the API layer
    should answer with. ``ids`` lists the product ids involved, if any.
    """

    code = "ORDER_ERROR"
    message = "Order could not be processed"
    status_code = 400

    def __init__(self, message: Optional[str] = None, ids: Optional[List[str]] = None):
        if message is not None:
            self.message = message
        self.ids = list(ids or [])
        super().__init__(self.message)


class CustomerNotFound(OrderError):
    code = "CUSTOMER_NOT_FOUND"
    message = "Customer not found"


class ProductsNotFound(OrderError):
    code = "PRODUCTS_NOT_FOUND"
    message = "Products not found"


class EmptyOrder(ProductsNotFound):
    code = "EMPTY_ORDER"
    message = "An order needs at least one product"


class ProductsMissing(OrderError):
    code = "PRODUCTS_MISSING"
    message = "Some products were not found"
    status_code = 404


class InsufficientStock(OrderError):
    code = "INSUFFICIENT_STOCK"
    message = "Some products are not available at the moment"


class InvalidQuantity(OrderError):
    code = "INVALID_QUANTITY"
    message = "Product quantities must be positive integers"


class DuplicateProducts(OrderError):
    code = "DUPLICATE_PRODUCTS"
    message = "Each product may appear only once per order"


class OrderNotFound(OrderError):
    code = "ORDER_NOT_FOUND"
    message = "Order not found"
    status_code = 404


class CustomerAlreadyExists(OrderError):
    code = "CUSTOMER_ALREADY_EXISTS"
    message = "This email is already assigned to a customer"


class ProductAlreadyExists(OrderError):
    code = "PRODUCT_ALREADY_EXISTS"
    message = "A product with this name already exists"


# ---- Ports (DIP) ----
class CustomerLookup(Protocol):
    """Port used by the order rule to check that a customer exists."""

    def find_by_id(self, customer_id: str) -> Optional[Customer]:
        raise NotImplementedError()


class CustomerStore(CustomerLookup, Protocol):
    """Customer lookup that can also register new customers."""

    def find_by_email(self, email: str) -> Optional[Customer]:
        raise NotImplementedError()

    def create(self, name: str, email: str) -> Customer:
        raise NotImplementedError()


class ProductCatalog(Protocol):
    """Port describing the catalog operations the order rule needs."""

    def find_all_by_id(self, products: List[OrderProductRequest]) -> List[Product]:
        """Return the catalog entries for the requested product ids.

        Only the ``id`` of each request is used for the lookup. Unknown ids
        are simply absent from the result; the order of the result is not
        guaranteed.
        """
        raise NotImplementedError()

    def update_quantity(self, updates: List[StockUpdate]) -> None:
        """Overwrite the available quantity of each listed product."""
        raise NotImplementedError()


class ProductStore(ProductCatalog, Protocol):
    """Catalog that can also register new products."""

    def find_by_name(self, name: str) -> Optional[Product]:
        raise NotImplementedError()

    def create(self, name: str, price: Decimal, quantity: int) -> Product:
        raise NotImplementedError()


class OrderStore(Protocol):
    """Port describing order persistence."""

    def create(self, customer: Customer, products: List[OrderLine]) -> Order:
        """Persist an order for ``customer`` with the given line items.

        Returns:
            The persisted Order, including the line items as stored.
        """
        raise NotImplementedError()

    def find_by_id(self, order_id: str) -> Optional[Order]:
        raise NotImplementedError()


class UnitOfWork(Protocol):
    """Transactional boundary spanning the repositories of a service."""

    def atomic(self) -> AbstractContextManager:
        raise NotImplementedError()


# ---- Domain services ----
class CreateOrderService:
    """Domain service responsible for creating orders.

    Validates the request against the customer and product repositories,
    prices each line from the catalog snapshot, persists the order and
    decrements stock. Everything runs inside ``unit_of_work.atomic()`` so a
    transactional unit of work can roll back the order when the stock write
    fails.
    """

    def __init__(
        self,
        orders: OrderStore,
        products: ProductCatalog,
        customers: CustomerLookup,
        unit_of_work: UnitOfWork,
    ):
        """Initialize the service with required dependencies.

        Args:
            orders: OrderStore used to persist the order.
            products: ProductCatalog used for lookups and stock updates.
            customers: CustomerLookup used to check the customer exists.
            unit_of_work: UnitOfWork wrapping the whole operation.
        """
        self.orders = orders
        self.products = products
        self.customers = customers
        self.unit_of_work = unit_of_work

    def execute(self, customer_id: str, products: List[OrderProductRequest]) -> Order:
        """Create an order for ``customer_id`` with the requested products.

        Args:
            customer_id: Identifier of the customer placing the order.
            products: Requested product ids and quantities.

        Returns:
            The Order returned by the order store.

        Raises:
            CustomerNotFound: If the customer does not exist.
            EmptyOrder: If no product was requested.
            InvalidQuantity: If a requested quantity is not a positive int.
            DuplicateProducts: If a product id is requested twice.
            ProductsNotFound: If none of the requested products exist.
            ProductsMissing: If some of the requested products do not exist.
            InsufficientStock: If a requested quantity exceeds the stock.
        """
        try:
            with self.unit_of_work.atomic():
                return self._create(customer_id, products)
        except OrderError as e:
            logger.warning(
                "order rejected",
                extra={"customer_id": customer_id, "code": e.code, "ids": e.ids},
            )
            raise

    def _create(self, customer_id: str, products: List[OrderProductRequest]) -> Order:
        customer = self.customers.find_by_id(customer_id)
        if customer is None:
            raise CustomerNotFound()

        self._check_request(products)

        found = self.products.find_all_by_id(products)
        if not found:
            raise ProductsNotFound()

        # Catalog snapshot, reused for pricing and for the stock decrement
        catalog = {p.id: p for p in found}

        missing = [p.id for p in products if p.id not in catalog]
        if missing:
            raise ProductsMissing(ids=missing)

        unavailable = [p.id for p in products if catalog[p.id].quantity < p.quantity]
        if unavailable:
            raise InsufficientStock(ids=unavailable)

        lines = [
            OrderLine(product_id=p.id, quantity=p.quantity, price=catalog[p.id].price)
            for p in products
        ]
        order = self.orders.create(customer=customer, products=lines)

        self.products.update_quantity(
            [
                StockUpdate(
                    id=line.product_id,
                    quantity=catalog[line.product_id].quantity - line.quantity,
                )
                for line in order.order_products
            ]
        )

        logger.info(
            "order created",
            extra={
                "order_id": order.id,
                "customer_id": customer.id,
                "lines": len(order.order_products),
            },
        )
        return order

    @staticmethod
    def _check_request(products: List[OrderProductRequest]) -> None:
        if not products:
            raise EmptyOrder()

        bad = [
            p.id
            for p in products
            if isinstance(p.quantity, bool) or not isinstance(p.quantity, int) or p.quantity <= 0
        ]
        if bad:
            raise InvalidQuantity(ids=bad)

        seen = set()
        duplicated = []
        for p in products:
            if p.id in seen and p.id not in duplicated:
                duplicated.append(p.id)
            seen.add(p.id)
        if duplicated:
            raise DuplicateProducts(ids=duplicated)


class FindOrderService:
    """Fetch a persisted order by its identifier."""

    def __init__(self, orders: OrderStore):
        self.orders = orders

    def execute(self, order_id: str) -> Order:
        order = self.orders.find_by_id(order_id)
        if order is None:
            raise OrderNotFound()
        return order


class CreateCustomerService:
    """Register a new customer, keeping emails unique."""

    def __init__(self, customers: CustomerStore):
        self.customers = customers

    def execute(self, name: str, email: str) -> Customer:
        if self.customers.find_by_email(email) is not None:
            raise CustomerAlreadyExists()
        return self.customers.create(name=name, email=email)


class CreateProductService:
    """Register a new catalog product, keeping names unique."""

    def __init__(self, products: ProductStore):
        self.products = products

    def execute(self, name: str, price: Decimal, quantity: int) -> Product:
        if self.products.find_by_name(name) is not None:
            raise ProductAlreadyExists()
        return self.products.create(name=name, price=price, quantity=quantity)
