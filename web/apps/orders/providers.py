"""Service provider helpers for wiring the domain services with ports.

The views never build repositories themselves; they ask these factories
for configured services. The product catalog is served by the inventory
service over HTTP when ``settings.USE_HTTP_ADAPTERS`` is truthy, and by the
local database otherwise. Customers and orders always live in the local
database.
"""

from django.conf import settings

from .domain import (
    CreateCustomerService,
    CreateOrderService,
    CreateProductService,
    FindOrderService,
    ProductStore,
)
from .http_adapters import HttpProductCatalog
from .repository import CustomerRepository, DjangoUnitOfWork, OrderRepository, ProductRepository


def get_product_store() -> ProductStore:
    """Return the configured product catalog implementation."""
    if getattr(settings, "USE_HTTP_ADAPTERS", False):
        return HttpProductCatalog()
    return ProductRepository()


def get_create_order_service() -> CreateOrderService:
    """Return a CreateOrderService wrapped in a database transaction.

    With the HTTP catalog the transaction still covers the order rows, so
    a failed stock write rolls the order back, but the catalog lookup is
    not locked.
    """
    return CreateOrderService(
        orders=OrderRepository(),
        products=get_product_store(),
        customers=CustomerRepository(),
        unit_of_work=DjangoUnitOfWork(),
    )


def get_find_order_service() -> FindOrderService:
    return FindOrderService(orders=OrderRepository())


def get_create_customer_service() -> CreateCustomerService:
    return CreateCustomerService(customers=CustomerRepository())


def get_create_product_service() -> CreateProductService:
    return CreateProductService(products=get_product_store())
