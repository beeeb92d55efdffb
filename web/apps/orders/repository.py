"""Repository layer backed by the Django ORM.

The repositories implement the domain ports and translate between the ORM
models and the domain dataclasses, so the domain layer never sees Django
types. ``DjangoUnitOfWork`` supplies the transactional boundary used by
``CreateOrderService``.
"""

import uuid
from decimal import Decimal
from typing import Iterable, List, Optional

from django.db import IntegrityError, transaction

from .domain import (
    Customer,
    CustomerAlreadyExists,
    CustomerStore,
    Order,
    OrderLine,
    OrderProductRequest,
    OrderStore,
    Product,
    ProductAlreadyExists,
    ProductStore,
    StockUpdate,
    UnitOfWork,
)
from .models import CustomerModel, OrderModel, OrderProductModel, ProductModel


def _as_uuid(value) -> Optional[uuid.UUID]:
    """Parse ``value`` as a UUID, returning None when it is not one.

    Ids that are not UUIDs cannot belong to any row, so lookups treat them
    as unknown instead of letting the ORM raise a validation error.
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _valid_uuids(values: Iterable) -> List[uuid.UUID]:
    return [u for u in (_as_uuid(v) for v in values) if u is not None]


def _to_customer(obj: CustomerModel) -> Customer:
    return Customer(id=str(obj.id), name=obj.name, email=obj.email)


def _to_product(obj: ProductModel) -> Product:
    return Product(id=str(obj.id), price=obj.price, quantity=obj.quantity, name=obj.name)


class CustomerRepository(CustomerStore):
    """Customer store persisting ``CustomerModel`` rows."""

    def find_by_id(self, customer_id: str) -> Optional[Customer]:
        pk = _as_uuid(customer_id)
        if pk is None:
            return None
        obj = CustomerModel.objects.filter(pk=pk).first()
        return _to_customer(obj) if obj else None

    def find_by_email(self, email: str) -> Optional[Customer]:
        obj = CustomerModel.objects.filter(email=email).first()
        return _to_customer(obj) if obj else None

    def create(self, name: str, email: str) -> Customer:
        try:
            with transaction.atomic():
                obj = CustomerModel.objects.create(name=name, email=email)
        except IntegrityError as e:
            raise CustomerAlreadyExists() from e
        return _to_customer(obj)


class ProductRepository(ProductStore):
    """Product catalog persisting ``ProductModel`` rows.

    When called inside an atomic block the bulk lookup locks the selected
    rows (``SELECT ... FOR UPDATE``) until the transaction ends, so the
    stock check and the later decrement see the same quantities.
    """

    def find_all_by_id(self, products: List[OrderProductRequest]) -> List[Product]:
        ids = _valid_uuids(p.id for p in products)
        if not ids:
            return []
        qs = ProductModel.objects.filter(pk__in=ids).order_by("pk")
        if transaction.get_connection().in_atomic_block:
            qs = qs.select_for_update()
        return [_to_product(obj) for obj in qs]

    def update_quantity(self, updates: List[StockUpdate]) -> None:
        """Overwrite stock quantities in a single bulk statement.

        Raises:
            ProductModel.DoesNotExist: If an update names an unknown product.
        """
        if not updates:
            return
        objs = {str(o.pk): o for o in ProductModel.objects.filter(pk__in=_valid_uuids(u.id for u in updates))}
        for u in updates:
            obj = objs.get(str(_as_uuid(u.id)))
            if obj is None:
                raise ProductModel.DoesNotExist(f"Product {u.id} does not exist")
            obj.quantity = u.quantity
        ProductModel.objects.bulk_update(list(objs.values()), ["quantity"])

    def find_by_name(self, name: str) -> Optional[Product]:
        obj = ProductModel.objects.filter(name=name).first()
        return _to_product(obj) if obj else None

    def create(self, name: str, price: Decimal, quantity: int) -> Product:
        """Insert a product row.

        Raises:
            ProductAlreadyExists: If another row already holds ``name``.
        """
        try:
            with transaction.atomic():
                obj = ProductModel.objects.create(name=name, price=price, quantity=quantity)
        except IntegrityError as e:
            raise ProductAlreadyExists() from e
        return _to_product(obj)


class OrderRepository(OrderStore):
    """Order store persisting ``OrderModel`` and ``OrderProductModel`` rows."""

    def create(self, customer: Customer, products: List[OrderLine]) -> Order:
        """Persist a new order and its line items.

        Args:
            customer: The domain customer placing the order.
            products: Line items to attach to the order.

        Returns:
            The persisted Order mapped back into the domain.
        """
        with transaction.atomic():
            obj = OrderModel.objects.create(customer_id=_as_uuid(customer.id))
            OrderProductModel.objects.bulk_create(
                [
                    OrderProductModel(
                        order=obj,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        price=line.price,
                        position=i,
                    )
                    for i, line in enumerate(products)
                ]
            )
        return self.find_by_id(str(obj.id))

    def find_by_id(self, order_id: str) -> Optional[Order]:
        pk = _as_uuid(order_id)
        if pk is None:
            return None
        obj = (
            OrderModel.objects.select_related("customer")
            .prefetch_related("order_products")
            .filter(pk=pk)
            .first()
        )
        if obj is None:
            return None
        return Order(
            id=str(obj.id),
            customer=_to_customer(obj.customer),
            order_products=[
                OrderLine(product_id=op.product_id, quantity=op.quantity, price=op.price)
                for op in obj.order_products.all()
            ],
            created_at=obj.created_at,
        )


class DjangoUnitOfWork(UnitOfWork):
    """Unit of work mapped onto a database transaction."""

    def atomic(self):
        return transaction.atomic()
