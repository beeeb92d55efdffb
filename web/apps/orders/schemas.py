"""Pydantic schemas for the orders API.

Input schemas validate and normalize request payloads before they reach
the domain services; read schemas shape the JSON returned by the views.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_serializer, field_validator

from .domain import Customer, Order, Product

# Largest value an integer column holds on PostgreSQL.
MAX_QUANTITY = 2_147_483_647


class OrderProductIn(BaseModel):
    """A requested product and quantity.

    Attributes:
        id: Catalog identifier of the product.
        quantity: Positive integer indicating units requested.
    """

    id: UUID
    quantity: int = Field(gt=0, le=MAX_QUANTITY, strict=True)


class CreateOrderDTO(BaseModel):
    """Schema for creating an order."""

    customer_id: UUID
    products: list[OrderProductIn] = Field(min_length=1)


class CreateCustomerDTO(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("Name must not be blank")
        return v2


class CreateProductDTO(BaseModel):
    """Schema for registering a catalog product.

    Attributes:
        name: Unique product name.
        price: Unit price, non-negative, at most 2 decimal places.
        quantity: Units in stock, non-negative.
    """

    name: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    quantity: int = Field(ge=0, le=MAX_QUANTITY)


class CustomerReadDTO(BaseModel):
    id: str
    name: str
    email: str

    @classmethod
    def from_domain(cls, customer: Customer) -> "CustomerReadDTO":
        return cls(id=customer.id, name=customer.name, email=customer.email)


class ProductReadDTO(BaseModel):
    id: str
    name: str
    price: Decimal
    quantity: int

    @field_serializer("price")
    def serialize_price(self, v: Decimal) -> str:
        return f"{v:.2f}"

    @classmethod
    def from_domain(cls, product: Product) -> "ProductReadDTO":
        return cls(id=product.id, name=product.name, price=product.price, quantity=product.quantity)


class OrderProductReadDTO(BaseModel):
    product_id: str
    quantity: int
    price: Decimal

    @field_serializer("price")
    def serialize_price(self, v: Decimal) -> str:
        return f"{v:.2f}"


class OrderReadDTO(BaseModel):
    """Public representation of a persisted order."""

    id: str
    customer: CustomerReadDTO
    order_products: list[OrderProductReadDTO]
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderReadDTO":
        return cls(
            id=order.id,
            customer=CustomerReadDTO.from_domain(order.customer),
            order_products=[
                OrderProductReadDTO(product_id=line.product_id, quantity=line.quantity, price=line.price)
                for line in order.order_products
            ],
            created_at=order.created_at,
        )
