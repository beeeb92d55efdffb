import uuid
from django.db import models


class TimestampedModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class CustomerModel(TimestampedModel):
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)

    class Meta:
        db_table = "customers"


class ProductModel(TimestampedModel):
    name = models.CharField(max_length=255, unique=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "products"


class OrderModel(TimestampedModel):
    customer = models.ForeignKey(CustomerModel, on_delete=models.PROTECT, related_name="orders")

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]


class OrderProductModel(TimestampedModel):
    order = models.ForeignKey(OrderModel, on_delete=models.CASCADE, related_name="order_products")
    # Plain id, not a FK: the catalog may live in the inventory service
    product_id = models.CharField(max_length=64)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField()
    position = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "orders_products"
        ordering = ["position"]
