"""HTTP views for the orders app.

Views are kept intentionally small: they validate requests (via Pydantic),
delegate to a domain service obtained from ``providers`` and map the
outcome to an HTTP response.

Error mapping:
- Pydantic validation errors → 400 with the validation message.
- ``OrderError`` subclasses → their ``status_code`` with
  ``{"detail": code, "message": message}`` (plus ``ids`` when the error
  names products).
- Inventory service unavailable (transport errors, 5xx after retries, open
  circuit) → 503 ``UPSTREAM_UNAVAILABLE``. Any other inventory status
  propagates as a server error.
"""

import logging

import httpx
from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import providers
from .domain import OrderError, OrderProductRequest
from .http_adapters import CircuitOpenError, is_upstream_unavailable
from .schemas import (
    CreateCustomerDTO,
    CreateOrderDTO,
    CreateProductDTO,
    CustomerReadDTO,
    OrderReadDTO,
    ProductReadDTO,
)

logger = logging.getLogger(__name__)


def _error_response(e: OrderError) -> Response:
    body = {"detail": e.code, "message": e.message}
    if e.ids:
        body["ids"] = e.ids
    return Response(body, status=e.status_code)


def _upstream_unavailable(e: Exception) -> Response:
    logger.error("inventory service unavailable", extra={"error": repr(e)})
    return Response({"detail": "UPSTREAM_UNAVAILABLE"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)


class OrdersPingView(APIView):
    """Simple health-check endpoint for the orders module."""

    def get(self, request):
        return Response({"ok": True})


class OrdersCollectionView(APIView):
    """Create an order for a customer from a list of products.

    Responses:
        - 201 with the created order.
        - 400 for DTO validation errors and rejected orders.
        - 404 with ``PRODUCTS_MISSING`` when some products do not exist.
        - 503 with ``UPSTREAM_UNAVAILABLE`` when the catalog is unreachable.
    """

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_create"

    def post(self, request):
        try:
            dto = CreateOrderDTO.model_validate(request.data)
        except ValidationError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        products = [OrderProductRequest(id=str(p.id), quantity=p.quantity) for p in dto.products]
        service = providers.get_create_order_service()

        try:
            order = service.execute(customer_id=str(dto.customer_id), products=products)
        except OrderError as e:
            return _error_response(e)
        except (httpx.HTTPError, CircuitOpenError) as e:
            if not is_upstream_unavailable(e):
                raise
            return _upstream_unavailable(e)

        body = OrderReadDTO.from_domain(order).model_dump(mode="json")
        return Response(body, status=status.HTTP_201_CREATED)


class RetrieveOrderView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"

    def get(self, request, oid):
        try:
            order = providers.get_find_order_service().execute(str(oid))
        except OrderError as e:
            return _error_response(e)
        return Response(OrderReadDTO.from_domain(order).model_dump(mode="json"), status=200)


class CustomersCollectionView(APIView):
    def post(self, request):
        try:
            dto = CreateCustomerDTO.model_validate(request.data)
        except ValidationError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            customer = providers.get_create_customer_service().execute(name=dto.name, email=dto.email)
        except OrderError as e:
            return _error_response(e)

        return Response(CustomerReadDTO.from_domain(customer).model_dump(mode="json"), status=status.HTTP_201_CREATED)


class ProductsCollectionView(APIView):
    def post(self, request):
        try:
            dto = CreateProductDTO.model_validate(request.data)
        except ValidationError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            product = providers.get_create_product_service().execute(
                name=dto.name, price=dto.price, quantity=dto.quantity
            )
        except OrderError as e:
            return _error_response(e)
        except (httpx.HTTPError, CircuitOpenError) as e:
            if not is_upstream_unavailable(e):
                raise
            return _upstream_unavailable(e)

        return Response(ProductReadDTO.from_domain(product).model_dump(mode="json"), status=status.HTTP_201_CREATED)
