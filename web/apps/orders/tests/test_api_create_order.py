"""API tests for the create-order endpoint.

These tests exercise the orders HTTP API for the main scenarios: successful
creation, each business rejection mapped to its status code, payload
validation errors and an unavailable catalog.
"""

from uuid import uuid4

import httpx
import pytest

from apps.orders import providers
from apps.orders.models import OrderModel, ProductModel

CREATE_URL = "/api/orders/"


@pytest.fixture
def customer_id(client):
    r = client.post("/api/customers/", data={"name": "Ada", "email": "ada@example.com"}, content_type="application/json")
    assert r.status_code == 201
    return r.json()["id"]


@pytest.fixture
def product_id(client):
    r = client.post(
        "/api/products/",
        data={"name": "Widget", "price": "10.00", "quantity": 5},
        content_type="application/json",
    )
    assert r.status_code == 201
    return r.json()["id"]


def _post(client, payload, **extra):
    return client.post(CREATE_URL, data=payload, content_type="application/json", **extra)


@pytest.mark.django_db
def test_create_order_returns_201_and_decrements_stock(client, customer_id, product_id):
    r = _post(client, {"customer_id": customer_id, "products": [{"id": product_id, "quantity": 2}]})
    assert r.status_code == 201
    body = r.json()
    assert body["customer"]["id"] == customer_id
    assert body["order_products"] == [{"product_id": product_id, "quantity": 2, "price": "10.00"}]
    assert body["created_at"]
    assert ProductModel.objects.get(pk=product_id).quantity == 3
    assert OrderModel.objects.filter(pk=body["id"]).exists()


@pytest.mark.django_db
def test_create_order_unknown_customer_returns_400(client, product_id):
    r = _post(client, {"customer_id": str(uuid4()), "products": [{"id": product_id, "quantity": 1}]})
    assert r.status_code == 400
    assert r.json() == {"detail": "CUSTOMER_NOT_FOUND", "message": "Customer not found"}
    assert ProductModel.objects.get(pk=product_id).quantity == 5


@pytest.mark.django_db
def test_create_order_all_products_unknown_returns_400(client, customer_id):
    r = _post(client, {"customer_id": customer_id, "products": [{"id": str(uuid4()), "quantity": 1}]})
    assert r.status_code == 400
    assert r.json()["detail"] == "PRODUCTS_NOT_FOUND"


@pytest.mark.django_db
def test_create_order_some_products_unknown_returns_404(client, customer_id, product_id):
    missing = str(uuid4())
    r = _post(
        client,
        {"customer_id": customer_id, "products": [{"id": product_id, "quantity": 1}, {"id": missing, "quantity": 1}]},
    )
    assert r.status_code == 404
    assert r.json()["detail"] == "PRODUCTS_MISSING"
    assert r.json()["ids"] == [missing]


@pytest.mark.django_db
def test_create_order_insufficient_stock_returns_400(client, customer_id, product_id):
    r = _post(client, {"customer_id": customer_id, "products": [{"id": product_id, "quantity": 6}]})
    assert r.status_code == 400
    assert r.json()["detail"] == "INSUFFICIENT_STOCK"
    assert OrderModel.objects.count() == 0


@pytest.mark.django_db
def test_create_order_duplicate_products_returns_400(client, customer_id, product_id):
    r = _post(
        client,
        {"customer_id": customer_id, "products": [{"id": product_id, "quantity": 1}, {"id": product_id, "quantity": 1}]},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "DUPLICATE_PRODUCTS"


@pytest.mark.django_db
@pytest.mark.parametrize(
    "payload",
    [
        {"customer_id": "not-a-uuid", "products": [{"id": str(uuid4()), "quantity": 1}]},
        {"customer_id": str(uuid4()), "products": []},
        {"customer_id": str(uuid4()), "products": [{"id": str(uuid4()), "quantity": 0}]},
        {"customer_id": str(uuid4()), "products": [{"id": str(uuid4()), "quantity": 2**31}]},
        {"products": [{"id": str(uuid4()), "quantity": 1}]},
    ],
)
def test_create_order_validation_error(client, payload):
    r = _post(client, payload)
    assert r.status_code == 400
    assert "detail" in r.json()


@pytest.mark.django_db
def test_create_order_upstream_unavailable_returns_503(client, customer_id, product_id, monkeypatch):
    class DownCatalog:
        def find_all_by_id(self, products):
            raise httpx.ConnectError("boom")

        def update_quantity(self, updates):
            raise AssertionError("not reached")

    monkeypatch.setattr(providers, "get_product_store", lambda: DownCatalog())
    r = _post(client, {"customer_id": customer_id, "products": [{"id": product_id, "quantity": 1}]})
    assert r.status_code == 503
    assert r.json() == {"detail": "UPSTREAM_UNAVAILABLE"}


@pytest.mark.django_db
def test_request_id_header_is_echoed(client):
    r = client.get("/api/orders/ping/", HTTP_X_REQUEST_ID="req-42")
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    assert r["X-Request-ID"] == "req-42"


@pytest.mark.django_db
def test_oversized_payload_returns_413(client, settings):
    settings.API_MAX_BYTES = 10
    r = _post(client, {"customer_id": str(uuid4()), "products": []})
    assert r.status_code == 413
    assert r.json() == {"detail": "PAYLOAD_TOO_LARGE"}


@pytest.fixture
def http_catalog(settings, monkeypatch):
    """Serve the catalog from a fake inventory service holding one product."""
    settings.USE_HTTP_ADAPTERS = True
    settings.INVENTORY_BASE_URL = "http://inventory"
    pid = str(uuid4())
    state = {"quantities_status": 200, "writes": []}

    def fake_request(self, method, url, headers=None, json=None, **kwargs):
        req = httpx.Request(method, url)
        if url.endswith("/products/lookup"):
            assert json == {"ids": [pid]}
            product = {"id": pid, "name": "Widget", "price": "10.00", "quantity": 5}
            return httpx.Response(200, json={"products": [product]}, request=req)
        if url.endswith("/products/quantities"):
            state["writes"].append(json)
            if state["quantities_status"] == 404:
                return httpx.Response(404, json={"detail": "PRODUCTS_MISSING", "ids": [pid]}, request=req)
            return httpx.Response(state["quantities_status"], json={"updated": 1}, request=req)
        raise AssertionError(f"unexpected call {method} {url}")

    monkeypatch.setattr(httpx.Client, "request", fake_request, raising=True)
    state["pid"] = pid
    return state


@pytest.mark.django_db
def test_create_order_over_http_catalog(client, customer_id, http_catalog):
    pid = http_catalog["pid"]
    r = _post(client, {"customer_id": customer_id, "products": [{"id": pid, "quantity": 2}]})

    assert r.status_code == 201
    assert r.json()["order_products"] == [{"product_id": pid, "quantity": 2, "price": "10.00"}]
    assert http_catalog["writes"] == [{"products": [{"id": pid, "quantity": 3}]}]
    assert OrderModel.objects.count() == 1


@pytest.mark.django_db
def test_rejected_stock_write_over_http_rolls_the_order_back(client, customer_id, http_catalog):
    http_catalog["quantities_status"] = 404
    pid = http_catalog["pid"]
    r = _post(client, {"customer_id": customer_id, "products": [{"id": pid, "quantity": 2}]})

    assert r.status_code == 404
    assert r.json()["detail"] == "PRODUCTS_MISSING"
    assert r.json()["ids"] == [pid]
    assert len(http_catalog["writes"]) == 1
    assert OrderModel.objects.count() == 0


@pytest.mark.django_db
def test_unexpected_inventory_status_is_not_reported_as_unavailable(client, customer_id, http_catalog):
    http_catalog["quantities_status"] = 422
    pid = http_catalog["pid"]

    with pytest.raises(httpx.HTTPStatusError):
        _post(client, {"customer_id": customer_id, "products": [{"id": pid, "quantity": 2}]})
    assert OrderModel.objects.count() == 0


@pytest.mark.django_db
def test_unrelated_runtime_error_is_not_reported_as_unavailable(client, customer_id, product_id, monkeypatch):
    class BrokenCatalog:
        def find_all_by_id(self, products):
            raise RuntimeError("bug")

        def update_quantity(self, updates):
            raise AssertionError("not reached")

    monkeypatch.setattr(providers, "get_product_store", lambda: BrokenCatalog())
    with pytest.raises(RuntimeError, match="bug"):
        _post(client, {"customer_id": customer_id, "products": [{"id": product_id, "quantity": 1}]})


@pytest.mark.django_db
def test_open_circuit_returns_503(client, customer_id, settings, monkeypatch):
    from apps.orders.http_adapters import _inventory_cb

    settings.USE_HTTP_ADAPTERS = True
    monkeypatch.setattr(httpx.Client, "request", lambda *a, **k: pytest.fail("inventory was called"), raising=True)
    for _ in range(_inventory_cb.fail_threshold):
        _inventory_cb.on_failure()

    r = _post(client, {"customer_id": customer_id, "products": [{"id": str(uuid4()), "quantity": 1}]})
    assert r.status_code == 503
    assert r.json() == {"detail": "UPSTREAM_UNAVAILABLE"}
