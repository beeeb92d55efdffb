import httpx
import pytest

from apps.orders.domain import OrderProductRequest
from apps.orders.http_adapters import (
    CircuitBreaker,
    CircuitOpenError,
    HttpProductCatalog,
    _inventory_cb,
    is_upstream_unavailable,
)

BASE = "http://x"


@pytest.fixture
def fast_retries(monkeypatch, settings):
    settings.HTTP_RETRY_MAX = 1
    settings.HTTP_RETRY_BACKOFF_BASE = 0.0
    monkeypatch.setattr("time.sleep", lambda *a, **k: None, raising=True)


def _resp(status_code, json_data=None):
    return httpx.Response(status_code, json=json_data, request=httpx.Request("POST", BASE))


def test_lookup_retries_on_5xx(monkeypatch, fast_retries):
    calls = {"n": 0}

    def fake_request(self, method, url, headers=None, **kwargs):
        calls["n"] += 1
        assert headers["X-Retry-Count"] == str(calls["n"] - 1)
        if calls["n"] == 1:
            return _resp(500)
        return _resp(200, {"products": []})

    monkeypatch.setattr(httpx.Client, "request", fake_request, raising=True)

    assert HttpProductCatalog(base_url=BASE).find_all_by_id([OrderProductRequest("p1", 1)]) == []
    assert calls["n"] == 2


def test_5xx_after_retries_raises_and_counts_failure(monkeypatch, fast_retries):
    monkeypatch.setattr(httpx.Client, "request", lambda self, method, url, **kw: _resp(503), raising=True)

    with pytest.raises(httpx.HTTPStatusError):
        HttpProductCatalog(base_url=BASE).find_all_by_id([OrderProductRequest("p1", 1)])
    assert _inventory_cb._failures == 1


def test_no_retry_on_404(monkeypatch, fast_retries):
    calls = {"n": 0}

    def fake_request(self, method, url, **kwargs):
        calls["n"] += 1
        return _resp(404, {"detail": "PRODUCTS_MISSING", "ids": []})

    monkeypatch.setattr(httpx.Client, "request", fake_request, raising=True)
    from apps.orders.domain import ProductsMissing, StockUpdate

    with pytest.raises(ProductsMissing):
        HttpProductCatalog(base_url=BASE).update_quantity([StockUpdate(id="p1", quantity=1)])
    assert calls["n"] == 1
    assert _inventory_cb.state == "CLOSED"


def test_open_circuit_short_circuits_calls(monkeypatch):
    def fake_request(self, method, url, **kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr(httpx.Client, "request", fake_request, raising=True)
    for _ in range(_inventory_cb.fail_threshold):
        _inventory_cb.on_failure()

    with pytest.raises(CircuitOpenError, match="CIRCUIT_OPEN"):
        HttpProductCatalog(base_url=BASE).find_all_by_id([OrderProductRequest("p1", 1)])


def test_circuit_breaker_half_open_allows_single_trial_call(monkeypatch):
    now = {"t": 100.0}
    monkeypatch.setattr("time.monotonic", lambda: now["t"])
    cb = CircuitBreaker("test", fail_threshold=2, reset_timeout=10.0)

    cb.on_failure()
    assert cb.state == "CLOSED"
    cb.on_failure()
    assert cb.state == "OPEN"

    now["t"] += 10.0
    assert cb.before_call() == "HALF_OPEN"
    with pytest.raises(CircuitOpenError, match="CIRCUIT_HALF_OPEN_BUSY"):
        cb.before_call()

    cb.on_failure()
    assert cb.state == "OPEN"

    now["t"] += 10.0
    assert cb.before_call() == "HALF_OPEN"
    cb.on_success()
    assert cb.state == "CLOSED"


def test_failures_while_open_do_not_extend_the_timeout(monkeypatch):
    now = {"t": 0.0}
    monkeypatch.setattr("time.monotonic", lambda: now["t"])
    cb = CircuitBreaker("test", fail_threshold=1, reset_timeout=10.0)

    cb.on_failure()
    now["t"] += 5.0
    cb.on_failure()
    now["t"] += 5.0
    assert cb.state == "HALF_OPEN"


def test_half_open_trial_slot_is_released_after_the_call(monkeypatch, fast_retries):
    now = {"t": 0.0}
    monkeypatch.setattr("time.monotonic", lambda: now["t"])
    monkeypatch.setattr(
        httpx.Client, "request", lambda self, method, url, **kw: _resp(404, {"detail": "PRODUCTS_MISSING"}), raising=True
    )
    for _ in range(_inventory_cb.fail_threshold):
        _inventory_cb.on_failure()
    now["t"] += _inventory_cb.reset_timeout

    resp = HttpProductCatalog(base_url=BASE)._send("GET", "/products")
    assert resp.status_code == 404
    assert _inventory_cb.state == "CLOSED"
    assert _inventory_cb.before_call() == "CLOSED"


@pytest.mark.parametrize(
    "exc, expected",
    [
        (httpx.ConnectError("down"), True),
        (CircuitOpenError("inventory", "CIRCUIT_OPEN"), True),
        (httpx.HTTPStatusError("boom", request=httpx.Request("GET", BASE), response=_resp(503)), True),
        (httpx.HTTPStatusError("bad", request=httpx.Request("GET", BASE), response=_resp(422)), False),
        (RuntimeError("unrelated"), False),
    ],
)
def test_is_upstream_unavailable(exc, expected):
    assert is_upstream_unavailable(exc) is expected
