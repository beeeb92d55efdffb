"""HTTP catalog client with retries, a circuit breaker and context headers.

This module implements the ``ProductStore`` port over HTTP against the
inventory service using ``httpx``. It adds:

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set
    by the gateway middleware.
- A circuit breaker for the inventory service to avoid hammering an
    unhealthy dependency, letting one trial call through after a timeout.
- A simple retry policy with exponential backoff for transport errors and
    5xx responses.
"""

import time
import threading
from decimal import Decimal
from typing import Iterable, List, Optional

import httpx
from django.conf import settings

from gateway.middleware import REQUEST_ID_CTX

from .domain import (
    OrderProductRequest,
    Product,
    ProductAlreadyExists,
    ProductsMissing,
    ProductStore,
    StockUpdate,
)


# ---------------- Circuit Breaker ---------------- #

CLOSED = "CLOSED"
OPEN = "OPEN"
HALF_OPEN = "HALF_OPEN"


class CircuitOpenError(RuntimeError):
    """Raised instead of calling a dependency whose circuit refuses calls."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(reason)


class CircuitBreaker:
    """Fail fast once a dependency keeps failing.

    The breaker counts consecutive failures. When ``fail_threshold`` is
    reached it records the time it opened, and every call is refused with
    ``CircuitOpenError`` for ``reset_timeout`` seconds. After that a single
    trial call is let through: success closes the circuit, failure reopens
    it for another ``reset_timeout``.

    The state is derived from the opening time on every read, so there is
    no timer to drive.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.Lock()
        self._failures = 0
        self._opened_at: Optional[float] = None
        self._trial_running = False

    def _state(self) -> str:
        if self._opened_at is None:
            return CLOSED
        if time.monotonic() - self._opened_at < self.reset_timeout:
            return OPEN
        return HALF_OPEN

    @property
    def state(self) -> str:
        with self._lock:
            return self._state()

    def before_call(self) -> str:
        """Admit a call or refuse it.

        Returns:
            str: The state the call was admitted in.

        Raises:
            CircuitOpenError: While OPEN, or while a HALF_OPEN trial runs.
        """
        with self._lock:
            st = self._state()
            if st == OPEN:
                raise CircuitOpenError(self.name, "CIRCUIT_OPEN")
            if st == HALF_OPEN:
                if self._trial_running:
                    raise CircuitOpenError(self.name, "CIRCUIT_HALF_OPEN_BUSY")
                self._trial_running = True
            return st

    def on_success(self):
        with self._lock:
            self._failures = 0
            self._opened_at = None
            self._trial_running = False

    def on_failure(self):
        with self._lock:
            self._failures += 1
            st = self._state()
            if st == HALF_OPEN or (st == CLOSED and self._failures >= self.fail_threshold):
                self._opened_at = time.monotonic()
            self._trial_running = False

    def release_trial(self):
        """Let the next HALF_OPEN call through after a trial ended without a verdict."""
        with self._lock:
            self._trial_running = False


_inventory_cb = CircuitBreaker(
    "inventory",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


def is_upstream_unavailable(exc: Exception) -> bool:
    """Tell whether ``exc`` means the inventory service could not serve a call.

    Transport errors, 5xx responses left after retries and refused circuit
    calls qualify. Other HTTP statuses are contract errors between the two
    services and do not.
    """
    if isinstance(exc, (httpx.RequestError, CircuitOpenError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Build base headers including X-Request-ID and any extras."""
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _retry_policy():
    """Return retry configuration as (max_retries, backoff_base_seconds)."""
    return (
        getattr(settings, "HTTP_RETRY_MAX", 3),
        getattr(settings, "HTTP_RETRY_BACKOFF_BASE", 0.15),
    )


def _should_retry(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    """Retry only on transport errors or HTTP 5xx."""
    if exc is not None:
        return True
    if resp is not None and 500 <= resp.status_code < 600:
        return True
    return False


def _to_product(data: dict) -> Product:
    return Product(
        id=str(data["id"]),
        price=Decimal(str(data["price"])),
        quantity=int(data["quantity"]),
        name=data.get("name", ""),
    )


# ---------------- Inventory Adapter ---------------- #

class HttpProductCatalog(ProductStore):
    """Product catalog served by the inventory service.

    Business responses (2xx, 404, 409) close the circuit; transport errors
    and 5xx are retried with exponential backoff and, once retries are
    exhausted, count as circuit failures and are raised to the caller.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.INVENTORY_BASE_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def find_all_by_id(self, products: List[OrderProductRequest]) -> List[Product]:
        resp = self._send("POST", "/products/lookup", json={"ids": [p.id for p in products]})
        resp.raise_for_status()
        return [_to_product(p) for p in resp.json().get("products", [])]

    def update_quantity(self, updates: List[StockUpdate]) -> None:
        """Overwrite stock quantities in the inventory service.

        Raises:
            ProductsMissing: If the service reports unknown product ids.
            httpx.HTTPError: For transport errors or unexpected statuses.
        """
        if not updates:
            return
        payload = {"products": [{"id": u.id, "quantity": u.quantity} for u in updates]}
        resp = self._send("POST", "/products/quantities", json=payload)
        if resp.status_code == 404:
            raise ProductsMissing(ids=_ids_from(resp))
        resp.raise_for_status()

    def find_by_name(self, name: str) -> Optional[Product]:
        resp = self._send("GET", "/products", params={"name": name})
        resp.raise_for_status()
        found = resp.json().get("products", [])
        return _to_product(found[0]) if found else None

    def create(self, name: str, price: Decimal, quantity: int) -> Product:
        payload = {"name": name, "price": str(price), "quantity": quantity}
        resp = self._send("POST", "/products", json=payload)
        if resp.status_code == 409:
            raise ProductAlreadyExists()
        resp.raise_for_status()
        return _to_product(resp.json())

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request through the circuit breaker with retries.

        Returns:
            httpx.Response: The first response that is not retriable.

        Raises:
            CircuitOpenError: If the circuit refuses the call.
            httpx.RequestError: For transport errors after retries.
            httpx.HTTPStatusError: For 5xx responses after retries.
        """
        max_retries, backoff = _retry_policy()
        tries = 0

        state = _inventory_cb.before_call()
        headers = _request_headers({"X-Circuit-State": state, "X-Retry-Count": "0"})

        try:
            with httpx.Client(timeout=self.timeout) as client:
                while True:
                    resp = None
                    exc = None
                    try:
                        resp = client.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
                        if not _should_retry(resp, None):
                            _inventory_cb.on_success()
                            return resp
                    except httpx.RequestError as e:
                        exc = e

                    tries += 1
                    headers["X-Retry-Count"] = str(tries)

                    if tries > max_retries:
                        _inventory_cb.on_failure()
                        if exc:
                            raise exc
                        resp.raise_for_status()

                    sleep_s = backoff * (2 ** (tries - 1))
                    cap = getattr(settings, "HTTP_RETRY_MAX_SLEEP", 0.5)
                    time.sleep(min(sleep_s, cap))
        finally:
            if state == HALF_OPEN:
                _inventory_cb.release_trial()


def _ids_from(resp: httpx.Response) -> Iterable[str]:
    try:
        return resp.json().get("ids", [])
    except ValueError:
        return []
