import pytest


@pytest.fixture(autouse=True)
def use_local_catalog(settings):
    settings.USE_HTTP_ADAPTERS = False


@pytest.fixture(autouse=True)
def reset_inventory_circuit():
    from apps.orders.http_adapters import _inventory_cb

    _inventory_cb.on_success()
    yield
    _inventory_cb.on_success()
