from django.urls import path

from .views import (
    CustomersCollectionView,
    OrdersCollectionView,
    OrdersPingView,
    ProductsCollectionView,
    RetrieveOrderView,
)

app_name = "orders"

# Mounted under /api/orders/
urlpatterns = [
    path("ping/", OrdersPingView.as_view(), name="ping"),
    path("", OrdersCollectionView.as_view(), name="orders-collection"),
    path("<uuid:oid>/", RetrieveOrderView.as_view(), name="orders-detail"),
]

# Mounted under /api/customers/ and /api/products/
customers_urlpatterns = [
    path("", CustomersCollectionView.as_view(), name="customers-collection"),
]
products_urlpatterns = [
    path("", ProductsCollectionView.as_view(), name="products-collection"),
]
