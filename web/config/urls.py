from django.urls import include, path

from apps.orders.urls import customers_urlpatterns, products_urlpatterns

urlpatterns = [
    path("", include("apps.monitoring.urls")),
    path("api/orders/", include("apps.orders.urls")),
    path("api/customers/", include((customers_urlpatterns, "customers"))),
    path("api/products/", include((products_urlpatterns, "products"))),
]
