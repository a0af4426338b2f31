from django.urls import include, path

urlpatterns = [
    path("api/", include("core.urls", namespace="core")),
    path("api/", include("contacts.urls", namespace="contacts")),
    path("api/", include("catalog.urls", namespace="catalog")),
    path("api/", include("sales.urls", namespace="sales")),
    path("api/billing/", include("billing.urls", namespace="billing")),
    path("api/purchasing/", include("purchasing.urls", namespace="purchasing")),
    path("api/inventory/", include("inventory.urls", namespace="inventory")),
    path("api/reports/", include("reports.urls", namespace="reports")),
    path("portal/api/", include("portal.urls", namespace="portal")),
]
