# reports/urls.py
from django.urls import path

from . import api

app_name = "reports"

urlpatterns = [
    path("dashboard/", api.dashboard, name="dashboard"),
    path("margins/", api.margins, name="margins"),
    path("margins/export/", api.margins_export, name="margins_export"),
    path("sales/", api.sales, name="sales"),
    path("top-products/", api.products, name="top_products"),
    path("top-customers/", api.customers, name="top_customers"),
]
