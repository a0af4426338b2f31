# portal/urls.py
from django.urls import path

from . import api

app_name = "portal"

urlpatterns = [
    path("orders/", api.order_list, name="order_list"),
    path("orders/<uuid:public_id>/", api.order_detail, name="order_detail"),
    path("invoices/", api.invoice_list, name="invoice_list"),
    path("payments/", api.payment_list, name="payment_list"),
]
