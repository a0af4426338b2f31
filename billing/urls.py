# billing/urls.py
from django.urls import path

from . import api

app_name = "billing"

urlpatterns = [
    path("settings/", api.billing_settings, name="settings"),

    # Invoices
    path("invoices/", api.invoice_list, name="invoice_list"),
    path("invoices/<uuid:public_id>/", api.invoice_detail, name="invoice_detail"),
    path("invoices/<uuid:public_id>/send/", api.invoice_send, name="invoice_send"),

    # Payments
    path("payments/", api.payment_list, name="payment_list"),
    path("payments/<uuid:public_id>/", api.payment_detail, name="payment_detail"),

    # Receivables
    path("receivables/", api.receivables, name="receivables"),
    path("receivables/export/", api.receivables_export, name="receivables_export"),
]
