# purchasing/urls.py
from django.urls import path

from . import api

app_name = "purchasing"

urlpatterns = [
    path("purchase-orders/", api.purchase_order_list, name="purchase_order_list"),
    path("purchase-orders/<uuid:public_id>/", api.purchase_order_detail, name="purchase_order_detail"),
    path("purchase-orders/<uuid:public_id>/send/", api.purchase_order_send, name="purchase_order_send"),
    path("purchase-orders/<uuid:public_id>/receive/", api.purchase_order_receive, name="purchase_order_receive"),
    path("purchase-orders/<uuid:public_id>/cancel/", api.purchase_order_cancel, name="purchase_order_cancel"),
    path("supplier-invoices/", api.supplier_invoice_list, name="supplier_invoice_list"),
    path("supplier-invoices/<uuid:public_id>/", api.supplier_invoice_detail, name="supplier_invoice_detail"),
    path("shopping-lists/", api.shopping_list_list, name="shopping_list_list"),
    path("shopping-lists/<uuid:public_id>/", api.shopping_list_detail, name="shopping_list_detail"),
    path("shopping-lists/<uuid:public_id>/finalize/", api.shopping_list_finalize, name="shopping_list_finalize"),
    path(
        "shopping-lists/<uuid:public_id>/purchase-orders/",
        api.shopping_list_purchase_orders,
        name="shopping_list_purchase_orders",
    ),
    path("shopping-list-items/<uuid:public_id>/", api.shopping_list_item_detail, name="shopping_list_item_detail"),
    path("shopping-list-items/<uuid:public_id>/merge/", api.shopping_list_item_merge, name="shopping_list_item_merge"),
]
