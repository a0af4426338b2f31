# sales/urls.py
from django.urls import path

from . import api

app_name = "sales"

urlpatterns = [
    # Orders
    path("orders/", api.order_list, name="order_list"),
    path("orders/<uuid:public_id>/", api.order_detail, name="order_detail"),
    path("orders/<uuid:public_id>/confirm/", api.order_confirm, name="order_confirm"),
    path("orders/<uuid:public_id>/cancel/", api.order_cancel, name="order_cancel"),
    path("orders/<uuid:public_id>/deliveries/", api.order_deliver, name="order_deliver"),

    # Delivery notes (DDT)
    path("delivery-notes/", api.delivery_note_list, name="delivery_note_list"),
    path("delivery-notes/<uuid:public_id>/", api.delivery_note_detail, name="delivery_note_detail"),
    path(
        "delivery-notes/<uuid:public_id>/delivered/",
        api.delivery_note_delivered,
        name="delivery_note_delivered",
    ),
]
