# inventory/urls.py
from django.urls import path

from . import api

app_name = "inventory"

urlpatterns = [
    path("stock/", api.stock_list, name="stock_list"),
    path("stock/<uuid:public_id>/", api.stock_detail, name="stock_detail"),
    path("movements/", api.movement_list, name="movement_list"),
    path("movements/batch/", api.movement_batch, name="movement_batch"),
]
