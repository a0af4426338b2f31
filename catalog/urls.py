# catalog/urls.py
from django.urls import path

from . import api

app_name = "catalog"

urlpatterns = [
    path("products/", api.product_list, name="product_list"),
    path("products/import/", api.price_list_import, name="price_list_import"),
    path("products/export/", api.price_list_export, name="price_list_export"),
    path("products/<uuid:public_id>/", api.product_detail, name="product_detail"),
    path("products/<uuid:public_id>/archive/", api.product_archive, name="product_archive"),
    path("products/<uuid:public_id>/prices/", api.customer_price, name="customer_price"),
]
