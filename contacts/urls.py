# contacts/urls.py
from django.urls import path

from . import api

app_name = "contacts"

urlpatterns = [
    path("customers/", api.customer_list, name="customer_list"),
    path("customers/<uuid:public_id>/", api.customer_detail, name="customer_detail"),
    path("customers/<uuid:public_id>/archive/", api.customer_archive, name="customer_archive"),
    path("suppliers/", api.supplier_list, name="supplier_list"),
    path("suppliers/<uuid:public_id>/", api.supplier_detail, name="supplier_detail"),
    path("suppliers/<uuid:public_id>/archive/", api.supplier_archive, name="supplier_archive"),
]
