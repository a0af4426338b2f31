# catalog/api.py

from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from contacts.models import Customer
from core.api import json_endpoint, json_response, paginate, read_json
from core.exceptions import ValidationError
from core.permissions import require
from .models import Product
from .services import ProductService, export_price_list, import_price_list

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def serialize_product(product: Product, customer=None) -> dict:
    """
    Product payload. When a customer is given the price is the one that
    customer pays and the cost price is left out.
    """
    data = {
        "id": str(product.public_id),
        "sku": product.sku,
        "name": product.name,
        "category": product.category,
        "unit": product.unit,
        "price": product.price_for(customer),
        "vat_rate": product.vat_rate,
        "is_available": product.is_available,
        "seasonal_from": product.seasonal_from,
        "seasonal_to": product.seasonal_to,
        "origin": product.origin,
        "description": product.description,
    }
    if customer is None:
        data["default_price"] = product.default_price
        data["cost_price"] = product.cost_price
        data["preferred_supplier"] = str(product.preferred_supplier.public_id) if product.preferred_supplier_id else None
    return data


@require_http_methods(["GET", "POST"])
@json_endpoint
def product_list(request, principal):
    """
    GET  /api/products/?q=mele&category=frutta&in_season=1
    POST /api/products/
    """
    if request.method == "POST":
        product = ProductService.create_product(principal, read_json(request))
        return json_response(serialize_product(product), status=201)

    require(principal, "catalog.view")
    qs = Product.objects.alive().search(request.GET.get("q", "").strip())
    if request.GET.get("category"):
        qs = qs.filter(category=request.GET["category"])
    if request.GET.get("in_season"):
        qs = qs.in_season()
    return json_response(paginate(request, qs, serialize_product))


@require_http_methods(["GET", "PATCH"])
@json_endpoint
def product_detail(request, principal, public_id):
    require(principal, "catalog.view")
    product = get_object_or_404(Product, public_id=public_id)
    if request.method == "PATCH":
        product = ProductService.update_product(principal, product, read_json(request))
    return json_response(serialize_product(product))


@require_POST
@json_endpoint
def product_archive(request, principal, public_id):
    product = get_object_or_404(Product, public_id=public_id)
    return json_response(serialize_product(ProductService.archive_product(principal, product)))


@require_POST
@json_endpoint
def customer_price(request, principal, public_id):
    """POST /api/products/<id>/prices/ {"customer": "<uuid>", "price": "1.20"}"""
    product = get_object_or_404(Product, public_id=public_id)
    payload = read_json(request)
    customer = get_object_or_404(Customer, public_id=payload.get("customer"))
    entry = ProductService.set_customer_price(principal, customer, product, payload.get("price"))
    return json_response(
        {"customer": str(customer.public_id), "product": str(product.public_id), "price": entry.price},
        status=201,
    )


@require_POST
@json_endpoint
def price_list_import(request, principal):
    """POST /api/products/import/ with an .xlsx file in the "file" field."""
    upload = request.FILES.get("file")
    if upload is None:
        raise ValidationError.single("file", "required", "Upload an .xlsx file.")
    return json_response(import_price_list(principal, upload))


@require_GET
@json_endpoint
def price_list_export(request, principal):
    require(principal, "catalog.view")
    response = HttpResponse(content_type=XLSX_CONTENT_TYPE)
    response["Content-Disposition"] = 'attachment; filename="listino.xlsx"'
    export_price_list().save(response)
    return response
