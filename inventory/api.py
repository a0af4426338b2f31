# inventory/api.py

from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from catalog.models import Product
from core.api import date_param, json_endpoint, json_response, paginate, read_json
from core.permissions import require
from .models import StockMovement
from .services import StockService, product_stock_card, stock_summary


def serialize_movement(movement: StockMovement) -> dict:
    return {
        "id": str(movement.public_id),
        "product": {"id": str(movement.product.public_id), "name": movement.product.name},
        "movement_type": movement.movement_type,
        "quantity": movement.quantity,
        "signed_quantity": movement.signed_quantity,
        "unit": movement.unit,
        "reason": movement.reason,
        "reference_type": movement.reference_type,
        "reference_number": movement.reference_number,
        "created_at": movement.created_at,
        "created_by": movement.created_by.get_username() if movement.created_by_id else None,
    }


def serialize_stock(product: Product) -> dict:
    return {
        "id": str(product.public_id),
        "name": product.name,
        "category": product.category,
        "unit": product.unit,
        "current_stock": product.stock_in - product.stock_out,
        "cost_price": product.cost_price,
        "default_price": product.default_price,
        "is_available": product.is_available,
    }


@require_GET
@json_endpoint
def stock_list(request, principal):
    """GET /api/inventory/stock/?q=mele"""
    qs = stock_summary(principal, search=request.GET.get("q", "").strip())
    return json_response(paginate(request, qs, serialize_stock))


@require_GET
@json_endpoint
def stock_detail(request, principal, public_id):
    product = get_object_or_404(Product, public_id=public_id)
    card = product_stock_card(principal, product)
    return json_response({
        "product": {"id": str(product.public_id), "name": product.name, "unit": product.unit},
        "stock": card["stock"],
        "preferred_supplier": card["preferred_supplier"],
        "movements": [serialize_movement(m) for m in card["movements"]],
        "purchases": [
            {
                "purchase_order": line.purchase_order.number,
                "supplier": line.purchase_order.supplier.company_name,
                "order_date": line.purchase_order.order_date,
                "status": line.purchase_order.status,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "line_total": line.line_total,
            }
            for line in card["purchases"]
        ],
        "purchase_stats": card["purchase_stats"],
    })


@require_http_methods(["GET", "POST"])
@json_endpoint
def movement_list(request, principal):
    """
    GET  /api/inventory/movements/?product=<id>&type=scarico&date_from=2024-03-01
    POST /api/inventory/movements/
    """
    if request.method == "POST":
        movement = StockService.record_movement(principal, read_json(request))
        return json_response(serialize_movement(movement), status=201)

    require(principal, "inventory.view")
    qs = StockMovement.objects.with_related()
    if request.GET.get("product"):
        qs = qs.filter(product__public_id=request.GET["product"])
    if request.GET.get("type"):
        qs = qs.filter(movement_type__in=request.GET.getlist("type"))
    qs = qs.between(date_param(request, "date_from"), date_param(request, "date_to"))
    qs = qs.search(request.GET.get("q", "").strip())
    return json_response(paginate(request, qs, serialize_movement))


@require_POST
@json_endpoint
def movement_batch(request, principal):
    """POST /api/inventory/movements/batch/ {"items": [...]}"""
    movements = StockService.record_movements(principal, read_json(request))
    return json_response({"count": len(movements), "results": [serialize_movement(m) for m in movements]}, status=201)
