# purchasing/api.py

from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core.api import json_endpoint, json_response, paginate, read_json
from core.permissions import require
from .models import PurchaseOrder, ShoppingList, ShoppingListItem, SupplierInvoice
from .services import PurchaseService, ShoppingListService
from .workflow import PURCHASE_ORDER_WORKFLOW, SHOPPING_LIST_WORKFLOW


def serialize_purchase_order(purchase_order: PurchaseOrder, *, lines: bool = True) -> dict:
    data = {
        "id": str(purchase_order.public_id),
        "number": purchase_order.number,
        "supplier": {
            "id": str(purchase_order.supplier.public_id),
            "code": purchase_order.supplier.code,
            "company_name": purchase_order.supplier.company_name,
        },
        "status": purchase_order.status,
        "order_date": purchase_order.order_date,
        "expected_date": purchase_order.expected_date,
        "received_at": purchase_order.received_at,
        "notes": purchase_order.notes,
        "subtotal": purchase_order.subtotal,
        "vat_amount": purchase_order.vat_amount,
        "total": purchase_order.total,
        "allowed_actions": PURCHASE_ORDER_WORKFLOW.allowed_actions(purchase_order.status),
    }
    if lines:
        data["lines"] = [
            {
                "product_name": line.product_name,
                "quantity": line.quantity,
                "unit": line.unit,
                "unit_price": line.unit_price,
                "vat_rate": line.vat_rate,
                "line_total": line.line_total,
            }
            for line in purchase_order.lines.all()
        ]
    return data


def serialize_supplier_invoice(invoice: SupplierInvoice) -> dict:
    return {
        "id": str(invoice.public_id),
        "number": invoice.number,
        "supplier_reference": invoice.supplier_reference,
        "supplier": {
            "id": str(invoice.supplier.public_id),
            "code": invoice.supplier.code,
            "company_name": invoice.supplier.company_name,
        },
        "purchase_order": invoice.purchase_order.number if invoice.purchase_order_id else None,
        "status": invoice.status,
        "issue_date": invoice.issue_date,
        "due_date": invoice.due_date,
        "subtotal": invoice.subtotal,
        "vat_amount": invoice.vat_amount,
        "total": invoice.total,
        "paid_amount": invoice.paid_amount,
        "balance": invoice.balance,
    }


# ============================================================
# Purchase orders
# ============================================================

@require_http_methods(["GET", "POST"])
@json_endpoint
def purchase_order_list(request, principal):
    if request.method == "POST":
        purchase_order = PurchaseService.create_purchase_order(principal, read_json(request))
        return json_response(serialize_purchase_order(purchase_order), status=201)

    require(principal, "purchasing.view")
    qs = PurchaseOrder.objects.alive().select_related("supplier")
    if request.GET.get("status"):
        qs = qs.filter(status__in=request.GET.getlist("status"))
    qs = qs.search(request.GET.get("q", "").strip())
    return json_response(paginate(request, qs, lambda po: serialize_purchase_order(po, lines=False)))


@require_GET
@json_endpoint
def purchase_order_detail(request, principal, public_id):
    require(principal, "purchasing.view")
    purchase_order = get_object_or_404(PurchaseOrder.objects.select_related("supplier"), public_id=public_id)
    return json_response(serialize_purchase_order(purchase_order))


@require_POST
@json_endpoint
def purchase_order_send(request, principal, public_id):
    purchase_order = get_object_or_404(PurchaseOrder, public_id=public_id)
    return json_response(serialize_purchase_order(PurchaseService.send_purchase_order(principal, purchase_order)))


@require_POST
@json_endpoint
def purchase_order_receive(request, principal, public_id):
    purchase_order = get_object_or_404(PurchaseOrder, public_id=public_id)
    reference = str(read_json(request).get("supplier_reference", ""))
    invoice = PurchaseService.receive_purchase_order(principal, purchase_order, supplier_reference=reference)
    return json_response(serialize_supplier_invoice(invoice), status=201)


@require_POST
@json_endpoint
def purchase_order_cancel(request, principal, public_id):
    purchase_order = get_object_or_404(PurchaseOrder, public_id=public_id)
    reason = str(read_json(request).get("reason", ""))
    purchase_order = PurchaseService.cancel_purchase_order(principal, purchase_order, reason=reason)
    return json_response(serialize_purchase_order(purchase_order))


# ============================================================
# Supplier invoices
# ============================================================

@require_http_methods(["GET", "POST"])
@json_endpoint
def supplier_invoice_list(request, principal):
    if request.method == "POST":
        invoice = PurchaseService.create_supplier_invoice(principal, read_json(request))
        return json_response(serialize_supplier_invoice(invoice), status=201)

    require(principal, "purchasing.view")
    qs = SupplierInvoice.objects.alive().select_related("supplier", "purchase_order")
    if request.GET.get("unpaid"):
        qs = qs.unpaid()
    qs = qs.search(request.GET.get("q", "").strip())
    return json_response(paginate(request, qs, serialize_supplier_invoice))


@require_GET
@json_endpoint
def supplier_invoice_detail(request, principal, public_id):
    require(principal, "purchasing.view")
    invoice = get_object_or_404(
        SupplierInvoice.objects.select_related("supplier", "purchase_order"),
        public_id=public_id,
    )
    return json_response(serialize_supplier_invoice(invoice))


# ============================================================
# Shopping lists
# ============================================================

def serialize_shopping_list_item(item: ShoppingListItem) -> dict:
    return {
        "id": str(item.public_id),
        "product": str(item.product.public_id) if item.product_id else None,
        "product_name": item.product_name,
        "customer": item.customer.company_name if item.customer_id else None,
        "quantity": item.quantity,
        "unit": item.unit,
        "supplier": (
            {"id": str(item.supplier.public_id), "company_name": item.supplier.company_name}
            if item.supplier_id
            else None
        ),
        "supplier_price": item.supplier_price,
        "notes": item.notes,
        "purchase_order": item.purchase_order.number if item.purchase_order_id else None,
    }


def serialize_shopping_list(shopping_list: ShoppingList, *, items: bool = True) -> dict:
    data = {
        "id": str(shopping_list.public_id),
        "delivery_date": shopping_list.delivery_date,
        "status": shopping_list.status,
        "order_count": shopping_list.order_count,
        "notes": shopping_list.notes,
        "allowed_actions": SHOPPING_LIST_WORKFLOW.allowed_actions(shopping_list.status),
    }
    if items:
        data["items"] = [
            serialize_shopping_list_item(item)
            for item in shopping_list.items.select_related("product", "customer", "supplier", "purchase_order")
        ]
    return data


@require_http_methods(["GET", "POST"])
@json_endpoint
def shopping_list_list(request, principal):
    if request.method == "POST":
        shopping_list = ShoppingListService.generate(principal, read_json(request))
        return json_response(serialize_shopping_list(shopping_list), status=201)

    require(principal, "purchasing.view")
    qs = ShoppingList.objects.alive()
    if request.GET.get("status"):
        qs = qs.filter(status__in=request.GET.getlist("status"))
    return json_response(paginate(request, qs, lambda sl: serialize_shopping_list(sl, items=False)))


@require_GET
@json_endpoint
def shopping_list_detail(request, principal, public_id):
    require(principal, "purchasing.view")
    shopping_list = get_object_or_404(ShoppingList, public_id=public_id)
    return json_response(serialize_shopping_list(shopping_list))


@require_POST
@json_endpoint
def shopping_list_finalize(request, principal, public_id):
    shopping_list = get_object_or_404(ShoppingList, public_id=public_id)
    return json_response(serialize_shopping_list(ShoppingListService.finalize(principal, shopping_list)))


@require_POST
@json_endpoint
def shopping_list_purchase_orders(request, principal, public_id):
    shopping_list = get_object_or_404(ShoppingList, public_id=public_id)
    result = ShoppingListService.create_purchase_orders(principal, shopping_list)
    return json_response(
        {
            "shopping_list": serialize_shopping_list(result["shopping_list"]),
            "purchase_orders": [serialize_purchase_order(po) for po in result["purchase_orders"]],
            "skipped": [serialize_shopping_list_item(item) for item in result["skipped"]],
        },
        status=201,
    )


@require_http_methods(["PATCH"])
@json_endpoint
def shopping_list_item_detail(request, principal, public_id):
    item = get_object_or_404(ShoppingListItem, public_id=public_id)
    item = ShoppingListService.update_item(principal, item, read_json(request))
    return json_response(serialize_shopping_list_item(item))


@require_POST
@json_endpoint
def shopping_list_item_merge(request, principal, public_id):
    item = get_object_or_404(ShoppingListItem, public_id=public_id)
    item = ShoppingListService.merge_items(principal, item, read_json(request))
    return json_response(serialize_shopping_list_item(item))
