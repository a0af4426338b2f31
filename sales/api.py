# sales/api.py

from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core.api import json_endpoint, json_response, paginate, read_json
from core.exceptions import ValidationError
from core.permissions import require
from .models import DeliveryNote, Order
from .services import OrderService
from .workflow import ORDER_WORKFLOW


# ============================================================
# Serializers
# ============================================================

def serialize_order_line(line) -> dict:
    return {
        "id": line.pk,
        "product": str(line.product.public_id) if line.product_id else None,
        "product_name": line.product_name,
        "quantity": line.quantity,
        "unit": line.unit,
        "unit_price": line.unit_price,
        "vat_rate": line.vat_rate,
        "line_total": line.line_total,
        "delivered_quantity": line.delivered_quantity,
        "notes": line.notes,
    }


def serialize_order(order: Order, *, lines: bool = True) -> dict:
    data = {
        "id": str(order.public_id),
        "number": order.number,
        "customer": {
            "id": str(order.customer.public_id),
            "code": order.customer.code,
            "company_name": order.customer.company_name,
        },
        "channel": order.channel,
        "status": order.status,
        "order_date": order.order_date,
        "requested_delivery_date": order.requested_delivery_date,
        "notes": order.notes,
        "subtotal": order.subtotal,
        "vat_amount": order.vat_amount,
        "total": order.total,
        "created_at": order.created_at,
    }
    if lines:
        data["lines"] = [serialize_order_line(line) for line in order.lines.select_related("product")]
    return data


def serialize_staff_order(order: Order, *, lines: bool = True) -> dict:
    data = serialize_order(order, lines=lines)
    data["internal_notes"] = order.internal_notes
    data["allowed_actions"] = ORDER_WORKFLOW.allowed_actions(order.status)
    return data


def serialize_delivery_note(note: DeliveryNote, *, lines: bool = True) -> dict:
    data = {
        "id": str(note.public_id),
        "number": note.number,
        "customer": {
            "id": str(note.customer.public_id),
            "code": note.customer.code,
            "company_name": note.customer.company_name,
        },
        "order": note.order.number if note.order_id else None,
        "invoice": note.invoice.number if note.invoice_id else None,
        "status": note.status,
        "issue_date": note.issue_date,
        "delivery_date": note.delivery_date,
        "transport_reason": note.transport_reason,
        "transported_by": note.transported_by,
        "goods_appearance": note.goods_appearance,
        "number_of_packages": note.number_of_packages,
        "weight": note.weight,
        "notes": note.notes,
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
            for line in note.lines.all()
        ]
    return data


# ============================================================
# Orders
# ============================================================

@require_http_methods(["GET", "POST"])
@json_endpoint
def order_list(request, principal):
    if request.method == "POST":
        order = OrderService.create_order(principal, read_json(request))
        return json_response(serialize_staff_order(order), status=201)

    require(principal, "sales.view")
    qs = Order.objects.alive().select_related("customer")
    if request.GET.get("status"):
        qs = qs.with_status(*request.GET.getlist("status"))
    if request.GET.get("customer"):
        qs = qs.filter(customer__public_id=request.GET["customer"])
    qs = qs.search(request.GET.get("q", "").strip())
    return json_response(paginate(request, qs, lambda o: serialize_staff_order(o, lines=False)))


@require_http_methods(["GET", "PATCH"])
@json_endpoint
def order_detail(request, principal, public_id):
    require(principal, "sales.view")
    order = get_object_or_404(Order.objects.select_related("customer"), public_id=public_id)
    if request.method == "PATCH":
        order = OrderService.update_order(principal, order, read_json(request))
    return json_response(serialize_staff_order(order))


@require_POST
@json_endpoint
def order_confirm(request, principal, public_id):
    order = get_object_or_404(Order, public_id=public_id)
    return json_response(serialize_staff_order(OrderService.confirm_order(principal, order)))


@require_POST
@json_endpoint
def order_cancel(request, principal, public_id):
    order = get_object_or_404(Order, public_id=public_id)
    reason = str(read_json(request).get("reason", ""))
    return json_response(serialize_staff_order(OrderService.cancel_order(principal, order, reason=reason)))


@require_POST
@json_endpoint
def order_deliver(request, principal, public_id):
    order = get_object_or_404(Order, public_id=public_id)
    note = OrderService.record_delivery(principal, order, read_json(request))
    return json_response(serialize_delivery_note(note), status=201)


# ============================================================
# Delivery notes
# ============================================================

@require_http_methods(["GET", "POST"])
@json_endpoint
def delivery_note_list(request, principal):
    if request.method == "POST":
        note = OrderService.create_delivery_note(principal, read_json(request))
        return json_response(serialize_delivery_note(note), status=201)

    require(principal, "sales.view")
    qs = DeliveryNote.objects.alive().select_related("customer", "order", "invoice")
    if request.GET.get("uninvoiced"):
        qs = qs.uninvoiced()
    if request.GET.get("customer"):
        qs = qs.filter(customer__public_id=request.GET["customer"])
    qs = qs.search(request.GET.get("q", "").strip())
    return json_response(paginate(request, qs, lambda n: serialize_delivery_note(n, lines=False)))


@require_GET
@json_endpoint
def delivery_note_detail(request, principal, public_id):
    require(principal, "sales.view")
    note = get_object_or_404(DeliveryNote.objects.select_related("customer", "order", "invoice"), public_id=public_id)
    return json_response(serialize_delivery_note(note))


@require_POST
@json_endpoint
def delivery_note_delivered(request, principal, public_id):
    note = get_object_or_404(DeliveryNote, public_id=public_id)
    raw = read_json(request).get("delivery_date")
    delivery_date = None
    if raw:
        try:
            delivery_date = parse_date(str(raw))
        except ValueError:
            delivery_date = None
        if delivery_date is None:
            raise ValidationError.single("delivery_date", "invalid", "Enter a valid date (YYYY-MM-DD).")
    note = OrderService.mark_delivered(principal, note, delivery_date=delivery_date)
    return json_response(serialize_delivery_note(note))
