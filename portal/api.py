# portal/api.py

from django.views.decorators.http import require_GET, require_http_methods

from billing.api import serialize_invoice
from core.api import json_endpoint, json_response, paginate, read_json
from sales.api import serialize_order
from . import services


def serialize_own_payment(payment) -> dict:
    return {
        "id": str(payment.public_id),
        "invoice": payment.invoice.number if payment.invoice_id else None,
        "amount": payment.amount,
        "payment_date": payment.payment_date,
        "method": payment.method,
        "reference": payment.reference,
    }


@require_http_methods(["GET", "POST"])
@json_endpoint
def order_list(request, principal):
    if request.method == "POST":
        order = services.place_order(principal, read_json(request))
        return json_response(serialize_order(order), status=201)

    qs = services.own_orders(principal)
    if request.GET.get("status"):
        qs = qs.with_status(*request.GET.getlist("status"))
    return json_response(paginate(request, qs, lambda o: serialize_order(o, lines=False)))


@require_GET
@json_endpoint
def order_detail(request, principal, public_id):
    return json_response(serialize_order(services.own_order(principal, public_id)))


@require_GET
@json_endpoint
def invoice_list(request, principal):
    qs = services.own_invoices(principal)
    return json_response(paginate(request, qs, lambda i: serialize_invoice(i, lines=False)))


@require_GET
@json_endpoint
def payment_list(request, principal):
    return json_response(paginate(request, services.own_payments(principal), serialize_own_payment))
