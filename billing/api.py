# billing/api.py

from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core.api import date_param, json_endpoint, json_response, paginate, read_json
from core.permissions import require
from .models import BillingSettings, Invoice, Payment
from .services import (
    InvoiceService,
    PaymentService,
    export_receivables,
    receivables_schedule,
    update_billing_settings,
)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ============================================================
# Serializers
# ============================================================

def serialize_invoice(invoice: Invoice, *, lines: bool = True) -> dict:
    data = {
        "id": str(invoice.public_id),
        "number": invoice.number,
        "customer": {
            "id": str(invoice.customer.public_id),
            "code": invoice.customer.code,
            "company_name": invoice.customer.company_name,
        },
        "status": invoice.status,
        "issue_date": invoice.issue_date,
        "due_date": invoice.due_date,
        "payment_method": invoice.payment_method,
        "sent_at": invoice.sent_at,
        "subtotal": invoice.subtotal,
        "vat_amount": invoice.vat_amount,
        "total": invoice.total,
        "paid_amount": invoice.paid_amount,
        "balance": invoice.balance,
        "is_overdue": invoice.is_overdue(),
        "delivery_notes": list(invoice.delivery_notes.values_list("number", flat=True)),
    }
    if lines:
        data["lines"] = [
            {
                "delivery_note": line.delivery_note_number,
                "product_name": line.product_name,
                "quantity": line.quantity,
                "unit": line.unit,
                "unit_price": line.unit_price,
                "vat_rate": line.vat_rate,
                "line_total": line.line_total,
            }
            for line in invoice.lines.all()
        ]
    return data


def serialize_payment(payment: Payment) -> dict:
    return {
        "id": str(payment.public_id),
        "direction": payment.direction,
        "customer": payment.customer.code if payment.customer_id else None,
        "supplier": payment.supplier.code if payment.supplier_id else None,
        "invoice": payment.invoice.number if payment.invoice_id else None,
        "supplier_invoice": payment.supplier_invoice.number if payment.supplier_invoice_id else None,
        "amount": payment.amount,
        "payment_date": payment.payment_date,
        "method": payment.method,
        "reference": payment.reference,
        "notes": payment.notes,
        "overpayment_allowed": payment.overpayment_allowed,
    }


def serialize_settings(settings_obj: BillingSettings) -> dict:
    return {
        "company_name": settings_obj.company_name,
        "vat_number": settings_obj.vat_number,
        "default_vat_rate": settings_obj.default_vat_rate,
        "default_payment_terms_days": settings_obj.default_payment_terms_days,
        "auto_invoice_on_delivery": settings_obj.auto_invoice_on_delivery,
    }


# ============================================================
# Settings
# ============================================================

@require_http_methods(["GET", "PATCH"])
@json_endpoint
def billing_settings(request, principal):
    if request.method == "PATCH":
        return json_response(serialize_settings(update_billing_settings(principal, read_json(request))))
    require(principal, "billing.view")
    return json_response(serialize_settings(BillingSettings.get_solo()))


# ============================================================
# Invoices
# ============================================================

@require_http_methods(["GET", "POST"])
@json_endpoint
def invoice_list(request, principal):
    if request.method == "POST":
        invoice = InvoiceService.issue_invoice(principal, read_json(request))
        return json_response(serialize_invoice(invoice), status=201)

    require(principal, "billing.view")
    qs = Invoice.objects.alive().select_related("customer")
    if request.GET.get("status"):
        qs = qs.filter(status__in=request.GET.getlist("status"))
    if request.GET.get("overdue"):
        qs = qs.overdue()
    if request.GET.get("customer"):
        qs = qs.filter(customer__public_id=request.GET["customer"])
    qs = qs.search(request.GET.get("q", "").strip())
    return json_response(paginate(request, qs, lambda i: serialize_invoice(i, lines=False)))


@require_GET
@json_endpoint
def invoice_detail(request, principal, public_id):
    require(principal, "billing.view")
    invoice = get_object_or_404(Invoice.objects.select_related("customer"), public_id=public_id)
    return json_response(serialize_invoice(invoice))


@require_POST
@json_endpoint
def invoice_send(request, principal, public_id):
    invoice = get_object_or_404(Invoice, public_id=public_id)
    return json_response(serialize_invoice(InvoiceService.send_invoice(principal, invoice)))


# ============================================================
# Payments
# ============================================================

@require_http_methods(["GET", "POST"])
@json_endpoint
def payment_list(request, principal):
    if request.method == "POST":
        payment = PaymentService.record_payment(principal, read_json(request))
        return json_response(serialize_payment(payment), status=201)

    require(principal, "billing.view")
    qs = Payment.objects.alive().select_related("customer", "supplier", "invoice", "supplier_invoice")
    if request.GET.get("direction"):
        qs = qs.filter(direction=request.GET["direction"])
    date_from, date_to = date_param(request, "date_from"), date_param(request, "date_to")
    if date_from:
        qs = qs.filter(payment_date__gte=date_from)
    if date_to:
        qs = qs.filter(payment_date__lte=date_to)
    return json_response(paginate(request, qs, serialize_payment))


@require_GET
@json_endpoint
def payment_detail(request, principal, public_id):
    require(principal, "billing.view")
    payment = get_object_or_404(
        Payment.objects.select_related("customer", "supplier", "invoice", "supplier_invoice"),
        public_id=public_id,
    )
    return json_response(serialize_payment(payment))


# ============================================================
# Receivables
# ============================================================

@require_GET
@json_endpoint
def receivables(request, principal):
    rows = receivables_schedule(principal, on_date=date_param(request, "on_date"))
    return json_response({"count": len(rows), "results": rows})


@require_GET
@json_endpoint
def receivables_export(request, principal):
    workbook = export_receivables(principal, on_date=date_param(request, "on_date"))
    response = HttpResponse(content_type=XLSX_CONTENT_TYPE)
    response["Content-Disposition"] = 'attachment; filename="scadenzario.xlsx"'
    workbook.save(response)
    return response
