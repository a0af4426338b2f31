# billing/services.py
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Mapping, Optional

from django.db.models import Sum
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Font

from core.domain.dispatcher import emit_on_commit
from core.exceptions import ConcurrencyConflict, ValidationError
from core.models import AuditLog, DocumentType
from core.money import DECIMAL_ZERO, money
from core.permissions import Principal, require
from core.services.audit import record_for
from core.services.numbering import next_document_number
from core.transactions import atomic_operation
from core.validation import validate
from purchasing.models import SupplierInvoice
from sales.models import DeliveryNote
from sales.services import advance_after_invoicing, advance_after_payment
from .domain import InvoiceSent, PaymentRecorded
from .models import BillingSettings, Invoice, InvoiceLine, Payment, paid_total
from .workflow import INVOICE_WORKFLOW

logger = logging.getLogger(__name__)

# Ageing buckets for the receivables schedule: (label, max days overdue).
AGEING_BUCKETS = (
    ("current", 0),
    ("1-30", 30),
    ("31-60", 60),
    ("61-90", 90),
    ("90+", None),
)

RECEIVABLES_HEADERS = [
    "fattura",
    "cliente",
    "data",
    "scadenza",
    "totale",
    "incassato",
    "saldo",
    "giorni scaduti",
    "fascia",
]


class InvoiceService:

    # ============================================================
    # 1) Issue an invoice from delivery notes
    # ============================================================
    @staticmethod
    @atomic_operation
    def issue_invoice(principal: Principal, payload: Mapping[str, Any]) -> Invoice:
        """
        Invoice one or more delivery notes of the same customer.

        The notes are locked and linked with a conditional update, so a
        delivery note can never end up on two invoices.
        """
        require(principal, "billing.issue_invoice")
        data = validate("invoice", payload).data

        ids = [note.pk for note in data["delivery_notes"]]
        notes = list(
            DeliveryNote.objects.select_for_update()
            .filter(pk__in=ids)
            .select_related("customer")
            .order_by("issue_date", "pk")
        )
        if any(note.invoice_id is not None for note in notes):
            raise ValidationError.single("delivery_notes", "already_invoiced", "Delivery note already invoiced.")

        customer = notes[0].customer
        settings_obj = BillingSettings.get_solo()
        issue_date = data.get("issue_date") or timezone.localdate()
        terms = customer.payment_terms_days or settings_obj.default_payment_terms_days

        invoice = Invoice(
            customer=customer,
            issue_date=issue_date,
            due_date=data.get("due_date") or issue_date + timedelta(days=terms),
            payment_method=data.get("payment_method") or customer.payment_method,
            notes=data.get("notes") or "",
            created_by=principal.actor,
        )
        invoice.number = next_document_number(DocumentType.INVOICE, on_date=issue_date)
        invoice.save()

        for note in notes:
            for line in note.lines.all():
                InvoiceLine.objects.create(
                    invoice=invoice,
                    delivery_note_number=note.number,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit=line.unit,
                    unit_price=line.unit_price,
                    vat_rate=line.vat_rate,
                )
        invoice.recompute_totals(save=True)

        linked = (
            DeliveryNote.objects
            .filter(pk__in=ids, invoice__isnull=True)
            .update(invoice=invoice, updated_at=timezone.now())
        )
        if linked != len(ids):
            raise ConcurrencyConflict("Delivery notes were invoiced by another request.")

        record_for(
            principal.actor,
            invoice,
            AuditLog.Action.CREATE,
            {
                "number": invoice.number,
                "customer": customer.code,
                "delivery_notes": [note.number for note in notes],
                "total": invoice.total,
            },
            message=f"Emessa fattura {invoice.number}",
        )
        advance_after_invoicing(principal, {note.order_id for note in notes if note.order_id})
        return invoice

    # ============================================================
    # 2) Send
    # ============================================================
    @staticmethod
    @atomic_operation
    def send_invoice(principal: Principal, invoice: Invoice) -> Invoice:
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        INVOICE_WORKFLOW.apply(invoice, Invoice.Status.SENT, principal, metadata={"number": invoice.number})
        invoice.sent_at = timezone.now()
        invoice.save(update_fields=["sent_at", "updated_at"])
        emit_on_commit(InvoiceSent(invoice_id=invoice.pk, number=invoice.number))
        return invoice


class PaymentService:

    @staticmethod
    @atomic_operation
    def record_payment(principal: Principal, payload: Mapping[str, Any]) -> Payment:
        """
        Register money in or out.

        Payments against an invoice are capped at its balance. Only a
        principal allowed to authorize overpayments may exceed it, and the
        payment then carries overpayment_allowed=True.
        """
        require(principal, "billing.record_payment")
        data = validate("payment", payload).data

        allow_overpayment = data.pop("allow_overpayment", False)
        if allow_overpayment:
            require(principal, "billing.allow_overpayment")

        incoming = data["direction"] == Payment.Direction.INCOMING
        document = data.get("invoice") if incoming else data.get("supplier_invoice")
        model = Invoice if incoming else SupplierInvoice

        overpayment = False
        if document is not None:
            document = model.objects.select_for_update().get(pk=document.pk)
            balance = money(document.total - _paid_so_far(document))
            if data["amount"] > balance:
                if not allow_overpayment:
                    raise ValidationError.single(
                        "amount",
                        "max_value",
                        f"Amount exceeds the balance due on {document.number} ({balance}).",
                    )
                overpayment = True

        payment = Payment.objects.create(
            direction=data["direction"],
            customer=data.get("customer"),
            invoice=document if incoming else None,
            supplier=data.get("supplier"),
            supplier_invoice=None if incoming else document,
            amount=data["amount"],
            payment_date=data.get("payment_date") or timezone.localdate(),
            method=data["method"],
            reference=data.get("reference") or "",
            notes=data.get("notes") or "",
            overpayment_allowed=overpayment,
            created_by=principal.actor,
        )
        record_for(
            principal.actor,
            payment,
            AuditLog.Action.CREATE,
            {
                "direction": payment.direction,
                "amount": payment.amount,
                "document": document.number if document is not None else None,
                "overpayment_allowed": overpayment,
            },
        )

        if document is not None:
            if incoming:
                _settle_invoice(principal, document, payment)
            else:
                _settle_supplier_invoice(principal, document, payment)

        emit_on_commit(PaymentRecorded(payment_id=payment.pk, direction=payment.direction, overpayment=overpayment))
        return payment


def _paid_so_far(document) -> Any:
    if isinstance(document, Invoice):
        return paid_total(document)
    return money(document.payments.alive().aggregate(s=Sum("amount"))["s"] or DECIMAL_ZERO)


def _settle_invoice(principal: Principal, invoice: Invoice, payment: Payment) -> None:
    invoice.paid_amount = paid_total(invoice)
    invoice.save(update_fields=["paid_amount", "updated_at"])

    status = invoice.payment_status()
    if status != invoice.status:
        INVOICE_WORKFLOW.apply(
            invoice,
            status,
            principal,
            metadata={"payment": str(payment.public_id), "paid_amount": invoice.paid_amount},
        )
    if invoice.status == Invoice.Status.PAID:
        order_ids = invoice.delivery_notes.exclude(order__isnull=True).values_list("order_id", flat=True)
        advance_after_payment(principal, set(order_ids))


def _settle_supplier_invoice(principal: Principal, invoice: SupplierInvoice, payment: Payment) -> None:
    invoice.paid_amount = _paid_so_far(invoice)
    status = invoice.payment_status()
    changed = status != invoice.status
    invoice.status = status
    invoice.save(update_fields=["paid_amount", "status", "updated_at"])
    if changed:
        record_for(
            principal.actor,
            invoice,
            AuditLog.Action.UPDATE,
            {"status": status, "paid_amount": invoice.paid_amount, "payment": str(payment.public_id)},
        )


# ============================================================
# Receivables
# ============================================================

def _bucket(days_overdue: int) -> str:
    for label, limit in AGEING_BUCKETS:
        if limit is None or days_overdue <= limit:
            return label
    return AGEING_BUCKETS[-1][0]


def receivables_schedule(
    principal: Principal,
    *,
    on_date: Optional[date] = None,
    customer=None,
) -> list[dict]:
    """
    Open customer invoices by due date, with days overdue and ageing bucket.
    """
    require(principal, "billing.view")
    on_date = on_date or timezone.localdate()

    qs = Invoice.objects.unpaid().select_related("customer").order_by("due_date", "number")
    if customer is not None:
        qs = qs.for_customer(customer)

    rows = []
    for invoice in qs:
        days_overdue = max((on_date - invoice.due_date).days, 0)
        rows.append({
            "invoice": invoice.number,
            "customer": invoice.customer.company_name,
            "customer_code": invoice.customer.code,
            "issue_date": invoice.issue_date,
            "due_date": invoice.due_date,
            "total": invoice.total,
            "paid_amount": invoice.paid_amount,
            "balance": invoice.balance,
            "days_overdue": days_overdue,
            "bucket": _bucket(days_overdue),
        })
    return rows


def export_receivables(principal: Principal, *, on_date: Optional[date] = None) -> Workbook:
    """Receivables schedule as an Excel workbook, with a total row."""
    rows = receivables_schedule(principal, on_date=on_date)

    wb = Workbook()
    ws = wb.active
    ws.title = "Scadenzario"

    ws.append(RECEIVABLES_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for row in rows:
        ws.append([
            row["invoice"],
            row["customer"],
            row["issue_date"],
            row["due_date"],
            float(row["total"]),
            float(row["paid_amount"]),
            float(row["balance"]),
            row["days_overdue"],
            row["bucket"],
        ])

    total_row = ["Totale", "", None, None, None, None, float(sum((r["balance"] for r in rows), DECIMAL_ZERO))]
    ws.append(total_row)
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)
    return wb


# ============================================================
# Settings
# ============================================================

@atomic_operation
def update_billing_settings(principal: Principal, payload: Mapping[str, Any]) -> BillingSettings:
    """Partial update of the billing policy; unchanged fields keep their value."""
    require(principal, "billing.manage_settings")
    settings_obj = BillingSettings.get_solo()

    fields = ["company_name", "vat_number", "default_vat_rate", "default_payment_terms_days", "auto_invoice_on_delivery"]
    merged = {**{name: getattr(settings_obj, name) for name in fields}, **dict(payload)}
    data = validate("billing_settings", merged).data

    changed = sorted(name for name in fields if getattr(settings_obj, name) != data[name])
    if not changed:
        return settings_obj

    for name in changed:
        setattr(settings_obj, name, data[name])
    settings_obj.save(update_fields=[*changed, "updated_at"])
    record_for(principal.actor, settings_obj, AuditLog.Action.UPDATE, {"changed": changed})
    logger.info("Billing settings changed: %s", ", ".join(changed))
    return settings_obj
