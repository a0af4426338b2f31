# billing/handlers.py
import logging

from django.urls import reverse

from core.domain.dispatcher import register_handler
from core.models import Notification
from core.services.notifications import notify_staff, send_email
from .domain import InvoiceSent, PaymentRecorded
from .models import Invoice, Payment

logger = logging.getLogger(__name__)


@register_handler(InvoiceSent)
def email_invoice_to_customer(event: InvoiceSent) -> None:
    invoice = Invoice.objects.select_related("customer").filter(pk=event.invoice_id).first()
    if invoice is None:
        return

    customer = invoice.customer
    rows = [
        f"- {line.product_name}: {line.quantity} {line.unit} x {line.unit_price} EUR"
        for line in invoice.lines.all()
    ]
    send_email(
        f"Fattura {invoice.number}",
        f"Gentile {customer.company_name},\n\n"
        f"le inviamo la fattura {invoice.number} del {invoice.issue_date:%d/%m/%Y}.\n\n"
        + "\n".join(rows)
        + f"\n\nImponibile: {invoice.subtotal} EUR\n"
        f"IVA: {invoice.vat_amount} EUR\n"
        f"Totale: {invoice.total} EUR\n"
        f"Scadenza: {invoice.due_date:%d/%m/%Y} ({invoice.get_payment_method_display()})\n",
        customer.notification_emails,
    )


@register_handler(PaymentRecorded)
def notify_staff_on_overpayment(event: PaymentRecorded) -> None:
    """
    Overpayments leave a credit with the counterparty; someone has to
    decide what to do with it.
    """
    if not event.overpayment:
        return

    payment = Payment.objects.select_related("invoice", "supplier_invoice").filter(pk=event.payment_id).first()
    if payment is None:
        return

    document = payment.invoice or payment.supplier_invoice
    notify_staff(
        f"Pagamento eccedente di {payment.amount} EUR su {document.number}",
        payment,
        level=Notification.Levels.WARNING,
        url=reverse("billing:payment_detail", kwargs={"public_id": payment.public_id}),
    )
    logger.warning("Overpayment %s recorded on %s", payment.public_id, document.number)
