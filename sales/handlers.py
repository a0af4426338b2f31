# sales/handlers.py
import logging

from django.urls import reverse

from billing.models import BillingSettings
from core.domain.dispatcher import register_handler
from core.models import Notification
from core.services.notifications import notify_staff, send_email
from .domain import DeliveryNoteDelivered, OrderConfirmed, OrderPlaced
from .models import DeliveryNote, Order

logger = logging.getLogger(__name__)


def _order(order_id: int):
    try:
        return Order.objects.select_related("customer").get(pk=order_id)
    except Order.DoesNotExist:
        logger.warning("Order %s vanished before its event was handled", order_id)
        return None


def _order_summary(order: Order) -> str:
    rows = [
        f"- {line.product_name}: {line.quantity} {line.unit} x {line.unit_price} EUR"
        for line in order.lines.all()
    ]
    return "\n".join(rows + ["", f"Totale (IVA inclusa): {order.total} EUR"])


@register_handler(OrderPlaced)
def notify_staff_on_web_order(event: OrderPlaced) -> None:
    """
    Orders placed from the customer portal need a look from the office.
    """
    if event.channel != Order.Channel.WEB:
        return

    order = _order(event.order_id)
    if order is None:
        return

    notify_staff(
        f"Nuovo ordine dal portale {order.number} ({order.customer.company_name})",
        order,
        level=Notification.Levels.INFO,
        url=reverse("sales:order_detail", kwargs={"public_id": order.public_id}),
    )


@register_handler(OrderPlaced)
def email_customer_on_web_order(event: OrderPlaced) -> None:
    if event.channel != Order.Channel.WEB:
        return

    order = _order(event.order_id)
    if order is None:
        return

    send_email(
        f"Ordine ricevuto {order.number}",
        f"Gentile {order.customer.company_name},\n\n"
        f"abbiamo ricevuto il suo ordine {order.number}.\n\n"
        f"{_order_summary(order)}\n",
        order.customer.notification_emails,
    )


@register_handler(OrderConfirmed)
def email_customer_on_confirmation(event: OrderConfirmed) -> None:
    order = _order(event.order_id)
    if order is None:
        return

    delivery = (
        f"Consegna prevista: {order.requested_delivery_date:%d/%m/%Y}\n"
        if order.requested_delivery_date
        else ""
    )
    send_email(
        f"Ordine confermato {order.number}",
        f"Gentile {order.customer.company_name},\n\n"
        f"il suo ordine {order.number} è stato confermato.\n{delivery}\n"
        f"{_order_summary(order)}\n",
        order.customer.notification_emails,
    )


@register_handler(DeliveryNoteDelivered)
def notify_staff_on_uninvoiced_delivery(event: DeliveryNoteDelivered) -> None:
    """
    With auto-invoicing off, delivered notes wait for a manual invoice.
    """
    if BillingSettings.get_solo().auto_invoice_on_delivery:
        return

    note = DeliveryNote.objects.filter(pk=event.delivery_note_id, invoice__isnull=True).first()
    if note is None:
        return

    notify_staff(
        f"DDT {note.number} consegnato, da fatturare",
        note,
        level=Notification.Levels.WARNING,
        url=reverse("sales:delivery_note_detail", kwargs={"public_id": note.public_id}),
    )
