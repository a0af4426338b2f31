# sales/workflow.py
"""
Order and delivery note state machines.

    draft ─confirm─> confirmed ─record_partial_delivery─> partially_delivered
                         │                                      │
                         └──────────record_delivery─────────────┴─> delivered ─invoice─> invoiced ─settle─> paid

    cancel: draft / confirmed / partially_delivered / delivered ─> cancelled
"""
from typing import Optional

from core.workflow import Transition, Workflow
from .models import DeliveryNote, Order

S = Order.Status


# ------------------------------------------------------------------
# Preconditions: return None when met, otherwise the missing requirement
# ------------------------------------------------------------------

def has_lines(order: Order) -> Optional[str]:
    return None if order.lines.exists() else "order has no lines"


def has_delivery_note(order: Order) -> Optional[str]:
    return None if order.delivery_notes.exists() else "missing delivery note"


def partly_delivered(order: Order) -> Optional[str]:
    return "order is fully delivered" if order.delivery_progress() == "complete" else None


def fully_delivered(order: Order) -> Optional[str]:
    return None if order.delivery_progress() == "complete" else "order not fully delivered"


def has_invoice(order: Order) -> Optional[str]:
    return None if order.delivery_notes.filter(invoice__isnull=False).exists() else "missing invoice"


def all_delivery_notes_invoiced(order: Order) -> Optional[str]:
    if order.delivery_notes.filter(invoice__isnull=True).exists():
        return "delivery notes not invoiced"
    return None


def nothing_invoiced(order: Order) -> Optional[str]:
    if order.delivery_notes.filter(invoice__isnull=False).exists():
        return "order has invoiced delivery notes"
    return None


def invoices_paid(order: Order) -> Optional[str]:
    from billing.models import Invoice  # local import to avoid circular imports

    unpaid = (
        Invoice.objects
        .filter(delivery_notes__order=order)
        .exclude(status=Invoice.Status.PAID)
        .exists()
    )
    return "invoices not fully paid" if unpaid else None


ORDER_WORKFLOW = Workflow(
    Order,
    [
        Transition(
            action="confirm",
            sources=frozenset({S.DRAFT}),
            target=S.CONFIRMED,
            permission="sales.confirm_order",
            requires=(has_lines,),
        ),
        Transition(
            action="record_partial_delivery",
            sources=frozenset({S.CONFIRMED, S.PARTIALLY_DELIVERED}),
            target=S.PARTIALLY_DELIVERED,
            permission="sales.record_delivery",
            requires=(has_delivery_note, partly_delivered),
        ),
        Transition(
            action="record_delivery",
            sources=frozenset({S.CONFIRMED, S.PARTIALLY_DELIVERED}),
            target=S.DELIVERED,
            permission="sales.record_delivery",
            requires=(has_delivery_note, fully_delivered),
        ),
        Transition(
            action="invoice",
            sources=frozenset({S.DELIVERED}),
            target=S.INVOICED,
            permission="sales.invoice_order",
            requires=(has_delivery_note, has_invoice, all_delivery_notes_invoiced),
        ),
        Transition(
            action="settle",
            sources=frozenset({S.INVOICED}),
            target=S.PAID,
            permission="sales.settle_order",
            requires=(has_invoice, invoices_paid),
        ),
        Transition(
            action="cancel",
            sources=frozenset({S.DRAFT, S.CONFIRMED, S.PARTIALLY_DELIVERED, S.DELIVERED}),
            target=S.CANCELLED,
            permission="sales.cancel_order",
            requires=(nothing_invoiced,),
        ),
    ],
    final_states=(S.PAID, S.CANCELLED),
)


DELIVERY_NOTE_WORKFLOW = Workflow(
    DeliveryNote,
    [
        Transition(
            action="mark_delivered",
            sources=frozenset({DeliveryNote.Status.ISSUED}),
            target=DeliveryNote.Status.DELIVERED,
            permission="sales.mark_delivered",
        ),
    ],
    final_states=(DeliveryNote.Status.DELIVERED,),
)
