# sales/services.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from django.utils import timezone

from billing.models import BillingSettings
from core.domain.dispatcher import emit_on_commit
from core.exceptions import IllegalTransition, ValidationError, Violation
from core.models import AuditLog, DocumentType, Unit
from core.money import QTY_ZERO
from core.permissions import Principal, require
from core.services.audit import record_for
from core.services.numbering import next_document_number
from core.transactions import atomic_operation
from core.validation import validate
from inventory.models import StockMovement
from inventory.services import record_document_movements, restore_document_movements
from .domain import DeliveryNoteDelivered, OrderConfirmed, OrderPlaced
from .models import DeliveryNote, DeliveryNoteLine, Order, OrderLine
from .workflow import DELIVERY_NOTE_WORKFLOW, ORDER_WORKFLOW

logger = logging.getLogger(__name__)

S = Order.Status

ORDER_HEADER_FIELDS = ("customer", "channel", "requested_delivery_date", "notes", "internal_notes")
DELIVERY_HEADER_FIELDS = (
    "issue_date",
    "transport_reason",
    "transported_by",
    "goods_appearance",
    "number_of_packages",
    "weight",
    "notes",
)


def _line_values(item: Mapping[str, Any], customer) -> dict:
    """
    Resolve a validated item into line values.
    Catalog items take name, unit, VAT and the customer's price from the product.
    """
    product = item.get("product")
    unit_price = item.get("unit_price")
    vat_rate = item.get("vat_rate")

    if product is not None:
        return {
            "product": product,
            "product_name": item.get("product_name") or product.name,
            "unit": item.get("unit") or product.unit,
            "unit_price": product.price_for(customer) if unit_price is None else unit_price,
            "vat_rate": product.vat_rate if vat_rate is None else vat_rate,
        }

    return {
        "product": None,
        "product_name": item["product_name"],
        "unit": item.get("unit") or Unit.KG,
        "unit_price": unit_price,
        "vat_rate": BillingSettings.get_solo().default_vat_rate if vat_rate is None else vat_rate,
    }


def _write_order_lines(order: Order, items: Iterable[Mapping[str, Any]]) -> None:
    for item in items:
        OrderLine.objects.create(
            order=order,
            quantity=item["quantity"],
            notes=item.get("notes") or "",
            **_line_values(item, order.customer),
        )
    order.recompute_totals(save=True)


def _order_payload(order: Order) -> dict:
    """Current order as a payload, used to merge partial updates."""
    return {
        "customer": str(order.customer.public_id),
        "channel": order.channel,
        "requested_delivery_date": order.requested_delivery_date,
        "notes": order.notes,
        "internal_notes": order.internal_notes,
        "items": [
            {
                "product": str(line.product.public_id) if line.product_id else None,
                "product_name": line.product_name,
                "quantity": line.quantity,
                "unit": line.unit,
                "unit_price": line.unit_price,
                "vat_rate": line.vat_rate,
                "notes": line.notes,
            }
            for line in order.lines.select_related("product")
        ],
    }


class OrderService:
    """
    Orders and delivery notes.
    Every status change goes through ORDER_WORKFLOW / DELIVERY_NOTE_WORKFLOW.
    """

    # ============================================================
    # Orders
    # ============================================================
    @staticmethod
    @atomic_operation
    def create_order(
        principal: Principal,
        payload: Mapping[str, Any],
        *,
        schema: str = "order",
        permission: str = "sales.create_order",
    ) -> Order:
        require(principal, permission)
        data = validate(schema, payload, context={"principal": principal}).data
        items = data.pop("items")

        order = Order(
            **{name: data[name] for name in ORDER_HEADER_FIELDS if name in data},
            created_by=principal.actor,
        )
        order.number = next_document_number(DocumentType.ORDER, on_date=order.order_date)
        order.save()
        _write_order_lines(order, items)

        record_for(
            principal.actor,
            order,
            AuditLog.Action.CREATE,
            {
                "number": order.number,
                "customer": order.customer.code,
                "channel": order.channel,
                "total": order.total,
            },
            message=f"Creato ordine {order.number}",
        )
        emit_on_commit(OrderPlaced(order_id=order.pk, number=order.number, channel=order.channel))
        return order

    @staticmethod
    @atomic_operation
    def update_order(principal: Principal, order: Order, payload: Mapping[str, Any]) -> Order:
        """
        Partial update while the order is draft or confirmed and nothing
        has been delivered. When "items" is given the lines are replaced.
        """
        require(principal, "sales.update_order")
        order = Order.objects.select_for_update().select_related("customer").get(pk=order.pk)
        if not order.is_editable:
            raise ValidationError.single(
                "__all__",
                "not_editable",
                f"Order {order.number} can no longer be changed ({order.status}).",
            )

        merged = {**_order_payload(order), **dict(payload)}
        data = validate("order", merged).data
        items = data.pop("items")

        changed = sorted(
            name for name in ORDER_HEADER_FIELDS
            if name in data and getattr(order, name) != data[name]
        )
        for name in changed:
            setattr(order, name, data[name])
        if changed:
            order.save(update_fields=[*changed, "updated_at"])

        replace_lines = "items" in payload
        if replace_lines:
            order.lines.all().delete()
            _write_order_lines(order, items)

        if changed or replace_lines:
            record_for(
                principal.actor,
                order,
                AuditLog.Action.UPDATE,
                {"changed": changed, "lines_replaced": replace_lines, "total": order.total},
            )
        return order

    @staticmethod
    @atomic_operation
    def confirm_order(principal: Principal, order: Order) -> Order:
        order = Order.objects.select_for_update().get(pk=order.pk)
        ORDER_WORKFLOW.apply(
            order,
            S.CONFIRMED,
            principal,
            metadata={"number": order.number},
            message=f"Confermato ordine {order.number}",
        )
        emit_on_commit(OrderConfirmed(order_id=order.pk, number=order.number))
        return order

    @staticmethod
    @atomic_operation
    def cancel_order(principal: Principal, order: Order, *, reason: str = "") -> Order:
        order = Order.objects.select_for_update().get(pk=order.pk)
        ORDER_WORKFLOW.apply(
            order,
            S.CANCELLED,
            principal,
            metadata={"number": order.number, "reason": reason},
            message=f"Annullato ordine {order.number}",
        )
        numbers = list(order.delivery_notes.values_list("number", flat=True))
        if numbers:
            restore_document_movements(
                principal,
                reference_type=StockMovement.Reference.DELIVERY_NOTE,
                numbers=numbers,
                reason=f"Ripristino per annullamento ordine {order.number}",
            )
        return order

    # ============================================================
    # Delivery notes
    # ============================================================
    @staticmethod
    @atomic_operation
    def record_delivery(
        principal: Principal,
        order: Order,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> DeliveryNote:
        """
        Issue a delivery note against an order and move the order to
        partially_delivered or delivered.

        payload["items"]: [{"order_line": <line id>, "quantity": "5.000"}, ...]
        Without items every remaining quantity is delivered.
        """
        require(principal, "sales.record_delivery")
        order = Order.objects.select_for_update().select_related("customer").get(pk=order.pk)
        if order.status not in (S.CONFIRMED, S.PARTIALLY_DELIVERED):
            raise IllegalTransition(order.status, S.DELIVERED, f"not allowed from {order.status}")

        data = validate("delivery_note", {**dict(payload or {}), "order": str(order.public_id)}).data
        quantities = _delivery_quantities(order, data["items"])

        note = _new_delivery_note(principal, order.customer, data, order=order)
        for line, quantity in quantities:
            DeliveryNoteLine.objects.create(
                delivery_note=note,
                order_line=line,
                product=line.product,
                product_name=line.product_name,
                quantity=quantity,
                unit=line.unit,
                unit_price=line.unit_price,
                vat_rate=line.vat_rate,
            )

        _unload_stock(principal, note)
        complete = order.delivery_progress() == "complete"
        ORDER_WORKFLOW.apply(
            order,
            S.DELIVERED if complete else S.PARTIALLY_DELIVERED,
            principal,
            metadata={"delivery_note": note.number},
            message=f"DDT {note.number} per ordine {order.number}",
        )
        return note

    @staticmethod
    @atomic_operation
    def create_delivery_note(principal: Principal, payload: Mapping[str, Any]) -> DeliveryNote:
        """
        Stand-alone delivery note (goods sent without an order).
        With an "order" in the payload this is record_delivery.
        """
        require(principal, "sales.record_delivery")
        data = validate("delivery_note", payload).data
        if data.get("order") is not None:
            return OrderService.record_delivery(principal, data["order"], payload)

        items = data["items"]
        violations = []
        if not items:
            violations.append(Violation("items", "required", "At least one item is required."))
        for index, item in enumerate(items):
            if item.get("order_line") is not None:
                violations.append(
                    Violation(f"items.{index}.order_line", "invalid", "Order lines need an order.")
                )
            if item.get("product") is None and not item.get("product_name"):
                violations.append(
                    Violation(f"items.{index}.product", "required", "Choose a product or type its name.")
                )
            elif item.get("product") is None and item.get("unit_price") is None:
                violations.append(
                    Violation(f"items.{index}.unit_price", "required", "Free-text items need a price.")
                )
        if violations:
            raise ValidationError(violations)

        customer = data["customer"]
        note = _new_delivery_note(principal, customer, data)
        for item in items:
            DeliveryNoteLine.objects.create(
                delivery_note=note,
                quantity=item["quantity"],
                **_line_values(item, customer),
            )
        _unload_stock(principal, note)
        return note

    @staticmethod
    @atomic_operation
    def mark_delivered(
        principal: Principal,
        delivery_note: DeliveryNote,
        *,
        delivery_date: date | None = None,
    ) -> DeliveryNote:
        """
        Confirm the goods reached the customer. When auto-invoicing is on
        the invoice is issued in the same transaction, unless the note
        belongs to a cancelled order.
        """
        note = DeliveryNote.objects.select_for_update().get(pk=delivery_note.pk)
        DELIVERY_NOTE_WORKFLOW.apply(
            note,
            DeliveryNote.Status.DELIVERED,
            principal,
            metadata={"number": note.number},
        )
        note.delivery_date = delivery_date or timezone.localdate()
        note.save(update_fields=["delivery_date", "updated_at"])

        if (
            BillingSettings.get_solo().auto_invoice_on_delivery
            and not note.is_invoiced
            and not _order_cancelled(note)
            and principal.can("billing.issue_invoice")
        ):
            from billing.services import InvoiceService  # local import to avoid circular imports

            InvoiceService.issue_invoice(principal, {"delivery_notes": [str(note.public_id)]})
            note.refresh_from_db()

        emit_on_commit(DeliveryNoteDelivered(delivery_note_id=note.pk, number=note.number))
        return note


# ============================================================
# Follow-ups driven by billing
# ============================================================

@atomic_operation
def advance_after_invoicing(principal: Principal, order_ids: Iterable[int]) -> list[Order]:
    """Move delivered orders whose delivery notes are all invoiced to invoiced."""
    return _advance(principal, order_ids, S.DELIVERED, "invoice")


@atomic_operation
def advance_after_payment(principal: Principal, order_ids: Iterable[int]) -> list[Order]:
    """Move invoiced orders whose invoices are all paid to paid."""
    return _advance(principal, order_ids, S.INVOICED, "settle")


def _advance(principal: Principal, order_ids, status: str, action: str) -> list[Order]:
    transition = ORDER_WORKFLOW.get(action)
    moved = []
    orders = Order.objects.select_for_update().filter(pk__in=set(order_ids), status=status).order_by("pk")
    for order in orders:
        if transition.unmet(order):
            continue
        ORDER_WORKFLOW.apply(order, transition.target, principal, metadata={"number": order.number})
        moved.append(order)
    return moved


# ============================================================
# Helpers
# ============================================================

def _unload_stock(principal: Principal, note: DeliveryNote) -> None:
    record_document_movements(
        principal,
        StockMovement.MovementType.SCARICO,
        note.lines.select_related("product"),
        reference_type=StockMovement.Reference.DELIVERY_NOTE,
        reference_number=note.number,
        reason=f"Consegna DDT {note.number}",
    )


def _order_cancelled(note: DeliveryNote) -> bool:
    return note.order_id is not None and note.order.status == S.CANCELLED


def _delivery_quantities(order: Order, items) -> list[tuple[OrderLine, Any]]:
    """
    (order line, quantity) pairs to deliver, checked against what is
    still outstanding on each line.
    """
    lines = {line.pk: line for line in order.lines.select_related("product")}

    if not items:
        pairs = [(line, line.remaining_quantity) for line in lines.values() if line.remaining_quantity > QTY_ZERO]
        if not pairs:
            raise ValidationError.single("items", "nothing_to_deliver", f"Order {order.number} is fully delivered.")
        return pairs

    pairs, violations = [], []
    requested: dict[int, Any] = {}
    for index, item in enumerate(items):
        line = item.get("order_line")
        if line is None or line.pk not in lines:
            violations.append(
                Violation(f"items.{index}.order_line", "invalid_choice", "Line does not belong to this order.")
            )
            continue
        requested[line.pk] = requested.get(line.pk, QTY_ZERO) + item["quantity"]
        if requested[line.pk] > lines[line.pk].remaining_quantity:
            violations.append(
                Violation(
                    f"items.{index}.quantity",
                    "max_value",
                    f"Only {lines[line.pk].remaining_quantity} left to deliver.",
                )
            )
            continue
        pairs.append((lines[line.pk], item["quantity"]))

    if violations:
        raise ValidationError(violations)
    return pairs


def _new_delivery_note(principal: Principal, customer, data: Mapping[str, Any], *, order=None) -> DeliveryNote:
    note = DeliveryNote(
        customer=customer,
        order=order,
        created_by=principal.actor,
        **{name: data[name] for name in DELIVERY_HEADER_FIELDS if data.get(name) is not None},
    )
    note.number = next_document_number(DocumentType.DELIVERY_NOTE, on_date=note.issue_date)
    note.save()
    record_for(
        principal.actor,
        note,
        AuditLog.Action.CREATE,
        {"number": note.number, "order": order.number if order else None},
        message=f"Emesso DDT {note.number}",
    )
    return note
