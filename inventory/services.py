# inventory/services.py
from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Iterable, Mapping

from django.db.models import DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce

from catalog.models import Product
from core.exceptions import ValidationError, Violation
from core.models import AuditLog
from core.money import DECIMAL_ZERO, QTY_ZERO, money
from core.permissions import Principal, require
from core.services.audit import record_for
from core.transactions import atomic_operation
from core.validation import validate
from .managers import INCOMING_TYPES, OUTGOING_TYPES
from .models import StockMovement

logger = logging.getLogger(__name__)

M = StockMovement.MovementType
R = StockMovement.Reference

QUANTITY_FIELD = DecimalField(max_digits=12, decimal_places=3)
RECENT_MOVEMENTS = 20
RECENT_PURCHASES = 15


# ============================================================
# Stock levels
# ============================================================

def with_stock(queryset):
    """
    Annotate products with stock_in and stock_out, the totals of their
    incoming and outgoing movements.
    """
    zero = Value(QTY_ZERO, output_field=QUANTITY_FIELD)
    return queryset.annotate(
        stock_in=Coalesce(
            Sum("stock_movements__quantity", filter=Q(stock_movements__movement_type__in=INCOMING_TYPES)),
            zero,
            output_field=QUANTITY_FIELD,
        ),
        stock_out=Coalesce(
            Sum("stock_movements__quantity", filter=Q(stock_movements__movement_type__in=OUTGOING_TYPES)),
            zero,
            output_field=QUANTITY_FIELD,
        ),
    )


def stock_on_hand(product: Product) -> Decimal:
    levels = with_stock(Product.objects.filter(pk=product.pk)).values("stock_in", "stock_out").get()
    return levels["stock_in"] - levels["stock_out"]


def stock_summary(principal: Principal, *, search: str = ""):
    """Live products with their stock on hand, for the warehouse list."""
    require(principal, "inventory.view")
    return with_stock(Product.objects.alive().search(search)).order_by("name")


def product_stock_card(principal: Principal, product: Product) -> dict:
    """
    Warehouse card of one product: stock on hand and its value at cost,
    the latest movements, and the recent purchase prices.
    """
    require(principal, "inventory.view")
    levels = with_stock(Product.objects.filter(pk=product.pk)).values("stock_in", "stock_out").get()
    current = levels["stock_in"] - levels["stock_out"]

    movements = StockMovement.objects.for_product(product).with_related()[:RECENT_MOVEMENTS]
    purchases = list(
        product.purchase_lines
        .select_related("purchase_order__supplier")
        .exclude(purchase_order__status="cancelled")
        .order_by("-purchase_order__order_date", "-id")[:RECENT_PURCHASES]
    )
    prices = [line.unit_price for line in purchases]

    return {
        "stock": {
            "current": current,
            "total_in": levels["stock_in"],
            "total_out": levels["stock_out"],
            "value": money(current * (product.cost_price or DECIMAL_ZERO)),
        },
        "preferred_supplier": product.preferred_supplier.company_name if product.preferred_supplier_id else None,
        "movements": list(movements),
        "purchases": purchases,
        "purchase_stats": {
            "order_count": len(purchases),
            "total_quantity": sum((line.quantity for line in purchases), QTY_ZERO),
            "total_spent": sum((line.line_total for line in purchases), DECIMAL_ZERO),
            "average_price": money(sum(prices, DECIMAL_ZERO) / len(prices)) if prices else DECIMAL_ZERO,
            "min_price": min(prices, default=DECIMAL_ZERO),
            "max_price": max(prices, default=DECIMAL_ZERO),
        },
    }


# ============================================================
# Movements
# ============================================================

class StockService:
    """
    Manual warehouse movements. Deliveries and purchase receipts move
    stock through record_document_movements().
    """

    @staticmethod
    @atomic_operation
    def record_movement(principal: Principal, payload: Mapping[str, Any]) -> StockMovement:
        require(principal, "inventory.manage_stock")
        data = validate("stock_movement", payload).data
        _check_available([data])
        return _create_movement(principal, **data)

    @staticmethod
    @atomic_operation
    def record_movements(principal: Principal, payload: Mapping[str, Any]) -> list[StockMovement]:
        """All the movements are saved, or none of them."""
        require(principal, "inventory.manage_stock")
        items = validate("stock_movements", payload).data["items"]
        _check_available(items, prefix="items.")
        movements = [_create_movement(principal, **item) for item in items]
        logger.info("Recorded %d stock movements", len(movements))
        return movements


def _check_available(items, *, prefix: str = "") -> None:
    """
    Manual outgoing movements may not take a product below zero.
    Items of the same product are checked cumulatively.
    """
    remaining: dict[int, Decimal] = {}
    violations = []
    for index, item in enumerate(items):
        if item["movement_type"] not in OUTGOING_TYPES:
            continue
        product = item["product"]
        if product.pk not in remaining:
            remaining[product.pk] = stock_on_hand(product)
        remaining[product.pk] -= item["quantity"]
        if remaining[product.pk] < QTY_ZERO:
            field = f"{prefix}{index}.quantity" if prefix else "quantity"
            violations.append(
                Violation(field, "insufficient_stock", f"Not enough {product.name} in stock.")
            )
    if violations:
        raise ValidationError(violations)


def _create_movement(
    principal: Principal,
    *,
    product: Product,
    movement_type: str,
    quantity,
    unit: str = "",
    reason: str = "",
    reference_type: str = R.MANUAL,
    reference_number: str = "",
) -> StockMovement:
    movement = StockMovement.objects.create(
        product=product,
        movement_type=movement_type,
        quantity=quantity,
        unit=unit or product.unit,
        reason=reason or "",
        reference_type=reference_type,
        reference_number=reference_number,
        created_by=principal.actor,
    )
    record_for(
        principal.actor,
        movement,
        AuditLog.Action.CREATE,
        {
            "product": product.name,
            "type": movement.movement_type,
            "quantity": movement.quantity,
            "reference": reference_number or None,
        },
    )
    return movement


def record_document_movements(
    principal: Principal,
    movement_type: str,
    lines: Iterable,
    *,
    reference_type: str,
    reference_number: str,
    reason: str,
) -> list[StockMovement]:
    """
    Move the goods of a document's lines in or out of the warehouse.

    Runs inside the caller's operation, which has already checked
    permissions. Free-text lines (no product) are not stocked and are
    skipped. Deliveries may take stock below zero: produce bought at the
    market the same morning is often never loaded.
    """
    movements = [
        _create_movement(
            principal,
            product=line.product,
            movement_type=movement_type,
            quantity=line.quantity,
            unit=line.unit,
            reason=reason,
            reference_type=reference_type,
            reference_number=reference_number,
        )
        for line in lines
        if line.product_id is not None
    ]
    if movements:
        logger.info("%s %s: %d stock movements (%s)", reference_type, reference_number, len(movements), movement_type)
    return movements


def restore_document_movements(
    principal: Principal,
    *,
    reference_type: str,
    numbers: Iterable[str],
    reason: str,
) -> list[StockMovement]:
    """
    Load back what the documents took out of stock and has not been
    restored yet. Calling it twice restores nothing the second time.
    """
    outstanding: dict[tuple, Decimal] = defaultdict(lambda: QTY_ZERO)
    products: dict[int, Product] = {}
    units: dict[tuple, str] = {}

    movements = StockMovement.objects.for_reference(reference_type, numbers).select_related("product")
    for movement in movements.filter(movement_type__in=(M.SCARICO, M.CARICO)):
        key = (movement.reference_number, movement.product_id)
        products[movement.product_id] = movement.product
        if movement.movement_type == M.SCARICO:
            outstanding[key] += movement.quantity
            units[key] = movement.unit
        else:
            outstanding[key] -= movement.quantity

    restored = []
    for (number, product_id), quantity in sorted(outstanding.items()):
        if quantity <= QTY_ZERO:
            continue
        restored.append(
            _create_movement(
                principal,
                product=products[product_id],
                movement_type=M.CARICO,
                quantity=quantity,
                unit=units[(number, product_id)],
                reason=reason,
                reference_type=reference_type,
                reference_number=number,
            )
        )
    return restored
