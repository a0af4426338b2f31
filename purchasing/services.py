# purchasing/services.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Mapping

from django.utils import timezone

from catalog.models import DEFAULT_VAT_RATE
from core.domain.dispatcher import emit_on_commit
from core.exceptions import ValidationError, Violation
from core.models import AuditLog, DocumentType, Unit
from core.money import QTY_ZERO, money
from core.permissions import Principal, require
from core.services.audit import record_for
from core.services.numbering import next_document_number
from core.transactions import atomic_operation
from core.validation import validate
from inventory.models import StockMovement
from inventory.services import record_document_movements
from sales.models import Order
from .domain import PurchaseOrderSent
from .models import PurchaseOrder, PurchaseOrderLine, ShoppingList, ShoppingListItem, SupplierInvoice
from .workflow import PURCHASE_ORDER_WORKFLOW, SHOPPING_LIST_WORKFLOW

logger = logging.getLogger(__name__)

S = PurchaseOrder.Status
L = ShoppingList.Status


class PurchaseService:
    """
    Purchase orders and supplier invoices.
    """

    # ============================================================
    # Purchase orders
    # ============================================================
    @staticmethod
    @atomic_operation
    def create_purchase_order(principal: Principal, payload: Mapping[str, Any]) -> PurchaseOrder:
        require(principal, "purchasing.manage_purchase_order")
        data = validate("purchase_order", payload).data

        purchase_order = PurchaseOrder(
            supplier=data["supplier"],
            expected_date=data.get("expected_date"),
            notes=data.get("notes") or "",
            created_by=principal.actor,
        )
        purchase_order.number = next_document_number(
            DocumentType.PURCHASE_ORDER,
            on_date=purchase_order.order_date,
        )
        purchase_order.save()

        for item in data["items"]:
            product = item.get("product")
            unit_price = item.get("unit_price")
            if unit_price is None:
                unit_price = product.cost_price if product.cost_price is not None else product.default_price
            vat_rate = item.get("vat_rate")
            if vat_rate is None:
                vat_rate = product.vat_rate if product else DEFAULT_VAT_RATE
            PurchaseOrderLine.objects.create(
                purchase_order=purchase_order,
                product=product,
                product_name=item.get("product_name") or product.name,
                quantity=item["quantity"],
                unit=item.get("unit") or (product.unit if product else Unit.KG),
                unit_price=unit_price,
                vat_rate=vat_rate,
            )
        purchase_order.recompute_totals(save=True)

        record_for(
            principal.actor,
            purchase_order,
            AuditLog.Action.CREATE,
            {"number": purchase_order.number, "supplier": purchase_order.supplier.code, "total": purchase_order.total},
            message=f"Creato ordine d'acquisto {purchase_order.number}",
        )
        return purchase_order

    @staticmethod
    @atomic_operation
    def send_purchase_order(principal: Principal, purchase_order: PurchaseOrder) -> PurchaseOrder:
        purchase_order = PurchaseOrder.objects.select_for_update().get(pk=purchase_order.pk)
        PURCHASE_ORDER_WORKFLOW.apply(purchase_order, S.SENT, principal, metadata={"number": purchase_order.number})
        emit_on_commit(PurchaseOrderSent(purchase_order_id=purchase_order.pk, number=purchase_order.number))
        return purchase_order

    @staticmethod
    @atomic_operation
    def receive_purchase_order(
        principal: Principal,
        purchase_order: PurchaseOrder,
        *,
        supplier_reference: str = "",
    ) -> SupplierInvoice:
        """
        Goods arrived: close the purchase order, load its products into the
        warehouse and register the supplier invoice for its amount, due
        after the supplier's payment terms.
        """
        purchase_order = (
            PurchaseOrder.objects.select_for_update().select_related("supplier").get(pk=purchase_order.pk)
        )
        PURCHASE_ORDER_WORKFLOW.apply(
            purchase_order,
            S.RECEIVED,
            principal,
            metadata={"number": purchase_order.number},
        )
        purchase_order.received_at = timezone.now()
        purchase_order.save(update_fields=["received_at", "updated_at"])
        record_document_movements(
            principal,
            StockMovement.MovementType.CARICO,
            purchase_order.lines.select_related("product"),
            reference_type=StockMovement.Reference.PURCHASE_ORDER,
            reference_number=purchase_order.number,
            reason=f"Carico da {purchase_order.number}",
        )

        today = timezone.localdate()
        return _create_supplier_invoice(
            principal,
            supplier=purchase_order.supplier,
            purchase_order=purchase_order,
            supplier_reference=supplier_reference,
            issue_date=today,
            due_date=today + timedelta(days=purchase_order.supplier.payment_terms_days),
            subtotal=purchase_order.subtotal,
            vat_amount=purchase_order.vat_amount,
        )

    @staticmethod
    @atomic_operation
    def cancel_purchase_order(principal: Principal, purchase_order: PurchaseOrder, *, reason: str = "") -> PurchaseOrder:
        purchase_order = PurchaseOrder.objects.select_for_update().get(pk=purchase_order.pk)
        PURCHASE_ORDER_WORKFLOW.apply(
            purchase_order,
            S.CANCELLED,
            principal,
            metadata={"number": purchase_order.number, "reason": reason},
        )
        return purchase_order

    # ============================================================
    # Supplier invoices
    # ============================================================
    @staticmethod
    @atomic_operation
    def create_supplier_invoice(principal: Principal, payload: Mapping[str, Any]) -> SupplierInvoice:
        require(principal, "purchasing.manage_supplier_invoice")
        data = validate("supplier_invoice", payload).data

        supplier = data["supplier"]
        issue_date = data.get("issue_date") or timezone.localdate()
        due_date = data.get("due_date") or issue_date + timedelta(days=supplier.payment_terms_days)
        return _create_supplier_invoice(
            principal,
            supplier=supplier,
            purchase_order=data.get("purchase_order"),
            supplier_reference=data.get("supplier_reference") or "",
            issue_date=issue_date,
            due_date=due_date,
            subtotal=data["subtotal"],
            vat_amount=data["vat_amount"],
            notes=data.get("notes") or "",
        )


def _create_supplier_invoice(principal: Principal, **values) -> SupplierInvoice:
    invoice = SupplierInvoice(created_by=principal.actor, **values)
    invoice.total = money(invoice.subtotal + invoice.vat_amount)
    invoice.number = next_document_number(DocumentType.SUPPLIER_INVOICE, on_date=invoice.issue_date)
    invoice.save()

    record_for(
        principal.actor,
        invoice,
        AuditLog.Action.CREATE,
        {
            "number": invoice.number,
            "supplier": invoice.supplier.code,
            "purchase_order": invoice.purchase_order.number if invoice.purchase_order_id else None,
            "total": invoice.total,
        },
        message=f"Registrata fattura fornitore {invoice.number}",
    )
    logger.info("Supplier invoice %s registered (%s)", invoice.number, invoice.total)
    return invoice


class ShoppingListService:
    """
    Lista della spesa: what to buy for one delivery date, and the
    purchase orders raised from it.
    """

    @staticmethod
    @atomic_operation
    def generate(principal: Principal, payload: Mapping[str, Any]) -> ShoppingList:
        """
        Build the list from the orders to deliver on the date: one item per
        order line still to deliver, with the product's usual supplier and
        cost price. A draft list of the same date is rebuilt from scratch.
        """
        require(principal, "purchasing.manage_shopping_list")
        data = validate("shopping_list", payload).data
        delivery_date = data["delivery_date"]

        orders = list(
            Order.objects.to_deliver()
            .filter(requested_delivery_date=delivery_date)
            .select_related("customer")
            .prefetch_related("lines__product__preferred_supplier")
        )
        if not orders:
            raise ValidationError.single(
                "delivery_date",
                "no_orders",
                f"No orders to deliver on {delivery_date:%d/%m/%Y}.",
            )

        shopping_list = ShoppingList.objects.select_for_update().filter(delivery_date=delivery_date).first()
        created = shopping_list is None
        if created:
            shopping_list = ShoppingList(delivery_date=delivery_date, created_by=principal.actor)
        elif shopping_list.status != L.DRAFT:
            raise ValidationError.single(
                "delivery_date",
                "not_editable",
                f"The shopping list of {delivery_date:%d/%m/%Y} is already {shopping_list.get_status_display()}.",
            )
        else:
            shopping_list.items.all().delete()
        shopping_list.order_count = len(orders)
        shopping_list.notes = data.get("notes") or shopping_list.notes
        shopping_list.save()

        items = []
        for order in orders:
            for line in order.lines.all():
                remaining = line.remaining_quantity
                if remaining <= QTY_ZERO:
                    continue
                product = line.product
                items.append(
                    ShoppingListItem(
                        shopping_list=shopping_list,
                        product=product,
                        product_name=line.product_name,
                        customer=order.customer,
                        quantity=remaining,
                        unit=line.unit,
                        supplier=product.preferred_supplier if product else None,
                        supplier_price=product.cost_price if product else None,
                        notes=line.notes,
                    )
                )
        ShoppingListItem.objects.bulk_create(items)

        record_for(
            principal.actor,
            shopping_list,
            AuditLog.Action.CREATE if created else "regenerate",
            {"delivery_date": delivery_date, "orders": len(orders), "items": len(items)},
            message=f"Generata lista spesa del {delivery_date:%d/%m/%Y}",
        )
        logger.info("Shopping list %s: %d items from %d orders", delivery_date, len(items), len(orders))
        return shopping_list

    @staticmethod
    @atomic_operation
    def finalize(principal: Principal, shopping_list: ShoppingList) -> ShoppingList:
        shopping_list = ShoppingList.objects.select_for_update().get(pk=shopping_list.pk)
        SHOPPING_LIST_WORKFLOW.apply(
            shopping_list,
            L.FINALIZED,
            principal,
            metadata={"delivery_date": shopping_list.delivery_date},
        )
        return shopping_list

    @staticmethod
    @atomic_operation
    def update_item(principal: Principal, item: ShoppingListItem, payload: Mapping[str, Any]) -> ShoppingListItem:
        """Change quantity, supplier, price or notes; fields left out keep their value."""
        require(principal, "purchasing.manage_shopping_list")
        item = (
            ShoppingListItem.objects.select_for_update()
            .select_related("shopping_list", "supplier")
            .get(pk=item.pk)
        )
        _ensure_editable(item)

        current = {
            "quantity": item.quantity,
            "supplier": str(item.supplier.public_id) if item.supplier_id else None,
            "supplier_price": item.supplier_price,
            "notes": item.notes,
        }
        data = validate("shopping_list_item", {**current, **dict(payload)}).data

        changed = sorted(name for name, value in data.items() if getattr(item, name) != value)
        if changed:
            for name in changed:
                setattr(item, name, data[name])
            item.save(update_fields=changed)
            record_for(
                principal.actor,
                item.shopping_list,
                AuditLog.Action.UPDATE,
                {"item": item.public_id, "product": item.product_name, "changed": changed},
            )
        return item

    @staticmethod
    @atomic_operation
    def merge_items(principal: Principal, target: ShoppingListItem, payload: Mapping[str, Any]) -> ShoppingListItem:
        """
        Fold items of the same product and unit into target, to buy them
        as one quantity. The merged items are deleted.
        """
        require(principal, "purchasing.manage_shopping_list")
        target = (
            ShoppingListItem.objects.select_for_update()
            .select_related("shopping_list")
            .get(pk=target.pk)
        )
        _ensure_editable(target)
        sources = [item for item in validate("shopping_list_merge", payload).data["items"] if item.pk != target.pk]
        if not sources:
            raise ValidationError.single("items", "required", "Choose the items to merge.")

        violations = []
        for source in sources:
            same_goods = (
                source.product_id == target.product_id
                and source.unit == target.unit
                and (target.product_id is not None or source.product_name == target.product_name)
            )
            if source.shopping_list_id != target.shopping_list_id or source.is_ordered or not same_goods:
                violations.append(
                    Violation(
                        "items",
                        "product_mismatch",
                        f"{source.product_name} ({source.unit}) cannot be merged into "
                        f"{target.product_name} ({target.unit}).",
                    )
                )
        if violations:
            raise ValidationError(violations)

        target.quantity = sum((source.quantity for source in sources), target.quantity)
        target.notes = "; ".join(note for note in [target.notes, *(s.notes for s in sources)] if note)
        if any(source.customer_id != target.customer_id for source in sources):
            target.customer = None
        target.save(update_fields=["quantity", "notes", "customer"])
        ShoppingListItem.objects.filter(pk__in=[source.pk for source in sources]).delete()

        record_for(
            principal.actor,
            target.shopping_list,
            "merge_items",
            {"product": target.product_name, "merged": len(sources) + 1, "quantity": target.quantity},
        )
        return target

    @staticmethod
    @atomic_operation
    def create_purchase_orders(principal: Principal, shopping_list: ShoppingList) -> dict:
        """
        Raise one purchase order per supplier from the list, then mark it
        ordered. Items without a supplier are bought at the market and are
        skipped.
        """
        shopping_list = ShoppingList.objects.select_for_update().get(pk=shopping_list.pk)
        SHOPPING_LIST_WORKFLOW.resolve(shopping_list, L.ORDERED, principal)

        by_supplier: dict[int, list[ShoppingListItem]] = {}
        skipped = []
        pending = (
            shopping_list.items.filter(purchase_order__isnull=True)
            .select_related("product", "supplier")
            .order_by("supplier__company_name", "product_name", "id")
        )
        for item in pending:
            if item.supplier_id is None:
                skipped.append(item)
            else:
                by_supplier.setdefault(item.supplier_id, []).append(item)
        if not by_supplier:
            raise ValidationError.single("items", "no_supplier", "No item has a supplier to order from.")

        purchase_orders = []
        for items in by_supplier.values():
            purchase_order = PurchaseService.create_purchase_order(
                principal,
                {
                    "supplier": str(items[0].supplier.public_id),
                    "expected_date": shopping_list.delivery_date,
                    "notes": f"Generato da lista spesa del {shopping_list.delivery_date:%d/%m/%Y}",
                    "items": [
                        {
                            "product": str(item.product.public_id) if item.product_id else None,
                            "product_name": item.product_name,
                            "quantity": item.quantity,
                            "unit": item.unit,
                            "unit_price": item.supplier_price,
                        }
                        for item in items
                    ],
                },
            )
            ShoppingListItem.objects.filter(pk__in=[item.pk for item in items]).update(purchase_order=purchase_order)
            purchase_orders.append(purchase_order)

        SHOPPING_LIST_WORKFLOW.apply(
            shopping_list,
            L.ORDERED,
            principal,
            metadata={
                "purchase_orders": [po.number for po in purchase_orders],
                "skipped": len(skipped),
            },
        )
        return {"shopping_list": shopping_list, "purchase_orders": purchase_orders, "skipped": skipped}


def _ensure_editable(item: ShoppingListItem) -> None:
    if not item.shopping_list.is_editable or item.is_ordered:
        raise ValidationError.single(
            "item",
            "not_editable",
            f"{item.product_name} has already been ordered.",
        )
