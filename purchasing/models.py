# purchasing/models.py
from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from catalog.models import DEFAULT_VAT_RATE, Product
from contacts.models import Customer, Supplier
from core.managers import ArchiveQuerySet
from core.models import BaseModel, Unit
from core.money import DECIMAL_ZERO, line_amounts, money


class PurchaseOrderQuerySet(ArchiveQuerySet):
    def for_supplier(self, supplier):
        return self.filter(supplier=supplier)

    def open(self):
        return self.alive().filter(status__in=("draft", "sent"))

    def search(self, query: str):
        if not query:
            return self
        return self.filter(Q(number__icontains=query) | Q(supplier__company_name__icontains=query))


class SupplierInvoiceQuerySet(ArchiveQuerySet):
    def unpaid(self):
        return self.alive().exclude(status="paid")

    def search(self, query: str):
        if not query:
            return self
        return self.filter(
            Q(number__icontains=query)
            | Q(supplier_reference__icontains=query)
            | Q(supplier__company_name__icontains=query)
        )


# ============================================================
# Purchase order
# ============================================================
class PurchaseOrder(BaseModel):
    """
    Ordine d'acquisto to a supplier.
    Lifecycle: DRAFT -> SENT -> RECEIVED, CANCELLED from DRAFT or SENT.
    """

    class Status(models.TextChoices):
        DRAFT = "draft", _("Bozza")
        SENT = "sent", _("Inviato")
        RECEIVED = "received", _("Ricevuto")
        CANCELLED = "cancelled", _("Annullato")

    number = models.CharField(max_length=32, unique=True, editable=False, verbose_name=_("Numero"))
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.PROTECT,
        related_name="purchase_orders",
        verbose_name=_("Fornitore"),
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        verbose_name=_("Stato"),
        db_index=True,
    )
    order_date = models.DateField(default=timezone.localdate, verbose_name=_("Data ordine"))
    expected_date = models.DateField(null=True, blank=True, verbose_name=_("Consegna prevista"))
    received_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Ricevuto il"))
    notes = models.TextField(blank=True, verbose_name=_("Note"))

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("Imponibile"))
    vat_amount = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("IVA"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("Totale"))

    objects = models.Manager.from_queryset(PurchaseOrderQuerySet)()

    class Meta:
        ordering = ("-order_date", "-id")
        verbose_name = _("Ordine d'acquisto")
        verbose_name_plural = _("Ordini d'acquisto")

    def __str__(self) -> str:
        return f"{self.number} - {self.supplier}"

    def recompute_totals(self, save: bool = True) -> None:
        subtotal = vat = DECIMAL_ZERO
        for line in self.lines.all():
            net, line_vat = line_amounts(line.quantity, line.unit_price, line.vat_rate)
            subtotal += net
            vat += line_vat

        self.subtotal = money(subtotal)
        self.vat_amount = money(vat)
        self.total = money(subtotal + vat)

        if save:
            self.save(update_fields=["subtotal", "vat_amount", "total", "updated_at"])


class PurchaseOrderLine(models.Model):
    purchase_order = models.ForeignKey(
        PurchaseOrder,
        on_delete=models.CASCADE,
        related_name="lines",
        verbose_name=_("Ordine d'acquisto"),
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="purchase_lines",
        verbose_name=_("Prodotto"),
    )
    product_name = models.CharField(max_length=255, verbose_name=_("Descrizione"))
    quantity = models.DecimalField(max_digits=10, decimal_places=3, verbose_name=_("Quantità"))
    unit = models.CharField(max_length=20, choices=Unit.choices, default=Unit.KG, verbose_name=_("Unità"))
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, verbose_name=_("Prezzo unitario"))
    vat_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DEFAULT_VAT_RATE,
        verbose_name=_("IVA %"),
    )
    line_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Totale riga"),
    )

    class Meta:
        ordering = ("id",)
        verbose_name = _("Riga ordine d'acquisto")
        verbose_name_plural = _("Righe ordine d'acquisto")

    def __str__(self) -> str:
        return f"{self.purchase_order.number} - {self.product_name}"

    def save(self, *args, **kwargs):
        self.line_total, _vat = line_amounts(self.quantity, self.unit_price, self.vat_rate)
        super().save(*args, **kwargs)


# ============================================================
# Supplier invoice
# ============================================================
class SupplierInvoice(BaseModel):
    """
    Invoice received from a supplier, registered by hand or created when a
    purchase order is received. Paid through outgoing billing.Payment rows.
    """

    class Status(models.TextChoices):
        UNPAID = "unpaid", _("Da pagare")
        PARTIALLY_PAID = "partially_paid", _("Pagata in parte")
        PAID = "paid", _("Pagata")

    number = models.CharField(max_length=32, unique=True, editable=False, verbose_name=_("Numero interno"))
    supplier_reference = models.CharField(max_length=64, blank=True, verbose_name=_("Numero fornitore"))
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.PROTECT,
        related_name="supplier_invoices",
        verbose_name=_("Fornitore"),
    )
    purchase_order = models.ForeignKey(
        PurchaseOrder,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="supplier_invoices",
        verbose_name=_("Ordine d'acquisto"),
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.UNPAID,
        verbose_name=_("Stato"),
        db_index=True,
    )
    issue_date = models.DateField(default=timezone.localdate, verbose_name=_("Data fattura"))
    due_date = models.DateField(verbose_name=_("Scadenza"))

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("Imponibile"))
    vat_amount = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("IVA"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("Totale"))
    paid_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Pagato"),
    )
    notes = models.TextField(blank=True, verbose_name=_("Note"))

    objects = models.Manager.from_queryset(SupplierInvoiceQuerySet)()

    class Meta:
        ordering = ("-issue_date", "-id")
        verbose_name = _("Fattura fornitore")
        verbose_name_plural = _("Fatture fornitori")

    def __str__(self) -> str:
        return f"{self.number} - {self.supplier}"

    @property
    def balance(self) -> Decimal:
        return money(self.total - self.paid_amount)

    @property
    def is_paid(self) -> bool:
        return self.status == self.Status.PAID

    def payment_status(self) -> str:
        if self.paid_amount >= self.total > DECIMAL_ZERO:
            return self.Status.PAID
        if self.paid_amount > DECIMAL_ZERO:
            return self.Status.PARTIALLY_PAID
        return self.Status.UNPAID


# ============================================================
# Shopping list
# ============================================================
class ShoppingList(BaseModel):
    """
    Lista della spesa: what to buy at the market for one delivery date,
    built from the confirmed orders due that day.
    Lifecycle: DRAFT -> FINALIZED -> ORDERED once purchase orders are raised.
    """

    class Status(models.TextChoices):
        DRAFT = "draft", _("Bozza")
        FINALIZED = "finalized", _("Definitiva")
        ORDERED = "ordered", _("Ordinata")

    delivery_date = models.DateField(unique=True, verbose_name=_("Data consegna"))
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        verbose_name=_("Stato"),
        db_index=True,
    )
    order_count = models.PositiveIntegerField(default=0, verbose_name=_("Ordini considerati"))
    notes = models.TextField(blank=True, verbose_name=_("Note"))

    class Meta:
        ordering = ("-delivery_date",)
        verbose_name = _("Lista della spesa")
        verbose_name_plural = _("Liste della spesa")

    def __str__(self) -> str:
        return f"Lista spesa {self.delivery_date:%d/%m/%Y}"

    @property
    def is_editable(self) -> bool:
        return self.status != self.Status.ORDERED


class ShoppingListItem(models.Model):
    """
    One product to buy. Items start one per customer order line and can be
    merged into a single purchase quantity.
    """

    public_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False, db_index=True)
    shopping_list = models.ForeignKey(
        ShoppingList,
        on_delete=models.CASCADE,
        related_name="items",
        verbose_name=_("Lista della spesa"),
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="shopping_list_items",
        verbose_name=_("Prodotto"),
    )
    product_name = models.CharField(max_length=255, verbose_name=_("Descrizione"))
    # Empty once items of several customers are merged.
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="shopping_list_items",
        verbose_name=_("Cliente"),
    )
    quantity = models.DecimalField(max_digits=10, decimal_places=3, verbose_name=_("Quantità"))
    unit = models.CharField(max_length=20, choices=Unit.choices, default=Unit.KG, verbose_name=_("Unità"))
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="shopping_list_items",
        verbose_name=_("Fornitore"),
    )
    supplier_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_("Prezzo fornitore"),
    )
    notes = models.TextField(blank=True, verbose_name=_("Note"))
    purchase_order = models.ForeignKey(
        PurchaseOrder,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="shopping_list_items",
        verbose_name=_("Ordine d'acquisto"),
    )

    class Meta:
        ordering = ("product_name", "id")
        verbose_name = _("Articolo lista della spesa")
        verbose_name_plural = _("Articoli lista della spesa")

    def __str__(self) -> str:
        return f"{self.product_name}: {self.quantity} {self.unit}"

    @property
    def is_ordered(self) -> bool:
        return self.purchase_order_id is not None
