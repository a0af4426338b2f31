# sales/models.py
from decimal import Decimal

from django.db import models
from django.db.models import Sum
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from catalog.models import DEFAULT_VAT_RATE, Product
from contacts.models import Customer
from core.models import BaseModel, Unit
from core.money import DECIMAL_ZERO, QTY_ZERO, line_amounts, money
from .managers import DeliveryNoteManager, OrderManager


# ===================================================================
# Order
# ===================================================================

class Order(BaseModel):
    """
    Customer order.
    Lifecycle: DRAFT -> CONFIRMED -> [PARTIALLY_DELIVERED] -> DELIVERED -> INVOICED -> PAID
    CANCELLED is reachable from any state before INVOICED.
    Status changes go through sales.workflow.ORDER_WORKFLOW only.
    """

    class Status(models.TextChoices):
        DRAFT = "draft", _("Ricevuto")
        CONFIRMED = "confirmed", _("Confermato")
        PARTIALLY_DELIVERED = "partially_delivered", _("Consegnato in parte")
        DELIVERED = "delivered", _("Consegnato")
        INVOICED = "invoiced", _("Fatturato")
        PAID = "paid", _("Pagato")
        CANCELLED = "cancelled", _("Annullato")

    class Channel(models.TextChoices):
        WHATSAPP = "whatsapp", _("WhatsApp")
        EMAIL = "email", _("Email")
        AUDIO = "audio", _("Messaggio vocale")
        MANUAL = "manual", _("Inserimento manuale")
        WEB = "web", _("Portale clienti")

    number = models.CharField(
        max_length=32,
        unique=True,
        editable=False,
        verbose_name=_("Numero"),
    )

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="orders",
        verbose_name=_("Cliente"),
    )

    channel = models.CharField(
        max_length=20,
        choices=Channel.choices,
        default=Channel.MANUAL,
        verbose_name=_("Canale"),
    )

    status = models.CharField(
        max_length=24,
        choices=Status.choices,
        default=Status.DRAFT,
        verbose_name=_("Stato"),
        db_index=True,
    )

    order_date = models.DateField(
        default=timezone.localdate,
        verbose_name=_("Data ordine"),
        db_index=True,
    )
    requested_delivery_date = models.DateField(
        null=True,
        blank=True,
        verbose_name=_("Consegna richiesta"),
    )

    notes = models.TextField(blank=True, verbose_name=_("Note"))
    internal_notes = models.TextField(blank=True, verbose_name=_("Note interne"))

    # ========== Amounts ==========

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("Imponibile"))
    vat_amount = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("IVA"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("Totale"))

    objects = OrderManager()

    class Meta:
        ordering = ("-order_date", "-id")
        verbose_name = _("Ordine")
        verbose_name_plural = _("Ordini")

    def __str__(self) -> str:
        return f"{self.number} - {self.customer}"

    @property
    def is_editable(self) -> bool:
        """Lines can change until the first delivery note is issued."""
        return self.status in (self.Status.DRAFT, self.Status.CONFIRMED) and not self.delivery_notes.exists()

    def recompute_totals(self, save: bool = True) -> None:
        """
        Recalculate subtotal / VAT / total from the lines.
        VAT is computed per line and then summed.
        """
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

    def delivery_progress(self) -> str:
        """
        "none" / "partial" / "complete", from the issued delivery note lines.
        """
        delivered = (
            DeliveryNoteLine.objects
            .filter(order_line__order=self)
            .aggregate(s=Sum("quantity"))["s"]
            or QTY_ZERO
        )
        if delivered <= QTY_ZERO:
            return "none"
        if any(line.remaining_quantity > QTY_ZERO for line in self.lines.all()):
            return "partial"
        return "complete"


class OrderLine(models.Model):
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="lines",
        verbose_name=_("Ordine"),
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="order_lines",
        verbose_name=_("Prodotto"),
    )
    # Free text when the customer asked for something not in the catalog
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
    notes = models.CharField(max_length=255, blank=True, verbose_name=_("Note"))

    class Meta:
        ordering = ("id",)
        verbose_name = _("Riga ordine")
        verbose_name_plural = _("Righe ordine")

    def __str__(self) -> str:
        return f"{self.order.number} - {self.product_name}"

    def compute_line_total(self) -> Decimal:
        net, _vat = line_amounts(self.quantity, self.unit_price, self.vat_rate)
        return net

    def save(self, *args, **kwargs):
        self.line_total = self.compute_line_total()
        super().save(*args, **kwargs)

    @property
    def delivered_quantity(self) -> Decimal:
        return self.delivery_lines.aggregate(s=Sum("quantity"))["s"] or QTY_ZERO

    @property
    def remaining_quantity(self) -> Decimal:
        remaining = (self.quantity or QTY_ZERO) - self.delivered_quantity
        return remaining if remaining > QTY_ZERO else QTY_ZERO


# ===================================================================
# Delivery note (DDT)
# ===================================================================

class DeliveryNote(BaseModel):
    """
    Documento di trasporto. Issued against an order (full or partial
    delivery) or on its own. Invoiced at most once.
    """

    class Status(models.TextChoices):
        ISSUED = "issued", _("Emesso")
        DELIVERED = "delivered", _("Consegnato")

    number = models.CharField(
        max_length=32,
        unique=True,
        editable=False,
        verbose_name=_("Numero"),
    )

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="delivery_notes",
        verbose_name=_("Cliente"),
    )
    order = models.ForeignKey(
        Order,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="delivery_notes",
        verbose_name=_("Ordine"),
    )
    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="delivery_notes",
        verbose_name=_("Fattura"),
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ISSUED,
        verbose_name=_("Stato"),
        db_index=True,
    )

    issue_date = models.DateField(default=timezone.localdate, verbose_name=_("Data emissione"))
    delivery_date = models.DateField(null=True, blank=True, verbose_name=_("Data consegna"))

    # ========== Transport ==========

    transport_reason = models.CharField(max_length=100, default="Vendita", verbose_name=_("Causale trasporto"))
    transported_by = models.CharField(max_length=100, default="Mittente", verbose_name=_("Trasporto a cura del"))
    goods_appearance = models.CharField(max_length=100, blank=True, verbose_name=_("Aspetto dei beni"))
    number_of_packages = models.PositiveIntegerField(null=True, blank=True, verbose_name=_("Numero colli"))
    weight = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True, verbose_name=_("Peso (kg)"))
    notes = models.TextField(blank=True, verbose_name=_("Note"))

    objects = DeliveryNoteManager()

    class Meta:
        ordering = ("-issue_date", "-id")
        verbose_name = _("Documento di trasporto")
        verbose_name_plural = _("Documenti di trasporto")

    def __str__(self) -> str:
        return self.number

    @property
    def is_invoiced(self) -> bool:
        return self.invoice_id is not None


class DeliveryNoteLine(models.Model):
    delivery_note = models.ForeignKey(
        DeliveryNote,
        on_delete=models.CASCADE,
        related_name="lines",
        verbose_name=_("DDT"),
    )
    order_line = models.ForeignKey(
        OrderLine,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="delivery_lines",
        verbose_name=_("Riga ordine"),
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="delivery_lines",
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
        verbose_name = _("Riga DDT")
        verbose_name_plural = _("Righe DDT")

    def __str__(self) -> str:
        return f"{self.delivery_note.number} - {self.product_name}"

    def save(self, *args, **kwargs):
        self.line_total, _vat = line_amounts(self.quantity, self.unit_price, self.vat_rate)
        super().save(*args, **kwargs)
