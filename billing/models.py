# billing/models.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.db import models
from django.db.models import Sum
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from solo.models import SingletonModel

from catalog.models import DEFAULT_VAT_RATE, Product
from contacts.models import Customer, Supplier
from core.models import BaseModel, PaymentMethod, Unit
from core.money import DECIMAL_ZERO, line_amounts, money
from .managers import InvoiceManager, PaymentManager


# ============================================================
# Billing settings
# ============================================================
class BillingSettings(SingletonModel):
    """
    Business policy for invoicing. One row, edited by the administrator.
    """

    company_name = models.CharField(max_length=255, blank=True, verbose_name=_("Ragione sociale"))
    vat_number = models.CharField(max_length=20, blank=True, verbose_name=_("Partita IVA"))

    default_vat_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DEFAULT_VAT_RATE,
        verbose_name=_("Aliquota IVA predefinita %"),
    )
    default_payment_terms_days = models.PositiveIntegerField(
        default=30,
        verbose_name=_("Termini di pagamento predefiniti (giorni)"),
    )
    auto_invoice_on_delivery = models.BooleanField(
        default=True,
        verbose_name=_("Fattura automatica alla consegna"),
        help_text=_("Emette la fattura quando il DDT viene segnato come consegnato."),
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Impostazioni fatturazione")

    def __str__(self) -> str:
        return "Billing settings"


# ============================================================
# Invoice
# ============================================================
class Invoice(BaseModel):
    """
    Customer invoice built from one or more delivery notes.
    Status: ISSUED -> SENT, then PARTIALLY_PAID / PAID as payments arrive.
    """

    class Status(models.TextChoices):
        ISSUED = "issued", _("Emessa")
        SENT = "sent", _("Inviata")
        PARTIALLY_PAID = "partially_paid", _("Pagata in parte")
        PAID = "paid", _("Pagata")

    number = models.CharField(
        max_length=32,
        unique=True,
        editable=False,
        verbose_name=_("Numero"),
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="invoices",
        verbose_name=_("Cliente"),
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ISSUED,
        verbose_name=_("Stato"),
        db_index=True,
    )

    issue_date = models.DateField(default=timezone.localdate, verbose_name=_("Data emissione"), db_index=True)
    due_date = models.DateField(verbose_name=_("Scadenza"), db_index=True)
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.BONIFICO,
        verbose_name=_("Metodo di pagamento"),
    )
    sent_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Inviata il"))
    notes = models.TextField(blank=True, verbose_name=_("Note"))

    # ========== Amounts ==========

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("Imponibile"))
    vat_amount = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("IVA"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=DECIMAL_ZERO, verbose_name=_("Totale"))
    paid_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Incassato"),
    )

    objects = InvoiceManager()

    class Meta:
        ordering = ("-issue_date", "-id")
        verbose_name = _("Fattura")
        verbose_name_plural = _("Fatture")

    def __str__(self) -> str:
        return f"{self.number} - {self.customer}"

    @property
    def balance(self) -> Decimal:
        return money(self.total - self.paid_amount)

    @property
    def is_paid(self) -> bool:
        return self.status == self.Status.PAID

    def is_overdue(self, on_date: date | None = None) -> bool:
        on_date = on_date or timezone.localdate()
        return not self.is_paid and self.due_date < on_date

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

    def payment_status(self) -> str:
        """Status implied by paid_amount; sent/issued are kept until money arrives."""
        if self.paid_amount >= self.total > DECIMAL_ZERO:
            return self.Status.PAID
        if self.paid_amount > DECIMAL_ZERO:
            return self.Status.PARTIALLY_PAID
        return self.status


class InvoiceLine(models.Model):
    """
    Copy of a delivery note line at invoicing time.
    """

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name="lines",
        verbose_name=_("Fattura"),
    )
    delivery_note_number = models.CharField(max_length=32, blank=True, verbose_name=_("DDT"))
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="invoice_lines",
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
        verbose_name = _("Riga fattura")
        verbose_name_plural = _("Righe fattura")

    def __str__(self) -> str:
        return f"{self.invoice.number} - {self.product_name}"

    def save(self, *args, **kwargs):
        self.line_total, _vat = line_amounts(self.quantity, self.unit_price, self.vat_rate)
        super().save(*args, **kwargs)


# ============================================================
# Payment
# ============================================================
class Payment(BaseModel):
    """
    Money in (from a customer) or out (to a supplier).
    """

    class Direction(models.TextChoices):
        INCOMING = "incoming", _("Incasso")
        OUTGOING = "outgoing", _("Pagamento")

    direction = models.CharField(
        max_length=10,
        choices=Direction.choices,
        default=Direction.INCOMING,
        verbose_name=_("Tipo"),
        db_index=True,
    )

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        verbose_name=_("Cliente"),
    )
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        verbose_name=_("Fattura"),
    )
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        verbose_name=_("Fornitore"),
    )
    supplier_invoice = models.ForeignKey(
        "purchasing.SupplierInvoice",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        verbose_name=_("Fattura fornitore"),
    )

    amount = models.DecimalField(max_digits=12, decimal_places=2, verbose_name=_("Importo"))
    payment_date = models.DateField(default=timezone.localdate, verbose_name=_("Data"), db_index=True)
    method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.BONIFICO,
        verbose_name=_("Metodo"),
    )
    reference = models.CharField(max_length=100, blank=True, verbose_name=_("Riferimento"))
    notes = models.TextField(blank=True, verbose_name=_("Note"))
    overpayment_allowed = models.BooleanField(
        default=False,
        verbose_name=_("Eccedenza autorizzata"),
        help_text=_("Il pagamento può superare il saldo della fattura."),
    )

    objects = PaymentManager()

    class Meta:
        ordering = ("-payment_date", "-id")
        verbose_name = _("Pagamento")
        verbose_name_plural = _("Pagamenti")

    def __str__(self) -> str:
        counterparty = self.customer if self.direction == self.Direction.INCOMING else self.supplier
        return f"{self.get_direction_display()} {self.amount} - {counterparty}"


def paid_total(invoice: Invoice) -> Decimal:
    """Sum of the payments recorded against the invoice."""
    return money(invoice.payments.alive().aggregate(s=Sum("amount"))["s"] or DECIMAL_ZERO)
