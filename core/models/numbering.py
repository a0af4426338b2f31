# core/models/numbering.py
from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _


class DocumentType(models.TextChoices):
    ORDER = "order", _("Ordine")
    DELIVERY_NOTE = "delivery_note", _("DDT")
    INVOICE = "invoice", _("Fattura")
    PURCHASE_ORDER = "purchase_order", _("Ordine fornitore")
    SUPPLIER_INVOICE = "supplier_invoice", _("Fattura fornitore")
    CUSTOMER = "customer", _("Cliente")
    SUPPLIER = "supplier", _("Fornitore")


DEFAULT_PREFIXES = {
    DocumentType.ORDER: "ORD",
    DocumentType.DELIVERY_NOTE: "DDT",
    DocumentType.INVOICE: "FT",
    DocumentType.PURCHASE_ORDER: "OA",
    DocumentType.SUPPLIER_INVOICE: "FT-FORN",
    DocumentType.CUSTOMER: "CLI",
    DocumentType.SUPPLIER: "FOR",
}

DEFAULT_PATTERN = "{prefix}-{year}-{seq:04d}"


class NumberingScheme(models.Model):
    """
    Numbering configuration per document type.

    Example row:
    - document_type: "invoice"
    - prefix: "FT"
    - pattern: "{prefix}-{year}-{seq:04d}"   -> FT-2024-0001
    - reset: "year"
    - start: 1
    """

    class ResetPolicy(models.TextChoices):
        NEVER = "never", _("Mai")
        YEAR = "year", _("Ogni anno")
        MONTH = "month", _("Ogni mese")

    document_type = models.CharField(
        max_length=32,
        choices=DocumentType.choices,
        unique=True,
        verbose_name=_("Tipo documento"),
    )

    prefix = models.CharField(
        max_length=16,
        blank=True,
        verbose_name=_("Prefisso"),
    )

    pattern = models.CharField(
        max_length=100,
        default=DEFAULT_PATTERN,
        verbose_name=_("Schema numerazione"),
        help_text=_("Esempio: {prefix}-{year}-{seq:04d} oppure {prefix}/{year}{month:02d}/{seq:03d}"),
    )

    reset = models.CharField(
        max_length=10,
        choices=ResetPolicy.choices,
        default=ResetPolicy.YEAR,
        verbose_name=_("Azzeramento"),
    )

    start = models.PositiveIntegerField(
        default=1,
        verbose_name=_("Valore iniziale"),
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_("Ultima modifica"),
    )

    class Meta:
        verbose_name = _("Schema di numerazione")
        verbose_name_plural = _("Schemi di numerazione")

    def __str__(self) -> str:
        return f"{self.document_type} → {self.pattern}"

    def clean(self):
        super().clean()
        if "{seq" not in self.pattern:
            raise ValidationError(_("Lo schema deve contenere la variabile {seq}."))

    def period_for(self, on_date) -> str:
        """Period key for a date under this scheme's reset policy."""
        if self.reset == self.ResetPolicy.YEAR:
            return str(on_date.year)
        if self.reset == self.ResetPolicy.MONTH:
            return f"{on_date.year}-{on_date.month:02d}"
        return ""

    def format(self, seq: int, on_date) -> str:
        return self.pattern.format(
            prefix=self.prefix,
            year=on_date.year,
            month=on_date.month,
            day=on_date.day,
            seq=seq,
        )

    @classmethod
    def get_for_type(cls, document_type: str) -> "NumberingScheme":
        """
        Scheme for a document type, created with the default prefix
        the first time it is requested.
        """
        scheme, _created = cls.objects.get_or_create(
            document_type=document_type,
            defaults={
                "prefix": DEFAULT_PREFIXES.get(document_type, ""),
                "pattern": DEFAULT_PATTERN,
                "reset": cls.ResetPolicy.YEAR,
                "start": 1,
            },
        )
        return scheme
