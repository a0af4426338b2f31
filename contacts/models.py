# contacts/models.py
from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel, PaymentMethod
from .managers import CustomerManager, SupplierManager


class Party(BaseModel):
    """
    Fields shared by customers and suppliers.
    The code (CLI-2024-0001 / FOR-2024-0001) is allocated by the services.
    """

    code = models.CharField(
        max_length=32,
        unique=True,
        editable=False,
        verbose_name=_("Codice"),
    )

    company_name = models.CharField(
        max_length=255,
        verbose_name=_("Ragione sociale"),
    )

    vat_number = models.CharField(
        max_length=20,
        blank=True,
        verbose_name=_("Partita IVA"),
    )
    fiscal_code = models.CharField(
        max_length=20,
        blank=True,
        verbose_name=_("Codice fiscale"),
    )

    # --------- Address ---------
    address = models.CharField(max_length=255, blank=True, verbose_name=_("Indirizzo"))
    city = models.CharField(max_length=100, blank=True, verbose_name=_("Città"))
    province = models.CharField(max_length=2, blank=True, verbose_name=_("Provincia"))
    postal_code = models.CharField(max_length=5, blank=True, verbose_name=_("CAP"))

    phone = models.CharField(max_length=50, blank=True, verbose_name=_("Telefono"))

    # --------- Payment terms ---------
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.BONIFICO,
        verbose_name=_("Metodo di pagamento"),
    )
    payment_terms_days = models.PositiveIntegerField(
        default=30,
        verbose_name=_("Termini di pagamento (giorni)"),
    )

    notes = models.TextField(blank=True, verbose_name=_("Note"))

    is_active = models.BooleanField(default=True, verbose_name=_("Attivo"))

    class Meta:
        abstract = True
        ordering = ["company_name"]

    def __str__(self) -> str:
        return f"{self.code} – {self.company_name}" if self.code else self.company_name


class Customer(Party):
    class CustomerType(models.TextChoices):
        RISTORANTE = "ristorante", _("Ristorante")
        SUPERMERCATO = "supermercato", _("Supermercato")
        BAR = "bar", _("Bar")
        HOTEL = "hotel", _("Hotel")
        MENSA = "mensa", _("Mensa")
        GASTRONOMIA = "gastronomia", _("Gastronomia")
        ALTRO = "altro", _("Altro")

    customer_type = models.CharField(
        max_length=20,
        choices=CustomerType.choices,
        default=CustomerType.RISTORANTE,
        verbose_name=_("Tipologia"),
    )

    email = models.EmailField(verbose_name=_("Email"))
    pec_email = models.EmailField(blank=True, verbose_name=_("PEC"))
    sdi_code = models.CharField(
        max_length=7,
        blank=True,
        verbose_name=_("Codice SDI"),
    )

    # --------- Delivery ---------
    delivery_zone = models.CharField(max_length=100, blank=True, verbose_name=_("Zona di consegna"))
    preferred_delivery_time = models.CharField(
        max_length=50,
        blank=True,
        verbose_name=_("Orario di consegna preferito"),
    )
    delivery_instructions = models.TextField(blank=True, verbose_name=_("Note di consegna"))

    credit_limit = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_("Fido"),
    )

    # Optional login for the customer portal
    portal_user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customer_profile",
        verbose_name=_("Utente portale"),
    )

    objects = CustomerManager()

    class Meta(Party.Meta):
        verbose_name = _("Cliente")
        verbose_name_plural = _("Clienti")

    @property
    def notification_emails(self) -> list[str]:
        return [self.email] if self.email else []


class Supplier(Party):
    email = models.EmailField(blank=True, verbose_name=_("Email"))

    objects = SupplierManager()

    class Meta(Party.Meta):
        verbose_name = _("Fornitore")
        verbose_name_plural = _("Fornitori")
