# catalog/models.py
from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from contacts.models import Customer, Supplier
from core.managers import ArchiveQuerySet
from core.models import BaseModel, TimeStampedModel, Unit

DEFAULT_VAT_RATE = Decimal("4.00")


class ProductQuerySet(ArchiveQuerySet):
    def available(self):
        return self.alive().filter(is_available=True)

    def in_season(self, month: int | None = None):
        """
        Products with no seasonal window, or whose window contains the month.
        Windows may wrap around the year end (e.g. November → February).
        """
        month = month or timezone.localdate().month
        no_window = Q(seasonal_from__isnull=True) | Q(seasonal_to__isnull=True)
        straight = (
            Q(seasonal_from__lte=models.F("seasonal_to"))
            & Q(seasonal_from__lte=month)
            & Q(seasonal_to__gte=month)
        )
        wrapped = (
            Q(seasonal_from__gt=models.F("seasonal_to"))
            & (Q(seasonal_from__lte=month) | Q(seasonal_to__gte=month))
        )
        return self.filter(no_window | straight | wrapped)

    def search(self, query: str):
        if not query:
            return self
        return self.filter(Q(name__icontains=query) | Q(sku__icontains=query) | Q(origin__icontains=query))


class Product(BaseModel):
    class Category(models.TextChoices):
        FRUTTA = "frutta", _("Frutta")
        VERDURA = "verdura", _("Verdura")
        ORTAGGI = "ortaggi", _("Ortaggi")
        ERBE_AROMATICHE = "erbe_aromatiche", _("Erbe aromatiche")
        FRUTTA_ESOTICA = "frutta_esotica", _("Frutta esotica")
        FRUTTA_SECCA = "frutta_secca", _("Frutta secca")
        SPEZIE = "spezie", _("Spezie")

    name = models.CharField(max_length=255, verbose_name=_("Nome"))

    sku = models.CharField(
        max_length=32,
        unique=True,
        null=True,
        blank=True,
        verbose_name=_("Codice articolo"),
    )

    category = models.CharField(
        max_length=32,
        choices=Category.choices,
        default=Category.FRUTTA,
        verbose_name=_("Categoria"),
        db_index=True,
    )

    unit = models.CharField(
        max_length=20,
        choices=Unit.choices,
        default=Unit.KG,
        verbose_name=_("Unità di misura"),
    )

    default_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        verbose_name=_("Prezzo di listino"),
    )
    cost_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_("Prezzo di costo"),
    )
    vat_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DEFAULT_VAT_RATE,
        verbose_name=_("Aliquota IVA %"),
    )

    is_available = models.BooleanField(default=True, verbose_name=_("Disponibile"))

    seasonal_from = models.PositiveSmallIntegerField(null=True, blank=True, verbose_name=_("Stagione da (mese)"))
    seasonal_to = models.PositiveSmallIntegerField(null=True, blank=True, verbose_name=_("Stagione a (mese)"))

    preferred_supplier = models.ForeignKey(
        Supplier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="preferred_products",
        verbose_name=_("Fornitore abituale"),
    )

    origin = models.CharField(max_length=100, blank=True, verbose_name=_("Provenienza"))
    description = models.TextField(blank=True, verbose_name=_("Descrizione"))

    objects = models.Manager.from_queryset(ProductQuerySet)()

    class Meta:
        verbose_name = _("Prodotto")
        verbose_name_plural = _("Prodotti")
        ordering = ["category", "name"]

    def __str__(self) -> str:
        return self.name

    def price_for(self, customer: Customer | None) -> Decimal:
        """
        Customer-specific price when one is set, list price otherwise.
        """
        if customer is not None:
            special = (
                self.customer_prices
                .filter(customer=customer)
                .values_list("price", flat=True)
                .first()
            )
            if special is not None:
                return special
        return self.default_price


class CustomerPrice(TimeStampedModel):
    """
    Negotiated price of a product for one customer.
    """

    customer = models.ForeignKey(
        Customer,
        on_delete=models.CASCADE,
        related_name="product_prices",
        verbose_name=_("Cliente"),
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="customer_prices",
        verbose_name=_("Prodotto"),
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        verbose_name=_("Prezzo"),
    )

    class Meta:
        verbose_name = _("Prezzo cliente")
        verbose_name_plural = _("Prezzi cliente")
        constraints = [
            models.UniqueConstraint(fields=["customer", "product"], name="unique_customer_product_price"),
        ]

    def __str__(self) -> str:
        return f"{self.customer} / {self.product}: {self.price}"
