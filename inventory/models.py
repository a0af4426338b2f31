# inventory/models.py
from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _

from catalog.models import Product
from core.models import TimeStampedModel, Unit, UserStampedModel
from .managers import INCOMING_TYPES, StockMovementManager


class StockMovement(TimeStampedModel, UserStampedModel):
    """
    One quantity entering or leaving the warehouse.

    Stock on hand is the sum of incoming movements (carico, rettifica
    positiva) minus the outgoing ones (scarico, rettifica negativa, scarto).
    Movements are never edited: a mistake is corrected with a rettifica.
    """

    class MovementType(models.TextChoices):
        CARICO = "carico", _("Carico")
        SCARICO = "scarico", _("Scarico")
        RETTIFICA_POS = "rettifica_pos", _("Rettifica positiva")
        RETTIFICA_NEG = "rettifica_neg", _("Rettifica negativa")
        SCARTO = "scarto", _("Scarto")

    class Reference(models.TextChoices):
        MANUAL = "manual", _("Manuale")
        DELIVERY_NOTE = "delivery_note", _("DDT")
        PURCHASE_ORDER = "purchase_order", _("Ordine d'acquisto")
        ORDER = "order", _("Ordine cliente")

    public_id = models.UUIDField(
        default=uuid.uuid4,
        unique=True,
        editable=False,
        db_index=True,
        verbose_name=_("Identificativo pubblico (UUID)"),
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="stock_movements",
        verbose_name=_("Prodotto"),
    )
    movement_type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        verbose_name=_("Tipo movimento"),
        db_index=True,
    )
    quantity = models.DecimalField(max_digits=10, decimal_places=3, verbose_name=_("Quantità"))
    unit = models.CharField(max_length=20, choices=Unit.choices, default=Unit.KG, verbose_name=_("Unità"))
    reason = models.CharField(max_length=255, blank=True, verbose_name=_("Causale"))
    reference_type = models.CharField(
        max_length=20,
        choices=Reference.choices,
        default=Reference.MANUAL,
        verbose_name=_("Origine"),
    )
    reference_number = models.CharField(max_length=32, blank=True, verbose_name=_("Documento"))

    objects = StockMovementManager()

    class Meta:
        ordering = ("-created_at", "-id")
        verbose_name = _("Movimento di magazzino")
        verbose_name_plural = _("Movimenti di magazzino")
        indexes = [
            models.Index(fields=["product", "created_at"], name="stockmovement_product_idx"),
            models.Index(fields=["reference_type", "reference_number"], name="stockmovement_reference_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.get_movement_type_display()} {self.quantity} {self.unit} {self.product}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError("Stock movements cannot be changed; record a rettifica instead.")
        super().save(*args, **kwargs)

    @property
    def is_incoming(self) -> bool:
        return self.movement_type in INCOMING_TYPES

    @property
    def signed_quantity(self) -> Decimal:
        return self.quantity if self.is_incoming else -self.quantity
