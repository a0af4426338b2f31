# core/models/choices.py
from django.db import models
from django.utils.translation import gettext_lazy as _


class PaymentMethod(models.TextChoices):
    CONTANTI = "contanti", _("Contanti")
    BONIFICO = "bonifico", _("Bonifico")
    ASSEGNO = "assegno", _("Assegno")
    RIBA = "riba", _("RiBa")
    CARTA = "carta", _("Carta")


class Unit(models.TextChoices):
    KG = "kg", _("Kg")
    G = "g", _("Grammi")
    PEZZI = "pezzi", _("Pezzi")
    CASSETTA = "cassetta", _("Cassetta")
    MAZZO = "mazzo", _("Mazzo")
    GRAPPOLO = "grappolo", _("Grappolo")
    VASETTO = "vasetto", _("Vasetto")
    SACCHETTO = "sacchetto", _("Sacchetto")
