import uuid

import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contacts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "created_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now, editable=False, verbose_name="Data creazione"
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Ultimo aggiornamento")),
                ("is_archived", models.BooleanField(default=False, verbose_name="Archiviato")),
                ("archived_at", models.DateTimeField(blank=True, null=True, verbose_name="Data archiviazione")),
                (
                    "public_id",
                    models.UUIDField(
                        db_index=True,
                        default=uuid.uuid4,
                        editable=False,
                        unique=True,
                        verbose_name="Identificativo pubblico (UUID)",
                    ),
                ),
                ("name", models.CharField(max_length=255, verbose_name="Nome")),
                (
                    "sku",
                    models.CharField(blank=True, max_length=32, null=True, unique=True, verbose_name="Codice articolo"),
                ),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("frutta", "Frutta"),
                            ("verdura", "Verdura"),
                            ("ortaggi", "Ortaggi"),
                            ("erbe_aromatiche", "Erbe aromatiche"),
                            ("frutta_esotica", "Frutta esotica"),
                            ("frutta_secca", "Frutta secca"),
                            ("spezie", "Spezie"),
                        ],
                        db_index=True,
                        default="frutta",
                        max_length=32,
                        verbose_name="Categoria",
                    ),
                ),
                (
                    "unit",
                    models.CharField(
                        choices=[
                            ("kg", "Kg"),
                            ("g", "Grammi"),
                            ("pezzi", "Pezzi"),
                            ("cassetta", "Cassetta"),
                            ("mazzo", "Mazzo"),
                            ("grappolo", "Grappolo"),
                            ("vasetto", "Vasetto"),
                            ("sacchetto", "Sacchetto"),
                        ],
                        default="kg",
                        max_length=20,
                        verbose_name="Unità di misura",
                    ),
                ),
                ("default_price", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="Prezzo di listino")),
                (
                    "cost_price",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=10, null=True, verbose_name="Prezzo di costo"
                    ),
                ),
                (
                    "vat_rate",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("4.00"), max_digits=5, verbose_name="Aliquota IVA %"
                    ),
                ),
                ("is_available", models.BooleanField(default=True, verbose_name="Disponibile")),
                (
                    "seasonal_from",
                    models.PositiveSmallIntegerField(blank=True, null=True, verbose_name="Stagione da (mese)"),
                ),
                (
                    "seasonal_to",
                    models.PositiveSmallIntegerField(blank=True, null=True, verbose_name="Stagione a (mese)"),
                ),
                ("origin", models.CharField(blank=True, max_length=100, verbose_name="Provenienza")),
                ("description", models.TextField(blank=True, verbose_name="Descrizione")),
                (
                    "archived_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="catalog_product_archived",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Archiviato da",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="catalog_product_created",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Creato da",
                    ),
                ),
            ],
            options={
                "verbose_name": "Prodotto",
                "verbose_name_plural": "Prodotti",
                "ordering": ["category", "name"],
            },
        ),
        migrations.CreateModel(
            name="CustomerPrice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "created_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now, editable=False, verbose_name="Data creazione"
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Ultimo aggiornamento")),
                ("price", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="Prezzo")),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="product_prices",
                        to="contacts.customer",
                        verbose_name="Cliente",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="customer_prices",
                        to="catalog.product",
                        verbose_name="Prodotto",
                    ),
                ),
            ],
            options={
                "verbose_name": "Prezzo cliente",
                "verbose_name_plural": "Prezzi cliente",
                "constraints": [
                    models.UniqueConstraint(fields=("customer", "product"), name="unique_customer_product_price"),
                ],
            },
        ),
    ]
