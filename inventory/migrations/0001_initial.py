import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now, editable=False, verbose_name="Data creazione"),
                ),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Ultimo aggiornamento")),
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
                (
                    "movement_type",
                    models.CharField(
                        choices=[
                            ("carico", "Carico"),
                            ("scarico", "Scarico"),
                            ("rettifica_pos", "Rettifica positiva"),
                            ("rettifica_neg", "Rettifica negativa"),
                            ("scarto", "Scarto"),
                        ],
                        db_index=True,
                        max_length=20,
                        verbose_name="Tipo movimento",
                    ),
                ),
                ("quantity", models.DecimalField(decimal_places=3, max_digits=10, verbose_name="Quantità")),
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
                        verbose_name="Unità",
                    ),
                ),
                ("reason", models.CharField(blank=True, max_length=255, verbose_name="Causale")),
                (
                    "reference_type",
                    models.CharField(
                        choices=[
                            ("manual", "Manuale"),
                            ("delivery_note", "DDT"),
                            ("purchase_order", "Ordine d'acquisto"),
                            ("order", "Ordine cliente"),
                        ],
                        default="manual",
                        max_length=20,
                        verbose_name="Origine",
                    ),
                ),
                ("reference_number", models.CharField(blank=True, max_length=32, verbose_name="Documento")),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="inventory_stockmovement_created",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Creato da",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_movements",
                        to="catalog.product",
                        verbose_name="Prodotto",
                    ),
                ),
            ],
            options={
                "verbose_name": "Movimento di magazzino",
                "verbose_name_plural": "Movimenti di magazzino",
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["product", "created_at"], name="stockmovement_product_idx"),
                    models.Index(fields=["reference_type", "reference_number"], name="stockmovement_reference_idx"),
                ],
            },
        ),
    ]
