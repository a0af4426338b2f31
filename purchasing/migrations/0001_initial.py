import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


UNITS = [
    ("kg", "Kg"),
    ("g", "Grammi"),
    ("pezzi", "Pezzi"),
    ("cassetta", "Cassetta"),
    ("mazzo", "Mazzo"),
    ("grappolo", "Grappolo"),
    ("vasetto", "Vasetto"),
    ("sacchetto", "Sacchetto"),
]


def base_fields(label):
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        (
            "created_at",
            models.DateTimeField(default=django.utils.timezone.now, editable=False, verbose_name="Data creazione"),
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
        (
            "archived_by",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name=f"{label}_archived",
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
                related_name=f"{label}_created",
                to=settings.AUTH_USER_MODEL,
                verbose_name="Creato da",
            ),
        ),
    ]


def amount_fields():
    return [
        ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, verbose_name="Imponibile")),
        ("vat_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, verbose_name="IVA")),
        ("total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, verbose_name="Totale")),
    ]


def line_fields(product_related_name):
    return [
        (
            "product",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name=product_related_name,
                to="catalog.product",
                verbose_name="Prodotto",
            ),
        ),
        ("product_name", models.CharField(max_length=255, verbose_name="Descrizione")),
        ("quantity", models.DecimalField(decimal_places=3, max_digits=10, verbose_name="Quantità")),
        ("unit", models.CharField(choices=UNITS, default="kg", max_length=20, verbose_name="Unità")),
        ("unit_price", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="Prezzo unitario")),
        ("vat_rate", models.DecimalField(decimal_places=2, default=Decimal("4.00"), max_digits=5, verbose_name="IVA %")),
        (
            "line_total",
            models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, verbose_name="Totale riga"),
        ),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contacts", "0001_initial"),
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PurchaseOrder",
            fields=[
                *base_fields("purchasing_purchaseorder"),
                ("number", models.CharField(editable=False, max_length=32, unique=True, verbose_name="Numero")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Bozza"),
                            ("sent", "Inviato"),
                            ("received", "Ricevuto"),
                            ("cancelled", "Annullato"),
                        ],
                        db_index=True,
                        default="draft",
                        max_length=20,
                        verbose_name="Stato",
                    ),
                ),
                ("order_date", models.DateField(default=django.utils.timezone.localdate, verbose_name="Data ordine")),
                ("expected_date", models.DateField(blank=True, null=True, verbose_name="Consegna prevista")),
                ("received_at", models.DateTimeField(blank=True, null=True, verbose_name="Ricevuto il")),
                ("notes", models.TextField(blank=True, verbose_name="Note")),
                *amount_fields(),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchase_orders",
                        to="contacts.supplier",
                        verbose_name="Fornitore",
                    ),
                ),
            ],
            options={
                "verbose_name": "Ordine d'acquisto",
                "verbose_name_plural": "Ordini d'acquisto",
                "ordering": ("-order_date", "-id"),
            },
        ),
        migrations.CreateModel(
            name="PurchaseOrderLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *line_fields("purchase_lines"),
                (
                    "purchase_order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="purchasing.purchaseorder",
                        verbose_name="Ordine d'acquisto",
                    ),
                ),
            ],
            options={
                "verbose_name": "Riga ordine d'acquisto",
                "verbose_name_plural": "Righe ordine d'acquisto",
                "ordering": ("id",),
            },
        ),
        migrations.CreateModel(
            name="SupplierInvoice",
            fields=[
                *base_fields("purchasing_supplierinvoice"),
                ("number", models.CharField(editable=False, max_length=32, unique=True, verbose_name="Numero interno")),
                ("supplier_reference", models.CharField(blank=True, max_length=64, verbose_name="Numero fornitore")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("unpaid", "Da pagare"),
                            ("partially_paid", "Pagata in parte"),
                            ("paid", "Pagata"),
                        ],
                        db_index=True,
                        default="unpaid",
                        max_length=20,
                        verbose_name="Stato",
                    ),
                ),
                ("issue_date", models.DateField(default=django.utils.timezone.localdate, verbose_name="Data fattura")),
                ("due_date", models.DateField(verbose_name="Scadenza")),
                *amount_fields(),
                (
                    "paid_amount",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, verbose_name="Pagato"),
                ),
                ("notes", models.TextField(blank=True, verbose_name="Note")),
                (
                    "purchase_order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="supplier_invoices",
                        to="purchasing.purchaseorder",
                        verbose_name="Ordine d'acquisto",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="supplier_invoices",
                        to="contacts.supplier",
                        verbose_name="Fornitore",
                    ),
                ),
            ],
            options={
                "verbose_name": "Fattura fornitore",
                "verbose_name_plural": "Fatture fornitori",
                "ordering": ("-issue_date", "-id"),
            },
        ),
    ]
