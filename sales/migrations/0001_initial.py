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
        ("billing", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                *base_fields("sales_order"),
                ("number", models.CharField(editable=False, max_length=32, unique=True, verbose_name="Numero")),
                (
                    "channel",
                    models.CharField(
                        choices=[
                            ("whatsapp", "WhatsApp"),
                            ("email", "Email"),
                            ("audio", "Messaggio vocale"),
                            ("manual", "Inserimento manuale"),
                            ("web", "Portale clienti"),
                        ],
                        default="manual",
                        max_length=20,
                        verbose_name="Canale",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Ricevuto"),
                            ("confirmed", "Confermato"),
                            ("partially_delivered", "Consegnato in parte"),
                            ("delivered", "Consegnato"),
                            ("invoiced", "Fatturato"),
                            ("paid", "Pagato"),
                            ("cancelled", "Annullato"),
                        ],
                        db_index=True,
                        default="draft",
                        max_length=24,
                        verbose_name="Stato",
                    ),
                ),
                (
                    "order_date",
                    models.DateField(db_index=True, default=django.utils.timezone.localdate, verbose_name="Data ordine"),
                ),
                ("requested_delivery_date", models.DateField(blank=True, null=True, verbose_name="Consegna richiesta")),
                ("notes", models.TextField(blank=True, verbose_name="Note")),
                ("internal_notes", models.TextField(blank=True, verbose_name="Note interne")),
                *amount_fields(),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="contacts.customer",
                        verbose_name="Cliente",
                    ),
                ),
            ],
            options={
                "verbose_name": "Ordine",
                "verbose_name_plural": "Ordini",
                "ordering": ("-order_date", "-id"),
            },
        ),
        migrations.CreateModel(
            name="OrderLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *line_fields("order_lines"),
                ("notes", models.CharField(blank=True, max_length=255, verbose_name="Note")),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="sales.order",
                        verbose_name="Ordine",
                    ),
                ),
            ],
            options={
                "verbose_name": "Riga ordine",
                "verbose_name_plural": "Righe ordine",
                "ordering": ("id",),
            },
        ),
        migrations.CreateModel(
            name="DeliveryNote",
            fields=[
                *base_fields("sales_deliverynote"),
                ("number", models.CharField(editable=False, max_length=32, unique=True, verbose_name="Numero")),
                (
                    "status",
                    models.CharField(
                        choices=[("issued", "Emesso"), ("delivered", "Consegnato")],
                        db_index=True,
                        default="issued",
                        max_length=20,
                        verbose_name="Stato",
                    ),
                ),
                (
                    "issue_date",
                    models.DateField(default=django.utils.timezone.localdate, verbose_name="Data emissione"),
                ),
                ("delivery_date", models.DateField(blank=True, null=True, verbose_name="Data consegna")),
                (
                    "transport_reason",
                    models.CharField(default="Vendita", max_length=100, verbose_name="Causale trasporto"),
                ),
                (
                    "transported_by",
                    models.CharField(default="Mittente", max_length=100, verbose_name="Trasporto a cura del"),
                ),
                ("goods_appearance", models.CharField(blank=True, max_length=100, verbose_name="Aspetto dei beni")),
                (
                    "number_of_packages",
                    models.PositiveIntegerField(blank=True, null=True, verbose_name="Numero colli"),
                ),
                (
                    "weight",
                    models.DecimalField(blank=True, decimal_places=3, max_digits=10, null=True, verbose_name="Peso (kg)"),
                ),
                ("notes", models.TextField(blank=True, verbose_name="Note")),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="delivery_notes",
                        to="contacts.customer",
                        verbose_name="Cliente",
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="delivery_notes",
                        to="billing.invoice",
                        verbose_name="Fattura",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="delivery_notes",
                        to="sales.order",
                        verbose_name="Ordine",
                    ),
                ),
            ],
            options={
                "verbose_name": "Documento di trasporto",
                "verbose_name_plural": "Documenti di trasporto",
                "ordering": ("-issue_date", "-id"),
            },
        ),
        migrations.CreateModel(
            name="DeliveryNoteLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *line_fields("delivery_lines"),
                (
                    "delivery_note",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="sales.deliverynote",
                        verbose_name="DDT",
                    ),
                ),
                (
                    "order_line",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="delivery_lines",
                        to="sales.orderline",
                        verbose_name="Riga ordine",
                    ),
                ),
            ],
            options={
                "verbose_name": "Riga DDT",
                "verbose_name_plural": "Righe DDT",
                "ordering": ("id",),
            },
        ),
    ]
