import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


PAYMENT_METHODS = [
    ("contanti", "Contanti"),
    ("bonifico", "Bonifico"),
    ("assegno", "Assegno"),
    ("riba", "RiBa"),
    ("carta", "Carta"),
]

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
        ("purchasing", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BillingSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("company_name", models.CharField(blank=True, max_length=255, verbose_name="Ragione sociale")),
                ("vat_number", models.CharField(blank=True, max_length=20, verbose_name="Partita IVA")),
                (
                    "default_vat_rate",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("4.00"),
                        max_digits=5,
                        verbose_name="Aliquota IVA predefinita %",
                    ),
                ),
                (
                    "default_payment_terms_days",
                    models.PositiveIntegerField(default=30, verbose_name="Termini di pagamento predefiniti (giorni)"),
                ),
                (
                    "auto_invoice_on_delivery",
                    models.BooleanField(
                        default=True,
                        help_text="Emette la fattura quando il DDT viene segnato come consegnato.",
                        verbose_name="Fattura automatica alla consegna",
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Impostazioni fatturazione",
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                *base_fields("billing_invoice"),
                ("number", models.CharField(editable=False, max_length=32, unique=True, verbose_name="Numero")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("issued", "Emessa"),
                            ("sent", "Inviata"),
                            ("partially_paid", "Pagata in parte"),
                            ("paid", "Pagata"),
                        ],
                        db_index=True,
                        default="issued",
                        max_length=20,
                        verbose_name="Stato",
                    ),
                ),
                (
                    "issue_date",
                    models.DateField(
                        db_index=True, default=django.utils.timezone.localdate, verbose_name="Data emissione"
                    ),
                ),
                ("due_date", models.DateField(db_index=True, verbose_name="Scadenza")),
                (
                    "payment_method",
                    models.CharField(
                        choices=PAYMENT_METHODS, default="bonifico", max_length=20, verbose_name="Metodo di pagamento"
                    ),
                ),
                ("sent_at", models.DateTimeField(blank=True, null=True, verbose_name="Inviata il")),
                ("notes", models.TextField(blank=True, verbose_name="Note")),
                *amount_fields(),
                (
                    "paid_amount",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, verbose_name="Incassato"),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                        to="contacts.customer",
                        verbose_name="Cliente",
                    ),
                ),
            ],
            options={
                "verbose_name": "Fattura",
                "verbose_name_plural": "Fatture",
                "ordering": ("-issue_date", "-id"),
            },
        ),
        migrations.CreateModel(
            name="InvoiceLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("delivery_note_number", models.CharField(blank=True, max_length=32, verbose_name="DDT")),
                *line_fields("invoice_lines"),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="billing.invoice",
                        verbose_name="Fattura",
                    ),
                ),
            ],
            options={
                "verbose_name": "Riga fattura",
                "verbose_name_plural": "Righe fattura",
                "ordering": ("id",),
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                *base_fields("billing_payment"),
                (
                    "direction",
                    models.CharField(
                        choices=[("incoming", "Incasso"), ("outgoing", "Pagamento")],
                        db_index=True,
                        default="incoming",
                        max_length=10,
                        verbose_name="Tipo",
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12, verbose_name="Importo")),
                (
                    "payment_date",
                    models.DateField(db_index=True, default=django.utils.timezone.localdate, verbose_name="Data"),
                ),
                (
                    "method",
                    models.CharField(choices=PAYMENT_METHODS, default="bonifico", max_length=20, verbose_name="Metodo"),
                ),
                ("reference", models.CharField(blank=True, max_length=100, verbose_name="Riferimento")),
                ("notes", models.TextField(blank=True, verbose_name="Note")),
                (
                    "overpayment_allowed",
                    models.BooleanField(
                        default=False,
                        help_text="Il pagamento può superare il saldo della fattura.",
                        verbose_name="Eccedenza autorizzata",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
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
                        related_name="payments",
                        to="billing.invoice",
                        verbose_name="Fattura",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="contacts.supplier",
                        verbose_name="Fornitore",
                    ),
                ),
                (
                    "supplier_invoice",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="purchasing.supplierinvoice",
                        verbose_name="Fattura fornitore",
                    ),
                ),
            ],
            options={
                "verbose_name": "Pagamento",
                "verbose_name_plural": "Pagamenti",
                "ordering": ("-payment_date", "-id"),
            },
        ),
    ]
