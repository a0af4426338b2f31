import uuid

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


def party_fields():
    return [
        ("code", models.CharField(editable=False, max_length=32, unique=True, verbose_name="Codice")),
        ("company_name", models.CharField(max_length=255, verbose_name="Ragione sociale")),
        ("vat_number", models.CharField(blank=True, max_length=20, verbose_name="Partita IVA")),
        ("fiscal_code", models.CharField(blank=True, max_length=20, verbose_name="Codice fiscale")),
        ("address", models.CharField(blank=True, max_length=255, verbose_name="Indirizzo")),
        ("city", models.CharField(blank=True, max_length=100, verbose_name="Città")),
        ("province", models.CharField(blank=True, max_length=2, verbose_name="Provincia")),
        ("postal_code", models.CharField(blank=True, max_length=5, verbose_name="CAP")),
        ("phone", models.CharField(blank=True, max_length=50, verbose_name="Telefono")),
        (
            "payment_method",
            models.CharField(
                choices=PAYMENT_METHODS, default="bonifico", max_length=20, verbose_name="Metodo di pagamento"
            ),
        ),
        (
            "payment_terms_days",
            models.PositiveIntegerField(default=30, verbose_name="Termini di pagamento (giorni)"),
        ),
        ("notes", models.TextField(blank=True, verbose_name="Note")),
        ("is_active", models.BooleanField(default=True, verbose_name="Attivo")),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                *base_fields("contacts_customer"),
                *party_fields(),
                (
                    "customer_type",
                    models.CharField(
                        choices=[
                            ("ristorante", "Ristorante"),
                            ("supermercato", "Supermercato"),
                            ("bar", "Bar"),
                            ("hotel", "Hotel"),
                            ("mensa", "Mensa"),
                            ("gastronomia", "Gastronomia"),
                            ("altro", "Altro"),
                        ],
                        default="ristorante",
                        max_length=20,
                        verbose_name="Tipologia",
                    ),
                ),
                ("email", models.EmailField(max_length=254, verbose_name="Email")),
                ("pec_email", models.EmailField(blank=True, max_length=254, verbose_name="PEC")),
                ("sdi_code", models.CharField(blank=True, max_length=7, verbose_name="Codice SDI")),
                ("delivery_zone", models.CharField(blank=True, max_length=100, verbose_name="Zona di consegna")),
                (
                    "preferred_delivery_time",
                    models.CharField(blank=True, max_length=50, verbose_name="Orario di consegna preferito"),
                ),
                ("delivery_instructions", models.TextField(blank=True, verbose_name="Note di consegna")),
                (
                    "credit_limit",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name="Fido"),
                ),
                (
                    "portal_user",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="customer_profile",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Utente portale",
                    ),
                ),
            ],
            options={
                "verbose_name": "Cliente",
                "verbose_name_plural": "Clienti",
                "ordering": ["company_name"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Supplier",
            fields=[
                *base_fields("contacts_supplier"),
                *party_fields(),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="Email")),
            ],
            options={
                "verbose_name": "Fornitore",
                "verbose_name_plural": "Fornitori",
                "ordering": ["company_name"],
                "abstract": False,
            },
        ),
    ]
