import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("contacts", "0001_initial"),
        ("catalog", "0001_initial"),
        ("purchasing", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ShoppingList",
            fields=[
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
                ("delivery_date", models.DateField(unique=True, verbose_name="Data consegna")),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Bozza"), ("finalized", "Definitiva"), ("ordered", "Ordinata")],
                        db_index=True,
                        default="draft",
                        max_length=20,
                        verbose_name="Stato",
                    ),
                ),
                ("order_count", models.PositiveIntegerField(default=0, verbose_name="Ordini considerati")),
                ("notes", models.TextField(blank=True, verbose_name="Note")),
                (
                    "archived_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="purchasing_shoppinglist_archived",
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
                        related_name="purchasing_shoppinglist_created",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Creato da",
                    ),
                ),
            ],
            options={
                "verbose_name": "Lista della spesa",
                "verbose_name_plural": "Liste della spesa",
                "ordering": ("-delivery_date",),
            },
        ),
        migrations.CreateModel(
            name="ShoppingListItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, unique=True)),
                ("product_name", models.CharField(max_length=255, verbose_name="Descrizione")),
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
                (
                    "supplier_price",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=10, null=True, verbose_name="Prezzo fornitore"
                    ),
                ),
                ("notes", models.TextField(blank=True, verbose_name="Note")),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="shopping_list_items",
                        to="contacts.customer",
                        verbose_name="Cliente",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="shopping_list_items",
                        to="catalog.product",
                        verbose_name="Prodotto",
                    ),
                ),
                (
                    "purchase_order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="shopping_list_items",
                        to="purchasing.purchaseorder",
                        verbose_name="Ordine d'acquisto",
                    ),
                ),
                (
                    "shopping_list",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="purchasing.shoppinglist",
                        verbose_name="Lista della spesa",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="shopping_list_items",
                        to="contacts.supplier",
                        verbose_name="Fornitore",
                    ),
                ),
            ],
            options={
                "verbose_name": "Articolo lista della spesa",
                "verbose_name_plural": "Articoli lista della spesa",
                "ordering": ("product_name", "id"),
            },
        ),
    ]
