import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contenttypes", "0002_remove_content_type_name"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="NumberSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=100)),
                ("period", models.CharField(blank=True, max_length=16)),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("key", "period"), name="unique_sequence_key_period"),
                ],
            },
        ),
        migrations.CreateModel(
            name="NumberingScheme",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "document_type",
                    models.CharField(
                        choices=[
                            ("order", "Ordine"),
                            ("delivery_note", "DDT"),
                            ("invoice", "Fattura"),
                            ("purchase_order", "Ordine fornitore"),
                            ("supplier_invoice", "Fattura fornitore"),
                            ("customer", "Cliente"),
                            ("supplier", "Fornitore"),
                        ],
                        max_length=32,
                        unique=True,
                        verbose_name="Tipo documento",
                    ),
                ),
                ("prefix", models.CharField(blank=True, max_length=16, verbose_name="Prefisso")),
                (
                    "pattern",
                    models.CharField(
                        default="{prefix}-{year}-{seq:04d}",
                        help_text="Esempio: {prefix}-{year}-{seq:04d} oppure {prefix}/{year}{month:02d}/{seq:03d}",
                        max_length=100,
                        verbose_name="Schema numerazione",
                    ),
                ),
                (
                    "reset",
                    models.CharField(
                        choices=[("never", "Mai"), ("year", "Ogni anno"), ("month", "Ogni mese")],
                        default="year",
                        max_length=10,
                        verbose_name="Azzeramento",
                    ),
                ),
                ("start", models.PositiveIntegerField(default=1, verbose_name="Valore iniziale")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Ultima modifica")),
            ],
            options={
                "verbose_name": "Schema di numerazione",
                "verbose_name_plural": "Schemi di numerazione",
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "created_at",
                    models.DateTimeField(
                        db_index=True, default=django.utils.timezone.now, editable=False, verbose_name="Data"
                    ),
                ),
                ("action", models.CharField(db_index=True, max_length=64, verbose_name="Azione")),
                ("entity_type", models.CharField(max_length=100, verbose_name="Tipo entità")),
                ("entity_id", models.CharField(max_length=64, verbose_name="ID entità")),
                ("message", models.TextField(blank=True, verbose_name="Descrizione")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="Dati aggiuntivi")),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="audit_logs",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Utente",
                    ),
                ),
            ],
            options={
                "verbose_name": "Registro attività",
                "verbose_name_plural": "Registro attività",
                "ordering": ("created_at", "id"),
                "indexes": [
                    models.Index(fields=["actor", "created_at"], name="auditlog_actor_idx"),
                    models.Index(fields=["entity_type", "entity_id", "created_at"], name="auditlog_entity_idx"),
                    models.Index(fields=["action", "created_at"], name="auditlog_action_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Notification",
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
                ("verb", models.CharField(max_length=255, verbose_name="Evento")),
                (
                    "level",
                    models.CharField(
                        choices=[
                            ("info", "Info"),
                            ("success", "Successo"),
                            ("warning", "Avviso"),
                            ("error", "Errore"),
                        ],
                        default="info",
                        max_length=20,
                        verbose_name="Livello",
                    ),
                ),
                ("url", models.CharField(blank=True, max_length=500, verbose_name="URL")),
                ("target_object_id", models.CharField(blank=True, max_length=64, null=True, verbose_name="ID oggetto")),
                ("is_read", models.BooleanField(default=False, verbose_name="Letta")),
                ("read_at", models.DateTimeField(blank=True, null=True, verbose_name="Letta il")),
                (
                    "archived_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="core_notification_archived",
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
                        related_name="core_notification_created",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Creato da",
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Destinatario",
                    ),
                ),
                (
                    "target_content_type",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="notification_targets",
                        to="contenttypes.contenttype",
                        verbose_name="Tipo oggetto",
                    ),
                ),
            ],
            options={
                "verbose_name": "Notifica",
                "verbose_name_plural": "Notifiche",
                "ordering": ["-created_at"],
            },
        ),
    ]
