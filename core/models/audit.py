# core/models/audit.py
from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class AuditLogQuerySet(models.QuerySet):
    def for_entity(self, entity_type: str, entity_id=None):
        qs = self.filter(entity_type=entity_type)
        if entity_id is not None:
            qs = qs.filter(entity_id=str(entity_id))
        return qs

    def chronological(self):
        return self.order_by("created_at", "id")


class AuditLog(models.Model):
    """
    Append-only activity log entry.

    - actor: who did it (user), empty for system actions
    - entity_type / entity_id: what it happened to, e.g. ("sales.order", "42")
    - action: short slug, e.g. "create", "confirm", "record_payment"
    - message: human-readable description
    - metadata: JSON payload for structured data

    Rows are written once. Updating or deleting an entry raises.
    """

    class Action(models.TextChoices):
        CREATE = "create", _("Creazione")
        UPDATE = "update", _("Modifica")
        ARCHIVE = "archive", _("Archiviazione")
        IMPORT = "import", _("Importazione")
        NOTIFICATION = "notification", _("Notifica")

    created_at = models.DateTimeField(
        default=timezone.now,
        editable=False,
        db_index=True,
        verbose_name=_("Data"),
    )

    action = models.CharField(
        max_length=64,
        verbose_name=_("Azione"),
        db_index=True,
    )

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_logs",
        verbose_name=_("Utente"),
    )

    entity_type = models.CharField(
        max_length=100,
        verbose_name=_("Tipo entità"),
    )
    entity_id = models.CharField(
        max_length=64,
        verbose_name=_("ID entità"),
    )

    message = models.TextField(
        blank=True,
        verbose_name=_("Descrizione"),
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        verbose_name=_("Dati aggiuntivi"),
    )

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        verbose_name = _("Registro attività")
        verbose_name_plural = _("Registro attività")
        ordering = ("created_at", "id")
        indexes = [
            models.Index(fields=["actor", "created_at"], name="auditlog_actor_idx"),
            models.Index(fields=["entity_type", "entity_id", "created_at"], name="auditlog_entity_idx"),
            models.Index(fields=["action", "created_at"], name="auditlog_action_idx"),
        ]

    def __str__(self) -> str:
        base = f"[{self.action}] {self.entity_type}#{self.entity_id}"
        if self.message:
            return f"{base} {self.message[:80]}"
        return base

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError("Activity log entries are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("Activity log entries are append-only.")
