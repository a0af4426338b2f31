# core/models/notifications.py

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .base import BaseModel


class NotificationQuerySet(models.QuerySet):
    def visible(self):
        """Return non-archived notifications."""
        return self.filter(is_archived=False)

    def for_user(self, user):
        """Return visible notifications for a specific user."""
        return self.visible().filter(recipient=user)

    def unread(self):
        """Return unread + visible notifications."""
        return self.visible().filter(is_read=False)


class NotificationManager(models.Manager.from_queryset(NotificationQuerySet)):
    pass


class Notification(BaseModel):
    """
    In-app notification for staff users.

    - recipient: user who receives the notification
    - verb: short description of the event
    - level: info / success / warning / error
    - url: API path of the related record
    - target: generic relation to a domain object (order, invoice, ...)
    """

    class Levels(models.TextChoices):
        INFO = "info", _("Info")
        SUCCESS = "success", _("Successo")
        WARNING = "warning", _("Avviso")
        ERROR = "error", _("Errore")

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name=_("Destinatario"),
    )

    verb = models.CharField(
        max_length=255,
        verbose_name=_("Evento"),
    )

    level = models.CharField(
        max_length=20,
        choices=Levels.choices,
        default=Levels.INFO,
        verbose_name=_("Livello"),
    )

    url = models.CharField(
        max_length=500,
        blank=True,
        verbose_name=_("URL"),
    )

    target_content_type = models.ForeignKey(
        ContentType,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="notification_targets",
        verbose_name=_("Tipo oggetto"),
    )
    target_object_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        verbose_name=_("ID oggetto"),
    )
    target = GenericForeignKey("target_content_type", "target_object_id")

    is_read = models.BooleanField(
        default=False,
        verbose_name=_("Letta"),
    )
    read_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Letta il"),
    )

    objects = NotificationManager()

    class Meta:
        verbose_name = _("Notifica")
        verbose_name_plural = _("Notifiche")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.recipient} – {self.verb[:50]}"

    def mark_as_read(self) -> None:
        """
        Mark this notification as read (idempotent).
        """
        if self.is_read:
            return

        self.is_read = True
        self.read_at = timezone.now()
        self.save(update_fields=["is_read", "read_at", "updated_at"])
