import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.managers import ArchiveManager


class TimeStampedModel(models.Model):
    """
    Adds created_at / updated_at fields.
    Use this for almost all models.
    """
    created_at = models.DateTimeField(
        default=timezone.now,
        editable=False,
        verbose_name=_("Data creazione"),
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_("Ultimo aggiornamento"),
    )

    class Meta:
        abstract = True


class UserStampedModel(models.Model):
    """
    Adds created_by, filled in by services from the acting principal.
    """
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="%(app_label)s_%(class)s_created",
        verbose_name=_("Creato da"),
    )

    class Meta:
        abstract = True


class ArchivableModel(models.Model):
    """
    Soft archive support. Business records are never deleted:
    - is_archived: hides the record from day-to-day lists
    - archived_at / archived_by: track who archived it and when
    """
    is_archived = models.BooleanField(
        default=False,
        verbose_name=_("Archiviato"),
    )
    archived_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Data archiviazione"),
    )
    archived_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="%(app_label)s_%(class)s_archived",
        verbose_name=_("Archiviato da"),
    )

    objects = ArchiveManager()

    class Meta:
        abstract = True

    def archive(self, user=None, save=True):
        """
        Mark the object as archived without removing it from the DB.
        Call this from services instead of obj.delete().
        """
        if not self.is_archived:
            self.is_archived = True
            self.archived_at = timezone.now()
            if user is not None and getattr(user, "is_authenticated", False):
                self.archived_by = user

            if save:
                self.save(update_fields=["is_archived", "archived_at", "archived_by"])


class BaseModel(TimeStampedModel, UserStampedModel, ArchivableModel):
    """
    Base model for FruttaGest records:

    - public_id (UUID) for APIs and the customer portal
    - created_at / updated_at
    - created_by
    - soft archive (is_archived, archived_at, archived_by)

    The integer `id` stays the primary key.
    """
    public_id = models.UUIDField(
        default=uuid.uuid4,
        unique=True,
        editable=False,
        db_index=True,
        verbose_name=_("Identificativo pubblico (UUID)"),
    )

    class Meta:
        abstract = True
