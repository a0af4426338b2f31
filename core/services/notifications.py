# core/services/notifications.py

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.contenttypes.models import ContentType
from django.core.mail import send_mail

from core.models import Notification

logger = logging.getLogger(__name__)


def create_notification(
    recipient,
    verb: str,
    target: Optional[Any] = None,
    *,
    level: str = Notification.Levels.INFO,
    url: str | None = None,
) -> Notification:
    """
    Create a simple in-app notification.

    Parameters
    ----------
    recipient:
        User instance who will receive the notification.

    verb:
        Short description of what happened.

    target:
        Optional model instance (order, invoice, payment...) that this
        notification refers to. Stored via GenericForeignKey.

    level:
        Notification.Levels.*.

    url:
        Optional API path of the target.
    """
    target_ct = None
    target_id = None

    if target is not None:
        target_ct = ContentType.objects.get_for_model(target, for_concrete_model=True)
        target_id = str(getattr(target, "pk", getattr(target, "id", None)))

    return Notification.objects.create(
        recipient=recipient,
        verb=verb,
        level=level,
        url=url or "",
        target_content_type=target_ct,
        target_object_id=target_id,
    )


def notify_staff(verb: str, target: Optional[Any] = None, **kwargs) -> int:
    """Create the same notification for every active staff user."""
    User = get_user_model()
    count = 0
    for user in User.objects.filter(is_staff=True, is_active=True):
        create_notification(user, verb, target, **kwargs)
        count += 1
    return count


def send_email(subject: str, body: str, recipients: Iterable[str]) -> bool:
    """
    Hand a plain-text email to the configured backend.

    Returns False when there is nobody to write to. Delivery errors
    propagate; event handlers run through the dispatcher, which logs them.
    """
    to = [address for address in recipients if address]
    if not to:
        logger.debug("Skipping email %r: no recipients", subject)
        return False

    send_mail(
        subject=subject,
        message=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=to,
        fail_silently=False,
    )
    logger.info("Sent email %r to %d recipient(s)", subject, len(to))
    return True
