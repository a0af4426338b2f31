# core/views.py

from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from core.api import date_param, json_endpoint, json_response, paginate
from core.models import AuditLog, Notification
from core.permissions import require
from core.services.audit import entries


def serialize_audit_entry(entry: AuditLog) -> dict:
    return {
        "id": entry.id,
        "timestamp": entry.created_at,
        "actor": entry.actor.get_username() if entry.actor_id else None,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "action": entry.action,
        "message": entry.message,
        "metadata": entry.metadata,
    }


def serialize_notification(notification: Notification) -> dict:
    return {
        "id": str(notification.public_id),
        "verb": notification.verb,
        "level": notification.level,
        "url": notification.url,
        "is_read": notification.is_read,
        "created_at": notification.created_at,
    }


@require_GET
@json_endpoint
def activity_list(request, principal):
    """
    GET /api/activity/?entity_type=sales.order&entity_id=12&action=confirm

    Entries are returned oldest first. Admin only.
    """
    require(principal, "core.view_activity")

    params = request.GET
    qs = entries(
        entity_type=params.get("entity_type") or None,
        entity_id=params.get("entity_id") or None,
        action=params.get("action") or None,
    )
    if params.get("actor"):
        qs = qs.filter(actor__username=params["actor"])

    date_from = date_param(request, "date_from")
    date_to = date_param(request, "date_to")
    if date_from:
        qs = qs.filter(created_at__date__gte=date_from)
    if date_to:
        qs = qs.filter(created_at__date__lte=date_to)

    return json_response(paginate(request, qs, serialize_audit_entry))


@require_GET
@json_endpoint
def notification_list(request, principal):
    """GET /api/notifications/?unread=1 for the current staff user."""
    require(principal, "sales.view")

    qs = Notification.objects.for_user(principal.user)
    if request.GET.get("unread"):
        qs = qs.unread()
    return json_response(paginate(request, qs, serialize_notification))


@require_POST
@json_endpoint
def notification_read(request, principal, public_id):
    require(principal, "sales.view")

    notification = get_object_or_404(
        Notification.objects.for_user(principal.user),
        public_id=public_id,
    )
    notification.mark_as_read()
    return json_response(serialize_notification(notification))
