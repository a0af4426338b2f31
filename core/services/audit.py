# core/services/audit.py

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Optional

from django.core.serializers.json import DjangoJSONEncoder

from core.models import AuditLog

_ACTION_RE = re.compile(r"^[a-z][a-z0-9_]*$")


def _jsonable(metadata: Optional[Mapping[str, Any]]) -> dict:
    # Decimals, dates and UUIDs are stored as strings.
    if not metadata:
        return {}
    return json.loads(json.dumps(dict(metadata), cls=DjangoJSONEncoder))


def record(
    actor: Any,
    entity_type: str,
    entity_id: Any,
    action: str,
    metadata: Optional[Mapping[str, Any]] = None,
    *,
    message: str = "",
) -> AuditLog:
    """
    Append a single activity log entry.

    Parameters
    ----------
    actor:
        The user who performed the action, or None for system actions.
        Only stored if user.is_authenticated is True.

    entity_type:
        Model label of the entity, e.g. "sales.order".

    entity_id:
        Primary key of the entity (stored as text).

    action:
        Lower-case slug, e.g. "create", "confirm", "record_payment".
        Prefer AuditLog.Action.* for generic verbs.

    metadata:
        Optional mapping of structured data (stored as JSON).

    The entry is written inside the caller's transaction, so a failed
    write rolls the business operation back with it.
    """
    action_value = action.value if isinstance(action, AuditLog.Action) else str(action)
    if not _ACTION_RE.match(action_value):
        raise ValueError(f"Invalid audit action '{action_value}'.")

    if not entity_type or entity_id in (None, ""):
        raise ValueError("Audit entries need an entity type and an entity id.")

    data: dict[str, Any] = {
        "action": action_value,
        "entity_type": str(entity_type),
        "entity_id": str(entity_id),
        "message": str(message or ""),
        "metadata": _jsonable(metadata),
    }

    if actor is not None and getattr(actor, "is_authenticated", False):
        data["actor"] = actor

    return AuditLog.objects.create(**data)


def record_for(
    actor: Any,
    instance,
    action: str,
    metadata: Optional[Mapping[str, Any]] = None,
    *,
    message: str = "",
) -> AuditLog:
    """Shortcut for a model instance: entity type is its lower-case label."""
    return record(
        actor,
        instance._meta.label_lower,
        instance.pk,
        action,
        metadata,
        message=message,
    )


def entries(
    *,
    entity_type: str | None = None,
    entity_id: Any = None,
    actor: Any = None,
    action: str | None = None,
):
    """
    Activity entries ordered by timestamp ascending.

    Returns a QuerySet: lazy, and iterating it again re-runs the query.
    """
    qs = AuditLog.objects.select_related("actor").chronological()
    if entity_type:
        qs = qs.for_entity(entity_type, entity_id)
    elif entity_id is not None:
        qs = qs.filter(entity_id=str(entity_id))
    if actor is not None:
        qs = qs.filter(actor=actor)
    if action:
        qs = qs.filter(action=action)
    return qs
