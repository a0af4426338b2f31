# core/workflow.py
"""
Table-driven state machine for business documents.

A workflow is a list of Transition rows (action, sources, target,
permission, requires). The whole graph is declared in one place and can be
inspected and tested without touching the database:

    ORDER_WORKFLOW.allowed_actions("draft")   # ["confirm", "cancel"]
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from django.utils import timezone

from core.exceptions import ConcurrencyConflict, IllegalTransition
from core.permissions import Principal, require
from core.services.audit import record_for

logger = logging.getLogger(__name__)

# A precondition returns None when satisfied, or the reason it is not.
Precondition = Callable[[Any], Optional[str]]


@dataclass(frozen=True)
class Transition:
    action: str
    sources: frozenset
    target: str
    permission: str
    requires: tuple = field(default_factory=tuple)

    def unmet(self, instance) -> Optional[str]:
        for precondition in self.requires:
            reason = precondition(instance)
            if reason:
                return reason
        return None


class Workflow:
    def __init__(
        self,
        model,
        transitions: Sequence[Transition],
        *,
        field_name: str = "status",
        final_states: Iterable[str] = (),
    ) -> None:
        self.model = model
        self.transitions = tuple(transitions)
        self.field_name = field_name
        self.final_states = frozenset(final_states)

    def __repr__(self) -> str:
        return f"<Workflow {self.model.__name__}: {len(self.transitions)} transitions>"

    # ------------------------------------------------------------------
    # Graph inspection
    # ------------------------------------------------------------------
    def allowed_actions(self, state: str) -> list[str]:
        return [t.action for t in self.transitions if state in t.sources]

    def targets_from(self, state: str) -> list[str]:
        return [t.target for t in self.transitions if state in t.sources]

    def get(self, action: str) -> Transition:
        for transition in self.transitions:
            if transition.action == action:
                return transition
        raise LookupError(f"Unknown action '{action}'.")

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------
    def resolve(self, instance, target: str, principal: Principal) -> Transition:
        """
        Find the transition that moves the instance to target, or raise.

        Checks run in this order: permission, final state, required
        documents, then the source state. Nothing is written.
        """
        source = getattr(instance, self.field_name)
        candidates = [t for t in self.transitions if t.target == target]
        if not candidates:
            raise IllegalTransition(source, target, "unknown target state")

        eligible = [t for t in candidates if source in t.sources]
        transition = eligible[0] if eligible else candidates[0]

        require(principal, transition.permission)

        if source in self.final_states:
            raise IllegalTransition(source, target, f"{source} is a final state")

        reason = transition.unmet(instance)
        if reason:
            raise IllegalTransition(source, target, reason)

        if not eligible:
            raise IllegalTransition(source, target, f"not allowed from {source}")

        return transition

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------
    def apply(
        self,
        instance,
        target: str,
        principal: Principal,
        *,
        metadata: Optional[Mapping[str, Any]] = None,
        message: str = "",
    ) -> Transition:
        """
        Move the instance to target and append one activity entry.

        Must run inside the caller's transaction. The status is changed
        with a conditional UPDATE on the current state; if another request
        moved the row first, ConcurrencyConflict is raised.
        """
        source = getattr(instance, self.field_name)
        transition = self.resolve(instance, target, principal)

        values = {self.field_name: target}
        if any(f.name == "updated_at" for f in self.model._meta.concrete_fields):
            values["updated_at"] = timezone.now()

        updated = (
            self.model._default_manager
            .filter(pk=instance.pk, **{self.field_name: source})
            .update(**values)
        )
        if not updated:
            raise ConcurrencyConflict(
                f"{self.model._meta.verbose_name} {instance.pk} was changed by another request."
            )
        for name, value in values.items():
            setattr(instance, name, value)

        record_for(
            principal.actor,
            instance,
            transition.action,
            {"source": source, "target": target, **dict(metadata or {})},
            message=message,
        )
        logger.info(
            "%s %s: %s → %s (%s)",
            self.model._meta.label,
            instance.pk,
            source,
            target,
            transition.action,
        )
        return transition
