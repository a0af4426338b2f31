# core/exceptions.py
"""
Error taxonomy shared by every service.

- ValidationError: payload malformed, user-correctable.
- IllegalTransition: workflow precondition unmet.
- Unauthorized: principal lacks permission; raised before any side effect.
- StorageUnavailable: database fault, surfaced generically.
- ConcurrencyConflict: lost a race on a row; caller may re-fetch and retry.
"""
from __future__ import annotations

from dataclasses import dataclass

from django.core.exceptions import PermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError


class FruttaGestError(Exception):
    """Base class for domain errors that are not validation errors."""


@dataclass(frozen=True)
class Violation:
    field: str
    rule: str
    message: str

    def as_dict(self) -> dict:
        return {"field": self.field, "rule": self.rule, "message": self.message}


class ValidationError(DjangoValidationError):
    """
    Django ValidationError that also carries the complete list of
    violations, each naming the field and the violated rule.
    """

    def __init__(self, violations):
        self.violations = list(violations)
        errors: dict[str, list] = {}
        for v in self.violations:
            errors.setdefault(v.field, []).append(DjangoValidationError(v.message, code=v.rule))
        super().__init__(errors or "invalid")

    @classmethod
    def single(cls, field: str, rule: str, message) -> "ValidationError":
        return cls([Violation(field=field, rule=rule, message=str(message))])

    def fields(self) -> set[str]:
        return {v.field for v in self.violations}


class IllegalTransition(FruttaGestError):
    def __init__(self, source: str, target: str, reason: str):
        self.source = source
        self.target = target
        self.reason = reason
        super().__init__(f"Cannot move from '{source}' to '{target}': {reason}")

    def as_dict(self) -> dict:
        return {"source": self.source, "target": self.target, "reason": self.reason}


class Unauthorized(PermissionDenied):
    def __init__(self, reason: str = "forbidden", action: str | None = None):
        self.reason = reason
        self.action = action
        super().__init__(reason if action is None else f"{reason}: {action}")


class StorageUnavailable(FruttaGestError):
    pass


class ConcurrencyConflict(FruttaGestError):
    pass
