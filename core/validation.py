# core/validation.py
"""
Validation gateway.

Each entity type registers a declarative schema: a Django Form whose fields
name the type, required/optional flag and constraints, with formsets for
nested line items. validate() runs the schema and either returns the
cleaned payload or raises ValidationError with every violation found.

    @register_schema("customer")
    class CustomerSchema(Schema):
        email = forms.EmailField()

    validated = validate("customer", request_payload)
    validated.data["email"]
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Type

from django import forms
from django.core.exceptions import NON_FIELD_ERRORS

from core.exceptions import ValidationError, Violation

_registry: Dict[str, Type["Schema"]] = {}


@dataclass(frozen=True)
class ValidatedPayload:
    entity_type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key):
        return self.data[key]

    def get(self, key, default=None):
        return self.data.get(key, default)


class Schema(forms.Form):
    """
    Base class for entity schemas.

    - nested: maps a payload key to a formset class; the key's value must
      be a list of objects, validated row by row.
    - defaults: values used when an optional field is left empty.
    - context: extra keyword data for clean() methods (e.g. the principal).
    """

    nested: Dict[str, Type[forms.BaseFormSet]] = {}
    defaults: Dict[str, Any] = {}

    def __init__(self, *args, context: Optional[Mapping[str, Any]] = None, **kwargs):
        self.context = dict(context or {})
        super().__init__(*args, **kwargs)

    def clean(self):
        cleaned = super().clean()
        for name, value in self.defaults.items():
            if name not in self.errors and cleaned.get(name) in (None, ""):
                cleaned[name] = value
        return cleaned


class SchemaItem(forms.Form):
    """Base class for nested line-item forms."""

    def __init__(self, *args, context: Optional[Mapping[str, Any]] = None, **kwargs):
        self.context = dict(context or {})
        super().__init__(*args, **kwargs)


def register_schema(entity_type: str):
    def decorator(cls: Type[Schema]) -> Type[Schema]:
        _registry[entity_type] = cls
        return cls

    return decorator


def get_schema(entity_type: str) -> Type[Schema]:
    try:
        return _registry[entity_type]
    except KeyError:
        raise LookupError(f"No schema registered for entity type '{entity_type}'.") from None


def registered_entity_types() -> list[str]:
    return sorted(_registry)


def _formset_data(prefix: str, rows) -> dict:
    data = {
        f"{prefix}-TOTAL_FORMS": str(len(rows)),
        f"{prefix}-INITIAL_FORMS": "0",
    }
    for index, row in enumerate(rows):
        if not isinstance(row, Mapping):
            continue
        for key, value in row.items():
            if value is not None:
                data[f"{prefix}-{index}-{key}"] = value
    return data


def _violations_from(errors, prefix: str = "") -> list[Violation]:
    """
    Flatten Form.errors.as_data() into violations.
    Field names of nested rows look like "items.0.quantity".
    """
    found = []
    for name, error_list in errors.items():
        if name == NON_FIELD_ERRORS:
            field_name = prefix.rstrip(".") or NON_FIELD_ERRORS
        else:
            field_name = f"{prefix}{name}"
        for error in error_list:
            found.append(
                Violation(
                    field=field_name,
                    rule=error.code or "invalid",
                    message=" ".join(str(m) for m in error.messages),
                )
            )
    return found


def validate(
    entity_type: str,
    payload: Optional[Mapping[str, Any]],
    *,
    context: Optional[Mapping[str, Any]] = None,
) -> ValidatedPayload:
    """
    Validate a payload against the schema registered for entity_type.

    Raises ValidationError listing every violation (top-level fields and
    nested rows together), never just the first one.
    """
    schema_cls = get_schema(entity_type)
    payload = dict(payload or {})

    form_data = {
        key: value
        for key, value in payload.items()
        if key not in schema_cls.nested and value is not None
    }
    form = schema_cls(data=form_data, context=context)
    violations = [] if form.is_valid() else _violations_from(form.errors.as_data())

    nested_data: Dict[str, list] = {}
    for key, formset_cls in schema_cls.nested.items():
        rows = payload.get(key) or []
        if not isinstance(rows, (list, tuple)):
            violations.append(Violation(field=key, rule="invalid", message="Expected a list."))
            continue

        formset = formset_cls(
            data=_formset_data(key, rows),
            prefix=key,
            form_kwargs={"context": context},
        )
        if formset.is_valid():
            nested_data[key] = [f.cleaned_data for f in formset.forms if f.cleaned_data]
            continue

        for error in formset.non_form_errors().as_data():
            violations.append(
                Violation(
                    field=key,
                    rule=error.code or "invalid",
                    message=" ".join(str(m) for m in error.messages),
                )
            )
        for index, item_form in enumerate(formset.forms):
            violations.extend(_violations_from(item_form.errors.as_data(), prefix=f"{key}.{index}."))

    if violations:
        raise ValidationError(violations)

    data = dict(form.cleaned_data)
    data.update(nested_data)
    return ValidatedPayload(entity_type=entity_type, data=data)
