# core/api.py
"""
JSON boundary helpers shared by every app's api.py.

json_endpoint turns the domain error taxonomy into structured responses:

    ValidationError      → 400 {"error": "validation", "violations": [...]}
    Unauthorized         → 401 / 403
    IllegalTransition    → 409 {"error": "illegal_transition", "source", "target", "reason"}
    ConcurrencyConflict  → 409 {"error": "conflict", "retryable": true}
    StorageUnavailable   → 503 generic message
"""
from __future__ import annotations

import functools
import json
import logging

from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.paginator import Paginator
from django.core.serializers.json import DjangoJSONEncoder
from django.http import Http404, JsonResponse
from django.utils.dateparse import parse_date

from core.exceptions import (
    ConcurrencyConflict,
    IllegalTransition,
    StorageUnavailable,
    Unauthorized,
    ValidationError,
    Violation,
)
from core.permissions import Principal

logger = logging.getLogger(__name__)

PAGE_SIZE = 50


def json_response(data, status: int = 200) -> JsonResponse:
    return JsonResponse(data, status=status, encoder=DjangoJSONEncoder, safe=False)


def error_response(code: str, message: str, status: int, **extra) -> JsonResponse:
    return json_response({"error": code, "message": message, **extra}, status=status)


def read_json(request) -> dict:
    """
    Parse the request body as a JSON object.
    Form-encoded posts (e.g. a bare action POST) are read as their form fields.
    """
    if request.content_type != "application/json":
        return request.POST.dict()
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (TypeError, ValueError):
        raise ValidationError([Violation(field="body", rule="invalid_json", message="Malformed JSON body.")])
    if not isinstance(payload, dict):
        raise ValidationError([Violation(field="body", rule="invalid", message="Expected a JSON object.")])
    return payload


def paginate(request, queryset, serialize) -> dict:
    """
    DRF-like page: {"count", "next", "previous", "results"}.
    """
    paginator = Paginator(queryset, PAGE_SIZE)
    page = paginator.get_page(request.GET.get("page") or 1)

    def _link(number):
        params = request.GET.copy()
        params["page"] = number
        return f"{request.path}?{params.urlencode()}"

    return {
        "count": paginator.count,
        "next": _link(page.next_page_number()) if page.has_next() else None,
        "previous": _link(page.previous_page_number()) if page.has_previous() else None,
        "results": [serialize(obj) for obj in page.object_list],
    }


def json_endpoint(view):
    """
    Resolve the principal, run the view, map domain errors to JSON.

    The wrapped view is called as view(request, principal, *args, **kwargs).
    """

    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            principal = Principal.for_user(getattr(request, "user", None))
            return view(request, principal, *args, **kwargs)
        except ValidationError as exc:
            return json_response(
                {"error": "validation", "violations": [v.as_dict() for v in exc.violations]},
                status=400,
            )
        except DjangoValidationError as exc:
            # Malformed lookups, e.g. a query parameter that is not a UUID.
            violations = [Violation(field="__all__", rule="invalid", message=m).as_dict() for m in exc.messages]
            return json_response({"error": "validation", "violations": violations}, status=400)
        except Unauthorized as exc:
            status = 401 if exc.reason == "unauthenticated" else 403
            return error_response("unauthorized", exc.reason, status, action=exc.action)
        except IllegalTransition as exc:
            return error_response("illegal_transition", str(exc), 409, **exc.as_dict())
        except ConcurrencyConflict as exc:
            return error_response("conflict", str(exc), 409, retryable=True)
        except (Http404, ObjectDoesNotExist):
            return error_response("not_found", "Not found.", 404)
        except StorageUnavailable:
            # Already logged with the driver error where it was translated.
            return error_response("unavailable", "Service temporarily unavailable.", 503)

    return wrapper


def date_param(request, name: str):
    """Optional YYYY-MM-DD query parameter; a malformed value is a validation error."""
    raw = request.GET.get(name)
    if not raw:
        return None
    try:
        value = parse_date(raw)
    except ValueError:
        value = None
    if value is None:
        raise ValidationError.single(name, "invalid", "Enter a valid date (YYYY-MM-DD).")
    return value
