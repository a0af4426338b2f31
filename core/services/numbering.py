# core/services/numbering.py
from __future__ import annotations

import logging
from datetime import date

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.models import NumberSequence, NumberingScheme
from core.transactions import atomic_operation

logger = logging.getLogger(__name__)


def _increment(key: str, period: str) -> int | None:
    """
    Single atomic read-modify-write on the counter row.
    The UPDATE row-locks the counter until the enclosing transaction ends,
    so concurrent allocators for the same key are serialized by the database.
    """
    updated = NumberSequence.objects.filter(key=key, period=period).update(
        last_value=F("last_value") + 1,
    )
    if not updated:
        return None
    return (
        NumberSequence.objects
        .filter(key=key, period=period)
        .values_list("last_value", flat=True)
        .get()
    )


@atomic_operation
def allocate_number(document_type: str, period_key: str, *, start: int = 1) -> int:
    """
    Return the next sequence integer for (document_type, period_key).

    Allocation joins the caller's transaction: if that transaction aborts,
    the increment is rolled back with it, so committed documents always
    form a contiguous sequence per key.
    """
    key = str(document_type)
    period = str(period_key or "")

    value = _increment(key, period)
    if value is None:
        # First allocation for this key. Two callers may race here: the
        # unique constraint lets one win, the other falls back to UPDATE.
        try:
            with transaction.atomic():
                NumberSequence.objects.create(key=key, period=period, last_value=start)
            value = start
        except IntegrityError:
            value = _increment(key, period)

    logger.debug("Allocated %s [%s] → %s", key, period, value)
    return value


def next_document_number(document_type: str, *, on_date: date | None = None) -> str:
    """
    Allocate and format the next number for a document type.

    Usage:
        invoice.number = next_document_number(DocumentType.INVOICE)   # FT-2024-0001
    """
    on_date = on_date or timezone.localdate()
    scheme = NumberingScheme.get_for_type(document_type)
    seq = allocate_number(document_type, scheme.period_for(on_date), start=scheme.start)
    return scheme.format(seq, on_date)
