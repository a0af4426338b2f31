# core/transactions.py
from __future__ import annotations

import functools
import logging

from django.db import DatabaseError, InterfaceError, OperationalError, transaction

from core.exceptions import ConcurrencyConflict, StorageUnavailable

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}


def _sqlstate(exc: BaseException) -> str | None:
    cause = exc.__cause__
    return getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)


def translate_database_error(exc: DatabaseError) -> Exception:
    """
    Map a driver-level fault onto the domain taxonomy.
    Lock and serialization failures are conflicts; anything else on the
    connection is an unavailable store.
    """
    if _sqlstate(exc) in CONFLICT_SQLSTATES:
        return ConcurrencyConflict("The record was changed by another request. Reload and retry.")
    return StorageUnavailable("The database is not available.")


def atomic_operation(func):
    """
    Run a service operation in a single transaction.

    Every multi-step operation (allocate number, write document, record
    activity, change state) commits or rolls back as a whole. Connection
    faults surface as StorageUnavailable / ConcurrencyConflict and the
    original error is logged, not leaked.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            with transaction.atomic():
                return func(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            translated = translate_database_error(exc)
            logger.exception("Database fault in %s", func.__qualname__)
            raise translated from exc

    return wrapper
