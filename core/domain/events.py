# core/domain/events.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from django.utils import timezone


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """
    Base class for all domain events.

    Concrete events carry identifiers only; handlers reload what they need
    because they run after the transaction has committed.

        @dataclass(frozen=True, kw_only=True)
        class InvoiceSent(DomainEvent):
            invoice_id: int
            number: str
    """
    occurred_at: datetime = field(default_factory=timezone.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
