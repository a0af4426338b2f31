# billing/domain.py
from dataclasses import dataclass

from core.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class InvoiceSent(DomainEvent):
    """
    Domain event: an invoice was sent to the customer.
    """
    invoice_id: int
    number: str


@dataclass(frozen=True, kw_only=True)
class PaymentRecorded(DomainEvent):
    payment_id: int
    direction: str
    overpayment: bool = False
