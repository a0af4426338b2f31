# sales/domain.py
from dataclasses import dataclass

from core.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class OrderPlaced(DomainEvent):
    """
    Domain event: an order was created (any channel).
    """
    order_id: int
    number: str
    channel: str


@dataclass(frozen=True, kw_only=True)
class OrderConfirmed(DomainEvent):
    order_id: int
    number: str


@dataclass(frozen=True, kw_only=True)
class DeliveryNoteDelivered(DomainEvent):
    delivery_note_id: int
    number: str
