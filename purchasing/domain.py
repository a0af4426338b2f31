# purchasing/domain.py
from dataclasses import dataclass

from core.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class PurchaseOrderSent(DomainEvent):
    """
    Domain event: a purchase order left for the supplier.
    """
    purchase_order_id: int
    number: str
