# sales/managers.py
from django.db import models
from django.db.models import Q

from core.managers import ArchiveQuerySet

# Plain status values to avoid importing the models module.
OPEN_ORDER_STATUSES = ("draft", "confirmed", "partially_delivered", "delivered")


class OrderQuerySet(ArchiveQuerySet):
    """
    Filters for orders: status, customer, search.
    """

    def with_status(self, *statuses):
        return self.filter(status__in=statuses)

    def open(self):
        """Orders still waiting for delivery or invoicing."""
        return self.alive().filter(status__in=OPEN_ORDER_STATUSES)

    def to_deliver(self):
        return self.alive().filter(status__in=("confirmed", "partially_delivered"))

    def for_customer(self, customer):
        return self.filter(customer=customer)

    def search(self, query: str):
        if not query:
            return self
        return self.filter(
            Q(number__icontains=query)
            | Q(customer__company_name__icontains=query)
            | Q(customer__code__icontains=query)
            | Q(notes__icontains=query)
        )


class OrderManager(models.Manager.from_queryset(OrderQuerySet)):
    pass


class DeliveryNoteQuerySet(ArchiveQuerySet):
    def for_customer(self, customer):
        return self.filter(customer=customer)

    def uninvoiced(self):
        return self.filter(invoice__isnull=True)

    def delivered(self):
        return self.filter(status="delivered")

    def search(self, query: str):
        if not query:
            return self
        return self.filter(
            Q(number__icontains=query)
            | Q(customer__company_name__icontains=query)
            | Q(order__number__icontains=query)
        )


class DeliveryNoteManager(models.Manager.from_queryset(DeliveryNoteQuerySet)):
    pass
