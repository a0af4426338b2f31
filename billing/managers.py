# billing/managers.py
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.managers import ArchiveQuerySet


class InvoiceQuerySet(ArchiveQuerySet):
    def for_customer(self, customer):
        return self.filter(customer=customer)

    def unpaid(self):
        """Issued, sent or partially paid: something is still owed."""
        return self.alive().exclude(status="paid")

    def overdue(self, on_date=None):
        on_date = on_date or timezone.localdate()
        return self.unpaid().filter(due_date__lt=on_date)

    def with_balance(self):
        return self.annotate(balance_due=F("total") - F("paid_amount"))

    def search(self, query: str):
        if not query:
            return self
        return self.filter(
            Q(number__icontains=query)
            | Q(customer__company_name__icontains=query)
            | Q(customer__code__icontains=query)
        )


class InvoiceManager(models.Manager.from_queryset(InvoiceQuerySet)):
    pass


class PaymentQuerySet(ArchiveQuerySet):
    def incoming(self):
        return self.filter(direction="incoming")

    def outgoing(self):
        return self.filter(direction="outgoing")

    def for_customer(self, customer):
        return self.filter(customer=customer)


class PaymentManager(models.Manager.from_queryset(PaymentQuerySet)):
    pass
