# inventory/managers.py
from django.db import models
from django.db.models import Q

INCOMING_TYPES = ("carico", "rettifica_pos")
OUTGOING_TYPES = ("scarico", "rettifica_neg", "scarto")


class StockMovementQuerySet(models.QuerySet):
    def incoming(self):
        return self.filter(movement_type__in=INCOMING_TYPES)

    def outgoing(self):
        return self.filter(movement_type__in=OUTGOING_TYPES)

    def for_product(self, product):
        return self.filter(product=product)

    def for_reference(self, reference_type: str, numbers):
        return self.filter(reference_type=reference_type, reference_number__in=list(numbers))

    def between(self, date_from=None, date_to=None):
        """Movements recorded between two dates, both inclusive."""
        qs = self
        if date_from:
            qs = qs.filter(created_at__date__gte=date_from)
        if date_to:
            qs = qs.filter(created_at__date__lte=date_to)
        return qs

    def search(self, query: str):
        if not query:
            return self
        return self.filter(
            Q(product__name__icontains=query)
            | Q(reference_number__icontains=query)
            | Q(reason__icontains=query)
        )

    def with_related(self):
        return self.select_related("product", "created_by")


class StockMovementManager(models.Manager.from_queryset(StockMovementQuerySet)):
    pass
