# contacts/managers.py
from django.db import models
from django.db.models import Q

from core.managers import ArchiveQuerySet


class PartyQuerySet(ArchiveQuerySet):
    """
    Shared filters for customers and suppliers.
    """

    def active(self):
        return self.alive().filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)

    def search(self, query: str):
        """
        Free-text search on code, company name, VAT number, email and city.
        """
        if not query:
            return self
        return self.filter(
            Q(code__icontains=query)
            | Q(company_name__icontains=query)
            | Q(vat_number__icontains=query)
            | Q(email__icontains=query)
            | Q(city__icontains=query)
        )


class CustomerQuerySet(PartyQuerySet):
    def of_type(self, customer_type: str):
        return self.filter(customer_type=customer_type)

    def with_portal_access(self):
        return self.exclude(portal_user__isnull=True)


class CustomerManager(models.Manager.from_queryset(CustomerQuerySet)):
    pass


class SupplierManager(models.Manager.from_queryset(PartyQuerySet)):
    pass
