# core/managers.py
from django.db import models


class ArchiveQuerySet(models.QuerySet):
    """
    QuerySet with:
    - .alive(): records that are not archived
    - .archived(): archived records only
    """

    def alive(self):
        return self.filter(is_archived=False)

    def archived(self):
        return self.filter(is_archived=True)


class ArchiveManager(models.Manager.from_queryset(ArchiveQuerySet)):
    """
    Default manager: shows every record, archived ones included.
    Use .alive() for day-to-day lists.
    """
