from .base import BaseModel, TimeStampedModel, UserStampedModel, ArchivableModel
from .audit import AuditLog
from .choices import PaymentMethod, Unit
from .numbering import DocumentType, NumberingScheme
from .sequences import NumberSequence
from .notifications import Notification

__all__ = [
    "BaseModel",
    "TimeStampedModel",
    "UserStampedModel",
    "ArchivableModel",
    "Notification",
    "AuditLog",
    # choices shared by several apps
    "PaymentMethod",
    "Unit",
    # numbering
    "DocumentType",
    "NumberSequence",
    "NumberingScheme",
]
