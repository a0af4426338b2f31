# core/permissions.py
"""
Principals and the role → action permission table.

Services never read the request or the session: the caller resolves a
Principal once (Principal.for_user) and passes it explicitly.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from django.db import models
from django.utils.translation import gettext_lazy as _

from core.exceptions import Unauthorized


class Role(models.TextChoices):
    ADMIN = "admin", _("Amministratore")
    OPERATOR = "operator", _("Operatore")
    VIEWER = "viewer", _("Consultazione")
    CUSTOMER = "customer", _("Cliente")


# Group names that map onto a staff role.
ROLE_GROUPS = {
    "admin": Role.ADMIN,
    "operator": Role.OPERATOR,
    "viewer": Role.VIEWER,
}

VIEW_ACTIONS = frozenset({
    "contacts.view",
    "catalog.view",
    "sales.view",
    "billing.view",
    "purchasing.view",
    "inventory.view",
    "reports.view",
})

OPERATOR_ACTIONS = VIEW_ACTIONS | frozenset({
    "contacts.manage_customer",
    "contacts.manage_supplier",
    "catalog.manage_product",
    "catalog.import_products",
    "sales.create_order",
    "sales.update_order",
    "sales.confirm_order",
    "sales.cancel_order",
    "sales.record_delivery",
    "sales.invoice_order",
    "sales.settle_order",
    "sales.mark_delivered",
    "billing.issue_invoice",
    "billing.send_invoice",
    "billing.record_payment",
    "purchasing.manage_purchase_order",
    "purchasing.receive_purchase_order",
    "purchasing.manage_supplier_invoice",
    "purchasing.manage_shopping_list",
    "inventory.manage_stock",
})

ADMIN_ACTIONS = OPERATOR_ACTIONS | frozenset({
    "core.view_activity",
    "billing.allow_overpayment",
    "billing.manage_settings",
})

CUSTOMER_ACTIONS = frozenset({
    "portal.place_order",
    "portal.view_own",
})

PERMISSIONS = {
    Role.ADMIN: ADMIN_ACTIONS,
    Role.OPERATOR: OPERATOR_ACTIONS,
    Role.VIEWER: VIEW_ACTIONS,
    Role.CUSTOMER: CUSTOMER_ACTIONS,
}


@dataclass(frozen=True)
class Principal:
    """
    The authenticated actor performing an operation.

    customer_id is set only for CUSTOMER principals and scopes every
    portal read and write to that customer.
    """
    user: Any
    role: str
    customer_id: Optional[int] = None

    @classmethod
    def for_user(cls, user) -> "Principal":
        if user is None or not getattr(user, "is_authenticated", False):
            raise Unauthorized("unauthenticated")

        if not user.is_active:
            raise Unauthorized("inactive user")

        if user.is_superuser:
            return cls(user=user, role=Role.ADMIN)

        group_names = set(user.groups.values_list("name", flat=True))
        for name in ("admin", "operator", "viewer"):
            if name in group_names:
                return cls(user=user, role=ROLE_GROUPS[name])

        if user.is_staff:
            return cls(user=user, role=Role.OPERATOR)

        from contacts.models import Customer  # local import to avoid circular imports

        customer_id = (
            Customer.objects.alive()
            .filter(portal_user=user, is_active=True)
            .values_list("pk", flat=True)
            .first()
        )
        if customer_id is not None:
            return cls(user=user, role=Role.CUSTOMER, customer_id=customer_id)

        raise Unauthorized("no role assigned")

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.ADMIN, Role.OPERATOR, Role.VIEWER)

    @property
    def actor(self):
        """User stored on audit entries and created_by fields."""
        if self.user is not None and getattr(self.user, "is_authenticated", False):
            return self.user
        return None

    def can(self, action: str) -> bool:
        return action in PERMISSIONS.get(self.role, frozenset())


def require(principal: Principal | None, action: str) -> None:
    """
    Raise Unauthorized unless the principal may perform the action.
    Call it first in every service, before any write.
    """
    if principal is None:
        raise Unauthorized("unauthenticated", action)
    if not principal.can(action):
        raise Unauthorized("forbidden", action)
