# portal/services.py
"""
Customer-facing operations. Every read and write is scoped to the
customer of the principal; a customer never sees another one's records.
"""
from __future__ import annotations

from typing import Any, Mapping

from billing.models import Invoice, Payment
from contacts.models import Customer
from core.exceptions import Unauthorized
from core.permissions import Principal, require
from sales.models import Order
from sales.services import OrderService


def portal_customer(principal: Principal) -> Customer:
    """
    The customer behind a CUSTOMER principal.
    Staff principals have no portal customer and are refused.
    """
    require(principal, "portal.view_own")
    if principal.customer_id is None:
        raise Unauthorized("no customer account", "portal.view_own")
    try:
        return Customer.objects.active().get(pk=principal.customer_id)
    except Customer.DoesNotExist:
        raise Unauthorized("no customer account", "portal.view_own") from None


def place_order(principal: Principal, payload: Mapping[str, Any]) -> Order:
    """
    Order from the portal: catalog items only, priced with the customer's
    prices, channel "web". Staff get a notification and the customer a
    confirmation email once the order is committed.
    """
    portal_customer(principal)
    return OrderService.create_order(
        principal,
        payload,
        schema="portal_order",
        permission="portal.place_order",
    )


def own_orders(principal: Principal):
    customer = portal_customer(principal)
    return Order.objects.alive().for_customer(customer).select_related("customer")


def own_order(principal: Principal, public_id) -> Order:
    """Raises Order.DoesNotExist for orders of other customers."""
    return own_orders(principal).get(public_id=public_id)


def own_invoices(principal: Principal):
    customer = portal_customer(principal)
    return Invoice.objects.alive().for_customer(customer).select_related("customer")


def own_payments(principal: Principal):
    customer = portal_customer(principal)
    return Payment.objects.alive().incoming().for_customer(customer).select_related("invoice")
