# portal/forms.py
from decimal import Decimal

from django import forms
from django.forms import formset_factory

from catalog.models import Product
from contacts.models import Customer
from core.validation import Schema, SchemaItem, register_schema
from sales.models import Order


class PortalItemForm(SchemaItem):
    """Customers order from the catalog only; prices are never taken from them."""

    product = forms.ModelChoiceField(
        queryset=Product.objects.available(),
        to_field_name="public_id",
    )
    quantity = forms.DecimalField(min_value=Decimal("0.001"), max_digits=10, decimal_places=3)
    notes = forms.CharField(required=False, max_length=255)


PortalItemFormSet = formset_factory(PortalItemForm, extra=0, min_num=1, validate_min=True)


@register_schema("portal_order")
class PortalOrderSchema(Schema):
    requested_delivery_date = forms.DateField(required=False)
    notes = forms.CharField(required=False)

    nested = {"items": PortalItemFormSet}
    defaults = {"channel": Order.Channel.WEB}

    def clean(self):
        """The customer always comes from the principal placing the order."""
        cleaned = super().clean()
        principal = self.context.get("principal")
        customer_id = getattr(principal, "customer_id", None)
        customer = Customer.objects.active().filter(pk=customer_id).first() if customer_id else None
        if customer is None:
            raise forms.ValidationError("No active customer account.", code="no_customer")
        cleaned["customer"] = customer
        return cleaned
