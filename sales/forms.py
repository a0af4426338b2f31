# sales/forms.py
from decimal import Decimal

from django import forms
from django.forms import formset_factory
from django.utils.translation import gettext_lazy as _

from catalog.models import Product
from contacts.models import Customer
from core.models import Unit
from core.validation import Schema, SchemaItem, register_schema
from .models import Order, OrderLine

QTY_MIN = Decimal("0.001")


# ===================================================================
# Order
# ===================================================================

class OrderItemForm(SchemaItem):
    product = forms.ModelChoiceField(
        queryset=Product.objects.alive(),
        to_field_name="public_id",
        required=False,
    )
    product_name = forms.CharField(required=False, max_length=255)
    quantity = forms.DecimalField(min_value=QTY_MIN, max_digits=10, decimal_places=3)
    unit = forms.ChoiceField(choices=Unit.choices, required=False)
    # Empty price: the customer's price for the product is used.
    unit_price = forms.DecimalField(required=False, min_value=0, max_digits=10, decimal_places=2)
    vat_rate = forms.DecimalField(required=False, min_value=0, max_value=100, max_digits=5, decimal_places=2)
    notes = forms.CharField(required=False, max_length=255)

    def clean(self):
        cleaned = super().clean()
        product = cleaned.get("product")
        if product is None and not cleaned.get("product_name") and "product" not in self.errors:
            self.add_error(
                "product",
                forms.ValidationError(_("Choose a product or type its name."), code="required"),
            )
        if product is None and cleaned.get("product_name") and cleaned.get("unit_price") is None:
            self.add_error(
                "unit_price",
                forms.ValidationError(_("Free-text items need a price."), code="required"),
            )
        return cleaned


OrderItemFormSet = formset_factory(OrderItemForm, extra=0, min_num=1, validate_min=True)


@register_schema("order")
class OrderSchema(Schema):
    customer = forms.ModelChoiceField(
        queryset=Customer.objects.active(),
        to_field_name="public_id",
    )
    channel = forms.ChoiceField(choices=Order.Channel.choices, required=False)
    requested_delivery_date = forms.DateField(required=False)
    notes = forms.CharField(required=False)
    internal_notes = forms.CharField(required=False)

    nested = {"items": OrderItemFormSet}
    defaults = {"channel": Order.Channel.MANUAL}


# ===================================================================
# Delivery note
# ===================================================================

class DeliveryItemForm(SchemaItem):
    """
    Against an order: order_line + quantity.
    Stand-alone note: product or product_name, quantity, unit_price.
    """
    order_line = forms.ModelChoiceField(queryset=OrderLine.objects.all(), required=False)
    product = forms.ModelChoiceField(
        queryset=Product.objects.alive(),
        to_field_name="public_id",
        required=False,
    )
    product_name = forms.CharField(required=False, max_length=255)
    quantity = forms.DecimalField(min_value=QTY_MIN, max_digits=10, decimal_places=3)
    unit = forms.ChoiceField(choices=Unit.choices, required=False)
    unit_price = forms.DecimalField(required=False, min_value=0, max_digits=10, decimal_places=2)
    vat_rate = forms.DecimalField(required=False, min_value=0, max_value=100, max_digits=5, decimal_places=2)


DeliveryItemFormSet = formset_factory(DeliveryItemForm, extra=0)


@register_schema("delivery_note")
class DeliveryNoteSchema(Schema):
    customer = forms.ModelChoiceField(
        queryset=Customer.objects.active(),
        to_field_name="public_id",
        required=False,
    )
    order = forms.ModelChoiceField(
        queryset=Order.objects.alive(),
        to_field_name="public_id",
        required=False,
    )
    issue_date = forms.DateField(required=False)
    transport_reason = forms.CharField(required=False, max_length=100)
    transported_by = forms.CharField(required=False, max_length=100)
    goods_appearance = forms.CharField(required=False, max_length=100)
    number_of_packages = forms.IntegerField(required=False, min_value=0)
    weight = forms.DecimalField(required=False, min_value=0, max_digits=10, decimal_places=3)
    notes = forms.CharField(required=False)

    nested = {"items": DeliveryItemFormSet}
    defaults = {
        "transport_reason": "Vendita",
        "transported_by": "Mittente",
    }

    def clean(self):
        cleaned = super().clean()
        customer = cleaned.get("customer")
        order = cleaned.get("order")
        if customer is None and order is None and not self.errors:
            self.add_error(
                "customer",
                forms.ValidationError(_("A delivery note needs a customer or an order."), code="required"),
            )
        if customer is not None and order is not None and order.customer_id != customer.pk:
            self.add_error(
                "order",
                forms.ValidationError(_("The order belongs to another customer."), code="customer_mismatch"),
            )
        return cleaned
