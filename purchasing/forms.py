# purchasing/forms.py
from decimal import Decimal

from django import forms
from django.forms import formset_factory

from catalog.models import Product
from contacts.models import Supplier
from core.models import Unit
from core.validation import Schema, SchemaItem, register_schema
from .models import PurchaseOrder, ShoppingListItem


class PurchaseItemForm(SchemaItem):
    product = forms.ModelChoiceField(
        queryset=Product.objects.alive(),
        to_field_name="public_id",
        required=False,
    )
    product_name = forms.CharField(required=False, max_length=255)
    quantity = forms.DecimalField(min_value=Decimal("0.001"), max_digits=10, decimal_places=3)
    unit = forms.ChoiceField(choices=Unit.choices, required=False)
    # Empty price: the product's cost price.
    unit_price = forms.DecimalField(required=False, min_value=0, max_digits=10, decimal_places=2)
    vat_rate = forms.DecimalField(required=False, min_value=0, max_value=100, max_digits=5, decimal_places=2)

    def clean(self):
        cleaned = super().clean()
        product = cleaned.get("product")
        if product is None and not cleaned.get("product_name") and "product" not in self.errors:
            self.add_error("product", forms.ValidationError("Choose a product or type its name.", code="required"))
        if product is None and cleaned.get("product_name") and cleaned.get("unit_price") is None:
            self.add_error("unit_price", forms.ValidationError("Free-text items need a price.", code="required"))
        return cleaned


PurchaseItemFormSet = formset_factory(PurchaseItemForm, extra=0, min_num=1, validate_min=True)


@register_schema("purchase_order")
class PurchaseOrderSchema(Schema):
    supplier = forms.ModelChoiceField(
        queryset=Supplier.objects.active(),
        to_field_name="public_id",
    )
    expected_date = forms.DateField(required=False)
    notes = forms.CharField(required=False)

    nested = {"items": PurchaseItemFormSet}


@register_schema("supplier_invoice")
class SupplierInvoiceSchema(Schema):
    supplier = forms.ModelChoiceField(
        queryset=Supplier.objects.alive(),
        to_field_name="public_id",
    )
    purchase_order = forms.ModelChoiceField(
        queryset=PurchaseOrder.objects.alive(),
        to_field_name="public_id",
        required=False,
    )
    supplier_reference = forms.CharField(required=False, max_length=64)
    issue_date = forms.DateField(required=False)
    due_date = forms.DateField(required=False)
    subtotal = forms.DecimalField(min_value=0, max_digits=12, decimal_places=2)
    vat_amount = forms.DecimalField(required=False, min_value=0, max_digits=12, decimal_places=2)
    notes = forms.CharField(required=False)

    defaults = {"vat_amount": Decimal("0.00")}

    def clean(self):
        cleaned = super().clean()
        supplier = cleaned.get("supplier")
        purchase_order = cleaned.get("purchase_order")
        if supplier and purchase_order and purchase_order.supplier_id != supplier.pk:
            self.add_error(
                "purchase_order",
                forms.ValidationError("The purchase order belongs to another supplier.", code="supplier_mismatch"),
            )
        issue_date, due_date = cleaned.get("issue_date"), cleaned.get("due_date")
        if issue_date and due_date and due_date < issue_date:
            self.add_error("due_date", forms.ValidationError("Due date precedes the invoice date.", code="invalid"))
        return cleaned


# ============================================================
# Shopping list
# ============================================================

@register_schema("shopping_list")
class ShoppingListSchema(Schema):
    delivery_date = forms.DateField()
    notes = forms.CharField(required=False)


@register_schema("shopping_list_item")
class ShoppingListItemSchema(Schema):
    quantity = forms.DecimalField(min_value=Decimal("0.001"), max_digits=10, decimal_places=3)
    supplier = forms.ModelChoiceField(
        queryset=Supplier.objects.alive(),
        to_field_name="public_id",
        required=False,
    )
    supplier_price = forms.DecimalField(required=False, min_value=0, max_digits=10, decimal_places=2)
    notes = forms.CharField(required=False)


@register_schema("shopping_list_merge")
class ShoppingListMergeSchema(Schema):
    """Items folded into the target item."""

    items = forms.ModelMultipleChoiceField(
        queryset=ShoppingListItem.objects.select_related("product"),
        to_field_name="public_id",
    )
