# catalog/forms.py
from decimal import Decimal

from django import forms

from contacts.models import Supplier
from core.models import Unit
from core.validation import Schema, register_schema
from .models import DEFAULT_VAT_RATE, Product


@register_schema("product")
class ProductSchema(Schema):
    name = forms.CharField(min_length=2, max_length=255)
    sku = forms.CharField(required=False, max_length=32)
    category = forms.ChoiceField(choices=Product.Category.choices, required=False)
    unit = forms.ChoiceField(choices=Unit.choices)
    default_price = forms.DecimalField(min_value=Decimal("0.01"), max_digits=10, decimal_places=2)
    cost_price = forms.DecimalField(required=False, min_value=0, max_digits=10, decimal_places=2)
    vat_rate = forms.DecimalField(required=False, min_value=0, max_value=100, max_digits=5, decimal_places=2)
    is_available = forms.BooleanField(required=False)
    seasonal_from = forms.IntegerField(required=False, min_value=1, max_value=12)
    seasonal_to = forms.IntegerField(required=False, min_value=1, max_value=12)
    preferred_supplier = forms.ModelChoiceField(
        queryset=Supplier.objects.alive(),
        to_field_name="public_id",
        required=False,
    )
    origin = forms.CharField(required=False, max_length=100)
    description = forms.CharField(required=False)

    defaults = {
        "category": Product.Category.FRUTTA,
        "vat_rate": DEFAULT_VAT_RATE,
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Unchecked boxes are absent from HTML posts; here absence means "available".
        if self.is_bound and "is_available" not in self.data:
            self.data = {**self.data, "is_available": True}

    def clean_sku(self):
        return self.cleaned_data.get("sku") or None

    def clean(self):
        cleaned = super().clean()
        seasonal_from = cleaned.get("seasonal_from")
        seasonal_to = cleaned.get("seasonal_to")
        if (seasonal_from is None) != (seasonal_to is None):
            self.add_error(
                "seasonal_to" if seasonal_to is None else "seasonal_from",
                forms.ValidationError("Specify both ends of the season.", code="incomplete_season"),
            )
        return cleaned


@register_schema("customer_price")
class CustomerPriceSchema(Schema):
    price = forms.DecimalField(min_value=Decimal("0.01"), max_digits=10, decimal_places=2)
