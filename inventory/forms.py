# inventory/forms.py
from decimal import Decimal

from django import forms
from django.forms import formset_factory

from catalog.models import Product
from core.models import Unit
from core.validation import Schema, SchemaItem, register_schema
from .models import StockMovement


class MovementFields(forms.Form):
    product = forms.ModelChoiceField(
        queryset=Product.objects.alive(),
        to_field_name="public_id",
    )
    movement_type = forms.ChoiceField(choices=StockMovement.MovementType.choices)
    quantity = forms.DecimalField(min_value=Decimal("0.001"), max_digits=10, decimal_places=3)
    # Empty unit: the product's unit.
    unit = forms.ChoiceField(choices=Unit.choices, required=False)
    reason = forms.CharField(required=False, max_length=255)


@register_schema("stock_movement")
class StockMovementSchema(MovementFields, Schema):
    pass


class StockMovementItemForm(MovementFields, SchemaItem):
    pass


StockMovementFormSet = formset_factory(StockMovementItemForm, extra=0, min_num=1, validate_min=True)


@register_schema("stock_movements")
class StockMovementBatchSchema(Schema):
    """Several movements registered together, e.g. a morning stock count."""

    nested = {"items": StockMovementFormSet}
