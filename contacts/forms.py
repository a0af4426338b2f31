# contacts/forms.py
from django import forms
from django.core.validators import RegexValidator
from django.utils.translation import gettext_lazy as _

from core.models import PaymentMethod
from core.validation import Schema, register_schema
from .models import Customer

digits_only = RegexValidator(r"^\d+$", _("Solo cifre."), code="digits")


class PartySchema(Schema):
    """
    Fields shared by the customer and supplier schemas.
    """

    company_name = forms.CharField(min_length=2, max_length=255)
    vat_number = forms.CharField(required=False, max_length=20)
    fiscal_code = forms.CharField(required=False, max_length=20)
    phone = forms.CharField(required=False, max_length=50)
    payment_method = forms.ChoiceField(choices=PaymentMethod.choices, required=False)
    payment_terms_days = forms.IntegerField(required=False, min_value=0, max_value=365)
    notes = forms.CharField(required=False)

    defaults = {
        "payment_method": PaymentMethod.BONIFICO,
        "payment_terms_days": 30,
    }


@register_schema("customer")
class CustomerSchema(PartySchema):
    customer_type = forms.ChoiceField(choices=Customer.CustomerType.choices, required=False)
    email = forms.EmailField()
    pec_email = forms.EmailField(required=False)
    sdi_code = forms.CharField(required=False, max_length=7)

    address = forms.CharField(min_length=3, max_length=255)
    city = forms.CharField(min_length=2, max_length=100)
    province = forms.CharField(min_length=2, max_length=2)
    postal_code = forms.CharField(min_length=5, max_length=5, validators=[digits_only])

    delivery_zone = forms.CharField(required=False, max_length=100)
    preferred_delivery_time = forms.CharField(required=False, max_length=50)
    delivery_instructions = forms.CharField(required=False)
    credit_limit = forms.DecimalField(required=False, min_value=0, max_digits=12, decimal_places=2)

    defaults = {
        **PartySchema.defaults,
        "customer_type": Customer.CustomerType.RISTORANTE,
    }

    def clean_province(self):
        return self.cleaned_data["province"].upper()


@register_schema("supplier")
class SupplierSchema(PartySchema):
    email = forms.EmailField(required=False)
    address = forms.CharField(required=False, max_length=255)
    city = forms.CharField(required=False, max_length=100)
    province = forms.CharField(required=False, min_length=2, max_length=2)
    postal_code = forms.CharField(required=False, min_length=5, max_length=5, validators=[digits_only])

    def clean_province(self):
        return (self.cleaned_data.get("province") or "").upper()
