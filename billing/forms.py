# billing/forms.py
from decimal import Decimal

from django import forms

from contacts.models import Customer, Supplier
from core.models import PaymentMethod
from core.validation import Schema, register_schema
from purchasing.models import SupplierInvoice
from sales.models import DeliveryNote, Order
from .models import Invoice, Payment


@register_schema("invoice")
class InvoiceSchema(Schema):
    """
    An invoice groups uninvoiced delivery notes of a single customer.
    """
    delivery_notes = forms.ModelMultipleChoiceField(
        queryset=DeliveryNote.objects.alive(),
        to_field_name="public_id",
    )
    issue_date = forms.DateField(required=False)
    due_date = forms.DateField(required=False)
    payment_method = forms.ChoiceField(choices=PaymentMethod.choices, required=False)
    notes = forms.CharField(required=False)

    def clean_delivery_notes(self):
        notes = list(self.cleaned_data["delivery_notes"])
        if any(note.invoice_id is not None for note in notes):
            raise forms.ValidationError(
                "Some delivery notes are already invoiced: %(numbers)s",
                code="already_invoiced",
                params={"numbers": ", ".join(n.number for n in notes if n.invoice_id is not None)},
            )
        cancelled = [n.number for n in notes if n.order_id is not None and n.order.status == Order.Status.CANCELLED]
        if cancelled:
            raise forms.ValidationError(
                "Delivery notes of cancelled orders cannot be invoiced: %(numbers)s",
                code="order_cancelled",
                params={"numbers": ", ".join(cancelled)},
            )
        if len({note.customer_id for note in notes}) > 1:
            raise forms.ValidationError(
                "Delivery notes belong to different customers.",
                code="customer_mismatch",
            )
        return notes

    def clean(self):
        cleaned = super().clean()
        issue_date, due_date = cleaned.get("issue_date"), cleaned.get("due_date")
        if issue_date and due_date and due_date < issue_date:
            self.add_error("due_date", forms.ValidationError("Due date precedes the invoice date.", code="invalid"))
        return cleaned


@register_schema("payment")
class PaymentSchema(Schema):
    """
    Incoming payments name a customer and/or an invoice; outgoing ones a
    supplier and/or a supplier invoice. A missing counterparty is taken
    from the invoice.
    """
    direction = forms.ChoiceField(choices=Payment.Direction.choices, required=False)
    customer = forms.ModelChoiceField(queryset=Customer.objects.alive(), to_field_name="public_id", required=False)
    invoice = forms.ModelChoiceField(queryset=Invoice.objects.alive(), to_field_name="public_id", required=False)
    supplier = forms.ModelChoiceField(queryset=Supplier.objects.alive(), to_field_name="public_id", required=False)
    supplier_invoice = forms.ModelChoiceField(
        queryset=SupplierInvoice.objects.alive(),
        to_field_name="public_id",
        required=False,
    )
    amount = forms.DecimalField(min_value=Decimal("0.01"), max_digits=12, decimal_places=2)
    payment_date = forms.DateField(required=False)
    method = forms.ChoiceField(choices=PaymentMethod.choices, required=False)
    reference = forms.CharField(required=False, max_length=100)
    notes = forms.CharField(required=False)
    allow_overpayment = forms.BooleanField(required=False)

    defaults = {
        "direction": Payment.Direction.INCOMING,
        "method": PaymentMethod.BONIFICO,
    }

    def clean(self):
        cleaned = super().clean()
        if self.errors:
            return cleaned

        if cleaned["direction"] == Payment.Direction.INCOMING:
            self._check_counterparty(cleaned, "customer", "invoice", wrong=("supplier", "supplier_invoice"))
        else:
            self._check_counterparty(cleaned, "supplier", "supplier_invoice", wrong=("customer", "invoice"))
        return cleaned

    def _check_counterparty(self, cleaned, party_field, document_field, *, wrong):
        for name in wrong:
            if cleaned.get(name) is not None:
                self.add_error(
                    name,
                    forms.ValidationError("Not allowed for this payment direction.", code="invalid"),
                )

        party = cleaned.get(party_field)
        document = cleaned.get(document_field)
        if party is None and document is None:
            self.add_error(
                party_field,
                forms.ValidationError("Name the counterparty or the invoice being paid.", code="required"),
            )
        elif document is not None:
            document_party = getattr(document, party_field)
            if party is None:
                cleaned[party_field] = document_party
            elif party.pk != document_party.pk:
                self.add_error(
                    document_field,
                    forms.ValidationError("The invoice belongs to another counterparty.", code=f"{party_field}_mismatch"),
                )


@register_schema("billing_settings")
class BillingSettingsSchema(Schema):
    company_name = forms.CharField(required=False, max_length=255)
    vat_number = forms.CharField(required=False, max_length=20)
    default_vat_rate = forms.DecimalField(min_value=0, max_value=100, max_digits=5, decimal_places=2)
    default_payment_terms_days = forms.IntegerField(min_value=0, max_value=365)
    auto_invoice_on_delivery = forms.BooleanField(required=False)
