# contacts/api.py

from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST

from core.api import json_endpoint, json_response, paginate, read_json
from core.permissions import require
from .models import Customer, Supplier
from .services import CustomerService, SupplierService


# ============================================================
# Serializers
# ============================================================

def _party_payload(party) -> dict:
    return {
        "id": str(party.public_id),
        "code": party.code,
        "company_name": party.company_name,
        "vat_number": party.vat_number,
        "fiscal_code": party.fiscal_code,
        "email": party.email,
        "phone": party.phone,
        "address": party.address,
        "city": party.city,
        "province": party.province,
        "postal_code": party.postal_code,
        "payment_method": party.payment_method,
        "payment_terms_days": party.payment_terms_days,
        "notes": party.notes,
        "is_active": party.is_active,
        "is_archived": party.is_archived,
    }


def serialize_customer(customer: Customer) -> dict:
    data = _party_payload(customer)
    data.update({
        "customer_type": customer.customer_type,
        "pec_email": customer.pec_email,
        "sdi_code": customer.sdi_code,
        "delivery_zone": customer.delivery_zone,
        "preferred_delivery_time": customer.preferred_delivery_time,
        "delivery_instructions": customer.delivery_instructions,
        "credit_limit": customer.credit_limit,
        "has_portal_access": customer.portal_user_id is not None,
    })
    return data


def serialize_supplier(supplier: Supplier) -> dict:
    return _party_payload(supplier)


# ============================================================
# Views
# ============================================================

def _list_or_create(request, principal, model, service, serialize):
    if request.method == "POST":
        party = service.create(principal, read_json(request))
        return json_response(serialize(party), status=201)

    require(principal, "contacts.view")
    qs = model.objects.all() if request.GET.get("archived") else model.objects.alive()
    qs = qs.search(request.GET.get("q", "").strip())
    return json_response(paginate(request, qs, serialize))


def _detail(request, principal, model, service, serialize, public_id):
    require(principal, "contacts.view")
    party = get_object_or_404(model, public_id=public_id)
    if request.method == "PATCH":
        party = service.update(principal, party, read_json(request))
    return json_response(serialize(party))


@require_http_methods(["GET", "POST"])
@json_endpoint
def customer_list(request, principal):
    return _list_or_create(request, principal, Customer, CustomerService, serialize_customer)


@require_http_methods(["GET", "PATCH"])
@json_endpoint
def customer_detail(request, principal, public_id):
    return _detail(request, principal, Customer, CustomerService, serialize_customer, public_id)


@require_POST
@json_endpoint
def customer_archive(request, principal, public_id):
    customer = get_object_or_404(Customer, public_id=public_id)
    return json_response(serialize_customer(CustomerService.archive(principal, customer)))


@require_http_methods(["GET", "POST"])
@json_endpoint
def supplier_list(request, principal):
    return _list_or_create(request, principal, Supplier, SupplierService, serialize_supplier)


@require_http_methods(["GET", "PATCH"])
@json_endpoint
def supplier_detail(request, principal, public_id):
    return _detail(request, principal, Supplier, SupplierService, serialize_supplier, public_id)


@require_POST
@json_endpoint
def supplier_archive(request, principal, public_id):
    supplier = get_object_or_404(Supplier, public_id=public_id)
    return json_response(serialize_supplier(SupplierService.archive(principal, supplier)))
