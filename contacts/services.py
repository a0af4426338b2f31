# contacts/services.py
from __future__ import annotations

from typing import Any, Mapping

from django.forms.models import model_to_dict

from core.exceptions import ValidationError
from core.models import AuditLog, DocumentType
from core.permissions import Principal, require
from core.services.audit import record_for
from core.services.numbering import next_document_number
from core.transactions import atomic_operation
from core.validation import get_schema, validate
from .models import Customer, Supplier


class _PartyService:
    """
    Create / update / archive for customers and suppliers.
    Subclasses set the model, the schema name, the code series and the
    permission.
    """

    model = None
    entity_type = ""
    document_type = ""
    permission = ""

    @classmethod
    @atomic_operation
    def create(cls, principal: Principal, payload: Mapping[str, Any]):
        require(principal, cls.permission)
        data = validate(cls.entity_type, payload).data

        party = cls.model(**data, created_by=principal.actor)
        party.code = next_document_number(cls.document_type)
        party.save()

        record_for(
            principal.actor,
            party,
            AuditLog.Action.CREATE,
            {"code": party.code, "company_name": party.company_name},
            message=f"Creato {party._meta.verbose_name} {party.code}",
        )
        return party

    @classmethod
    @atomic_operation
    def update(cls, principal: Principal, party, payload: Mapping[str, Any]):
        """
        Partial update: fields missing from the payload keep their value,
        the merged record is validated as a whole.
        """
        require(principal, cls.permission)
        party = cls.model.objects.select_for_update().get(pk=party.pk)
        if party.is_archived:
            raise ValidationError.single("__all__", "archived", f"{party.code} is archived.")

        fields = list(get_schema(cls.entity_type).base_fields)
        merged = {**model_to_dict(party, fields=fields), **dict(payload)}
        data = validate(cls.entity_type, merged).data

        changed = sorted(name for name, value in data.items() if getattr(party, name) != value)
        if not changed:
            return party

        for name in changed:
            setattr(party, name, data[name])
        party.save(update_fields=[*changed, "updated_at"])

        record_for(principal.actor, party, AuditLog.Action.UPDATE, {"changed": changed})
        return party

    @classmethod
    @atomic_operation
    def archive(cls, principal: Principal, party):
        require(principal, cls.permission)
        party = cls.model.objects.select_for_update().get(pk=party.pk)
        if party.is_archived:
            return party

        party.is_active = False
        party.save(update_fields=["is_active", "updated_at"])
        party.archive(user=principal.actor)

        record_for(principal.actor, party, AuditLog.Action.ARCHIVE, {"code": party.code})
        return party


class CustomerService(_PartyService):
    model = Customer
    entity_type = "customer"
    document_type = DocumentType.CUSTOMER
    permission = "contacts.manage_customer"

    @staticmethod
    @atomic_operation
    def grant_portal_access(principal: Principal, customer: Customer, user) -> Customer:
        """Link a login to the customer so it can use the portal."""
        require(principal, "contacts.manage_customer")
        customer = Customer.objects.select_for_update().get(pk=customer.pk)

        taken = Customer.objects.filter(portal_user=user).exclude(pk=customer.pk).exists()
        if taken:
            raise ValidationError.single("portal_user", "unique", "User already linked to another customer.")

        customer.portal_user = user
        customer.save(update_fields=["portal_user", "updated_at"])
        record_for(principal.actor, customer, "grant_portal_access", {"user_id": user.pk})
        return customer


class SupplierService(_PartyService):
    model = Supplier
    entity_type = "supplier"
    document_type = DocumentType.SUPPLIER
    permission = "contacts.manage_supplier"
