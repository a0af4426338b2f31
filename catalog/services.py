# catalog/services.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping

from django.forms.models import model_to_dict
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font

from contacts.models import Customer
from core.exceptions import ValidationError
from core.models import AuditLog
from core.permissions import Principal, require
from core.services.audit import record, record_for
from core.transactions import atomic_operation
from core.validation import get_schema, validate
from .models import CustomerPrice, Product

logger = logging.getLogger(__name__)

# Spreadsheet header → product field. Italian and English headers are accepted.
PRICE_LIST_COLUMNS = {
    "sku": "sku",
    "codice": "sku",
    "name": "name",
    "nome": "name",
    "category": "category",
    "categoria": "category",
    "unit": "unit",
    "unita": "unit",
    "unità": "unit",
    "price": "default_price",
    "prezzo": "default_price",
    "cost": "cost_price",
    "costo": "cost_price",
    "vat": "vat_rate",
    "iva": "vat_rate",
    "origin": "origin",
    "provenienza": "origin",
}

EXPORT_HEADERS = ["sku", "nome", "categoria", "unita", "prezzo", "costo", "iva", "provenienza"]


class ProductService:

    @staticmethod
    @atomic_operation
    def create_product(principal: Principal, payload: Mapping[str, Any]) -> Product:
        require(principal, "catalog.manage_product")
        data = validate("product", payload).data

        product = Product.objects.create(**data, created_by=principal.actor)
        record_for(principal.actor, product, AuditLog.Action.CREATE, {"name": product.name, "sku": product.sku})
        return product

    @staticmethod
    @atomic_operation
    def update_product(principal: Principal, product: Product, payload: Mapping[str, Any]) -> Product:
        require(principal, "catalog.manage_product")
        product = Product.objects.select_for_update().get(pk=product.pk)

        data = validate("product", {**_product_payload(product), **dict(payload)}).data

        changed = sorted(name for name, value in data.items() if getattr(product, name) != value)
        if changed:
            for name in changed:
                setattr(product, name, data[name])
            product.save(update_fields=[*changed, "updated_at"])
            record_for(principal.actor, product, AuditLog.Action.UPDATE, {"changed": changed})
        return product

    @staticmethod
    @atomic_operation
    def archive_product(principal: Principal, product: Product) -> Product:
        require(principal, "catalog.manage_product")
        product = Product.objects.select_for_update().get(pk=product.pk)
        if not product.is_archived:
            product.is_available = False
            product.save(update_fields=["is_available", "updated_at"])
            product.archive(user=principal.actor)
            record_for(principal.actor, product, AuditLog.Action.ARCHIVE, {"name": product.name})
        return product

    @staticmethod
    @atomic_operation
    def set_customer_price(
        principal: Principal,
        customer: Customer,
        product: Product,
        price,
    ) -> CustomerPrice:
        require(principal, "catalog.manage_product")
        data = validate("customer_price", {"price": price}).data

        entry, created = CustomerPrice.objects.update_or_create(
            customer=customer,
            product=product,
            defaults={"price": data["price"]},
        )
        record_for(
            principal.actor,
            product,
            "set_customer_price",
            {"customer": customer.code, "price": entry.price, "created": created},
        )
        return entry


def _product_payload(product: Product) -> dict:
    """Stored product as a schema payload; the supplier is referenced by public id."""
    payload = model_to_dict(product, fields=list(get_schema("product").base_fields))
    if product.preferred_supplier_id:
        payload["preferred_supplier"] = str(product.preferred_supplier.public_id)
    return payload


def _cell_value(value):
    if value is None:
        return None
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        return value.strip()
    return value


@atomic_operation
def import_price_list(principal: Principal, file_obj) -> dict:
    """
    Import or update products from an Excel (.xlsx) price list.

    Required columns: name (nome), unit (unita), price (prezzo).
    Optional: sku (codice), category, cost, vat, origin.

    Rows with a known SKU update that product; other rows create a new one.
    Each row goes through the product schema; invalid rows are reported and
    skipped, valid rows are saved.

    Returns:
        dict: {"created": int, "updated": int, "errors": list[str]}
    """
    require(principal, "catalog.import_products")

    wb = load_workbook(file_obj, data_only=True, read_only=True)
    ws = wb.active

    rows = ws.iter_rows(values_only=True)
    header = next(rows, None) or ()
    header_map: dict[str, int] = {}
    for index, raw in enumerate(header):
        name = str(raw or "").strip().lower()
        if name in PRICE_LIST_COLUMNS:
            header_map[PRICE_LIST_COLUMNS[name]] = index

    missing = [col for col in ("name", "unit", "default_price") if col not in header_map]
    if missing:
        raise ValidationError.single(
            "file",
            "missing_columns",
            f"Missing required columns in Excel: {', '.join(missing)}",
        )

    created = updated = 0
    errors: list[str] = []
    for row_idx, values in enumerate(rows, start=2):
        raw = {
            field: _cell_value(values[index] if index < len(values) else None)
            for field, index in header_map.items()
        }
        if not raw.get("name"):
            continue
        if isinstance(raw.get("unit"), str):
            raw["unit"] = raw["unit"].lower()
        if isinstance(raw.get("category"), str):
            raw["category"] = raw["category"].lower().replace(" ", "_")

        existing = Product.objects.filter(sku=raw["sku"]).first() if raw.get("sku") else None
        payload = {**_product_payload(existing), **raw} if existing else raw

        try:
            data = validate("product", payload).data
        except ValidationError as exc:
            details = "; ".join(f"{v.field}: {v.message}" for v in exc.violations)
            errors.append(f"Row {row_idx}: {details}")
            continue

        if existing:
            for name, value in data.items():
                setattr(existing, name, value)
            existing.save()
            updated += 1
        else:
            Product.objects.create(**data, created_by=principal.actor)
            created += 1

    wb.close()

    summary = {"created": created, "updated": updated, "errors": errors}
    record(
        principal.actor,
        "catalog.product",
        "price_list",
        AuditLog.Action.IMPORT,
        {"created": created, "updated": updated, "errors": len(errors)},
    )
    logger.info("Price list import: %d created, %d updated, %d rejected", created, updated, len(errors))
    return summary


def export_price_list(customer: Customer | None = None) -> Workbook:
    """
    Workbook with the available products, priced for the customer when given.
    The layout is the one import_price_list reads back.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Listino"

    ws.append(EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for product in Product.objects.available().order_by("category", "name"):
        ws.append([
            product.sku or "",
            product.name,
            product.category,
            product.unit,
            float(product.price_for(customer)),
            None if customer is not None or product.cost_price is None else float(product.cost_price),
            float(product.vat_rate),
            product.origin,
        ])
    return wb
