# reports/services.py
"""
Read-only figures for the dashboard and the report pages. Nothing here
writes: overdue invoices are counted by due date, not marked.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from django.db.models import Count, F, Sum
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Font

from billing.models import Invoice, InvoiceLine
from catalog.models import Product
from core.money import DECIMAL_ZERO, QTY_ZERO, money
from core.permissions import Principal, require
from purchasing.models import PurchaseOrder, PurchaseOrderLine, SupplierInvoice
from sales.models import Order, OrderLine

HUNDRED = Decimal("100")

MARGIN_HEADERS = [
    "prodotto",
    "categoria",
    "unità",
    "venduto",
    "prezzo medio vendita",
    "costo medio",
    "ricavi",
    "costi",
    "utile",
    "margine %",
]


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if not whole:
        return DECIMAL_ZERO
    return money(part / whole * HUNDRED)


def _month_start(day: date) -> date:
    return day.replace(day=1)


# ============================================================
# Margins
# ============================================================

def margin_report(
    principal: Principal,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict:
    """
    Profit per product: invoiced revenue against the average cost of what
    was received from suppliers (the product's cost price when nothing
    was bought yet). Dates filter the invoices by issue date.
    """
    require(principal, "reports.view")

    sold_lines = InvoiceLine.objects.filter(product__isnull=False, invoice__is_archived=False)
    invoices = Invoice.objects.alive()
    if date_from:
        sold_lines = sold_lines.filter(invoice__issue_date__gte=date_from)
        invoices = invoices.filter(issue_date__gte=date_from)
    if date_to:
        sold_lines = sold_lines.filter(invoice__issue_date__lte=date_to)
        invoices = invoices.filter(issue_date__lte=date_to)

    sales = {
        row["product"]: row
        for row in sold_lines.values("product").annotate(quantity=Sum("quantity"), revenue=Sum("line_total"))
    }
    purchases = {
        row["product"]: row
        for row in (
            PurchaseOrderLine.objects
            .filter(product__isnull=False, purchase_order__status=PurchaseOrder.Status.RECEIVED)
            .values("product")
            .annotate(quantity=Sum("quantity"), spent=Sum("line_total"))
        )
    }

    rows = []
    for product in Product.objects.filter(pk__in=set(sales) | set(purchases)).order_by("name"):
        sold = sales.get(product.pk, {})
        bought = purchases.get(product.pk)
        quantity = sold.get("quantity") or QTY_ZERO
        revenue = money(sold.get("revenue") or DECIMAL_ZERO)

        if bought and bought["quantity"]:
            average_cost = money(bought["spent"] / bought["quantity"])
        else:
            average_cost = product.cost_price or DECIMAL_ZERO
        average_price = money(revenue / quantity) if quantity else product.default_price
        cost = money(quantity * average_cost)
        profit = revenue - cost

        rows.append({
            "product": product,
            "category": product.get_category_display(),
            "unit": product.unit,
            "quantity": quantity,
            "average_price": average_price,
            "average_cost": average_cost,
            "revenue": revenue,
            "cost": cost,
            "profit": profit,
            "margin": _percent(profit, revenue),
        })
    rows.sort(key=lambda row: row["revenue"], reverse=True)

    supplier_invoices = SupplierInvoice.objects.alive()
    if date_from:
        supplier_invoices = supplier_invoices.filter(issue_date__gte=date_from)
    if date_to:
        supplier_invoices = supplier_invoices.filter(issue_date__lte=date_to)
    total_sales = invoices.aggregate(s=Sum("total"))["s"] or DECIMAL_ZERO
    total_purchases = supplier_invoices.aggregate(s=Sum("total"))["s"] or DECIMAL_ZERO
    overall_profit = total_sales - total_purchases

    return {
        "products": rows,
        "summary": {
            "total_sales": total_sales,
            "total_purchases": total_purchases,
            "overall_profit": overall_profit,
            "overall_margin": _percent(overall_profit, total_sales),
            "product_count": len(rows),
        },
    }


def export_margin_report(
    principal: Principal,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Workbook:
    """Margin report as an Excel workbook, with a total row."""
    report = margin_report(principal, date_from=date_from, date_to=date_to)

    wb = Workbook()
    ws = wb.active
    ws.title = "Margini"

    ws.append(MARGIN_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for row in report["products"]:
        ws.append([
            row["product"].name,
            row["category"],
            row["unit"],
            float(row["quantity"]),
            float(row["average_price"]),
            float(row["average_cost"]),
            float(row["revenue"]),
            float(row["cost"]),
            float(row["profit"]),
            float(row["margin"]),
        ])

    products = report["products"]
    revenue = sum((row["revenue"] for row in products), DECIMAL_ZERO)
    profit = sum((row["profit"] for row in products), DECIMAL_ZERO)
    ws.append([
        "Totale", "", "", None, None, None,
        float(revenue),
        float(sum((row["cost"] for row in products), DECIMAL_ZERO)),
        float(profit),
        float(_percent(profit, revenue)),
    ])
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)
    return wb


# ============================================================
# Dashboard
# ============================================================

def dashboard_kpis(principal: Principal, *, today: Optional[date] = None) -> dict:
    require(principal, "reports.view")
    today = today or timezone.localdate()
    month_start = _month_start(today)
    previous_start = _month_start(month_start - timedelta(days=1))

    orders = Order.objects.alive()
    invoices = Invoice.objects.alive()
    unpaid = Invoice.objects.unpaid()

    def revenue(qs) -> Decimal:
        return qs.aggregate(s=Sum("total"))["s"] or DECIMAL_ZERO

    def balance(qs) -> Decimal:
        return qs.aggregate(s=Sum(F("total") - F("paid_amount")))["s"] or DECIMAL_ZERO

    return {
        "orders_today": orders.filter(order_date=today).exclude(status=Order.Status.CANCELLED).count(),
        "revenue_month": revenue(invoices.filter(issue_date__gte=month_start, issue_date__lte=today)),
        "revenue_previous_month": revenue(invoices.filter(issue_date__gte=previous_start, issue_date__lt=month_start)),
        "receivables": balance(unpaid),
        "payables": balance(SupplierInvoice.objects.unpaid()),
        "pending_orders": orders.filter(status__in=(Order.Status.DRAFT, Order.Status.CONFIRMED)).count(),
        "awaiting_delivery_note": (
            orders.filter(status=Order.Status.CONFIRMED, delivery_notes__isnull=True).distinct().count()
        ),
        "overdue_invoices": Invoice.objects.overdue(on_date=today).count(),
    }


def sales_chart(principal: Principal, *, days: int = 30, today: Optional[date] = None) -> list[dict]:
    """Invoiced revenue and new orders per day, from days ago to today."""
    require(principal, "reports.view")
    today = today or timezone.localdate()
    start = today - timedelta(days=days)

    revenue = defaultdict(lambda: DECIMAL_ZERO)
    for row in (
        Invoice.objects.alive()
        .filter(issue_date__gte=start, issue_date__lte=today)
        .values("issue_date")
        .annotate(s=Sum("total"))
    ):
        revenue[row["issue_date"]] = row["s"]

    orders = {
        row["order_date"]: row["n"]
        for row in (
            Order.objects.alive()
            .filter(order_date__gte=start, order_date__lte=today)
            .exclude(status=Order.Status.CANCELLED)
            .values("order_date")
            .annotate(n=Count("id"))
        )
    }

    return [
        {"date": day, "revenue": money(revenue[day]), "orders": orders.get(day, 0)}
        for day in (start + timedelta(days=offset) for offset in range(days + 1))
    ]


def top_products(principal: Principal, *, limit: int = 10, since: Optional[date] = None) -> list[dict]:
    """Best-selling products of the orders since the start of the month."""
    require(principal, "reports.view")
    since = since or _month_start(timezone.localdate())

    rows = (
        OrderLine.objects
        .filter(order__order_date__gte=since, order__is_archived=False)
        .exclude(order__status=Order.Status.CANCELLED)
        .values("product", "product__public_id", "product__name", "product__unit")
        .annotate(quantity=Sum("quantity"), revenue=Sum("line_total"))
        .order_by("-revenue")[:limit]
    )
    # Free-text lines are grouped together.
    return [
        {
            "product": str(row["product__public_id"]) if row["product"] else None,
            "name": row["product__name"] or "Prodotti personalizzati",
            "unit": row["product__unit"] or "",
            "quantity": row["quantity"],
            "revenue": row["revenue"],
        }
        for row in rows
    ]


def top_customers(principal: Principal, *, limit: int = 10, since: Optional[date] = None) -> list[dict]:
    require(principal, "reports.view")
    since = since or _month_start(timezone.localdate())

    rows = (
        Order.objects.alive()
        .filter(order_date__gte=since)
        .exclude(status=Order.Status.CANCELLED)
        .values("customer__public_id", "customer__company_name")
        .annotate(orders=Count("id"), revenue=Sum("total"))
        .order_by("-revenue")[:limit]
    )
    return [
        {
            "customer": str(row["customer__public_id"]),
            "company_name": row["customer__company_name"],
            "orders": row["orders"],
            "revenue": row["revenue"],
        }
        for row in rows
    ]
