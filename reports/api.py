# reports/api.py

from django.http import HttpResponse
from django.views.decorators.http import require_GET

from billing.api import XLSX_CONTENT_TYPE
from core.api import date_param, json_endpoint, json_response
from core.exceptions import ValidationError
from .services import dashboard_kpis, export_margin_report, margin_report, sales_chart, top_customers, top_products


def _int_param(request, name: str, default: int, *, maximum: int) -> int:
    raw = request.GET.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if not 1 <= value <= maximum:
        raise ValidationError.single(name, "invalid", f"Enter a whole number between 1 and {maximum}.")
    return value


@require_GET
@json_endpoint
def dashboard(request, principal):
    return json_response(dashboard_kpis(principal))


@require_GET
@json_endpoint
def margins(request, principal):
    report = margin_report(
        principal,
        date_from=date_param(request, "date_from"),
        date_to=date_param(request, "date_to"),
    )
    products = [
        {**row, "product": {"id": str(row["product"].public_id), "name": row["product"].name}}
        for row in report["products"]
    ]
    return json_response({"products": products, "summary": report["summary"]})


@require_GET
@json_endpoint
def margins_export(request, principal):
    workbook = export_margin_report(
        principal,
        date_from=date_param(request, "date_from"),
        date_to=date_param(request, "date_to"),
    )
    response = HttpResponse(content_type=XLSX_CONTENT_TYPE)
    response["Content-Disposition"] = 'attachment; filename="margini.xlsx"'
    workbook.save(response)
    return response


@require_GET
@json_endpoint
def sales(request, principal):
    days = _int_param(request, "days", 30, maximum=366)
    return json_response({"days": days, "results": sales_chart(principal, days=days)})


@require_GET
@json_endpoint
def products(request, principal):
    limit = _int_param(request, "limit", 10, maximum=100)
    return json_response({"results": top_products(principal, limit=limit, since=date_param(request, "since"))})


@require_GET
@json_endpoint
def customers(request, principal):
    limit = _int_param(request, "limit", 10, maximum=100)
    return json_response({"results": top_customers(principal, limit=limit, since=date_param(request, "since"))})
