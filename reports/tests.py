from datetime import timedelta
from decimal import Decimal
from io import BytesIO

from django.urls import reverse
from django.utils import timezone
from openpyxl import load_workbook

from billing.models import Invoice
from billing.services import InvoiceService, PaymentService
from core.exceptions import Unauthorized
from core.permissions import Principal, Role
from core.testing import FruttaGestTestCase
from purchasing.services import PurchaseService
from reports.services import (
    dashboard_kpis,
    export_margin_report,
    margin_report,
    sales_chart,
    top_customers,
    top_products,
)
from sales.services import OrderService


class BaseReportTestCase(FruttaGestTestCase):
    def setUp(self):
        super().setUp()
        self.today = timezone.localdate()

    def sell_apples(self, quantity="10"):
        note = OrderService.create_delivery_note(self.operator, {
            "customer": str(self.customer.public_id),
            "items": [{"product": str(self.apples.public_id), "quantity": quantity}],
        })
        return InvoiceService.issue_invoice(self.operator, {"delivery_notes": [str(note.public_id)]})

    def buy_apples(self, quantity="50", price="1.10"):
        purchase_order = PurchaseService.create_purchase_order(self.operator, {
            "supplier": str(self.supplier.public_id),
            "items": [{"product": str(self.apples.public_id), "quantity": quantity, "unit_price": price}],
        })
        purchase_order = PurchaseService.send_purchase_order(self.operator, purchase_order)
        return PurchaseService.receive_purchase_order(self.operator, purchase_order)


class MarginReportTests(BaseReportTestCase):
    def test_margin_uses_received_purchase_cost(self):
        self.sell_apples()
        self.buy_apples()

        report = margin_report(self.viewer)

        (row,) = report["products"]
        self.assertEqual(row["product"], self.apples)
        self.assertEqual(row["quantity"], Decimal("10"))
        self.assertEqual(row["average_price"], Decimal("2.00"))
        self.assertEqual(row["average_cost"], Decimal("1.10"))
        self.assertEqual(row["revenue"], Decimal("20.00"))
        self.assertEqual(row["cost"], Decimal("11.00"))
        self.assertEqual(row["profit"], Decimal("9.00"))
        self.assertEqual(row["margin"], Decimal("45.00"))
        self.assertEqual(report["summary"]["total_sales"], Decimal("20.80"))
        self.assertEqual(report["summary"]["total_purchases"], Decimal("57.20"))
        self.assertEqual(report["summary"]["overall_profit"], Decimal("-36.40"))
        self.assertEqual(report["summary"]["product_count"], 1)

    def test_cost_price_when_nothing_was_received(self):
        self.sell_apples()
        # Not received yet: does not count.
        PurchaseService.create_purchase_order(self.operator, {
            "supplier": str(self.supplier.public_id),
            "items": [{"product": str(self.apples.public_id), "quantity": "50", "unit_price": "0.80"}],
        })

        (row,) = margin_report(self.viewer)["products"]

        self.assertEqual(row["average_cost"], Decimal("1.20"))
        self.assertEqual(row["margin"], Decimal("40.00"))

    def test_dates_filter_invoices(self):
        self.sell_apples()

        report = margin_report(self.viewer, date_from=self.today + timedelta(days=1))

        self.assertEqual(report["products"], [])
        self.assertEqual(report["summary"]["total_sales"], Decimal("0"))
        self.assertEqual(report["summary"]["overall_margin"], Decimal("0"))

    def test_export_has_a_total_row(self):
        self.sell_apples()
        self.buy_apples()
        buffer = BytesIO()
        export_margin_report(self.viewer).save(buffer)
        buffer.seek(0)

        ws = load_workbook(buffer).active

        self.assertEqual(ws.title, "Margini")
        self.assertEqual(ws.cell(row=1, column=1).value, "prodotto")
        self.assertEqual(ws.cell(row=2, column=1).value, "Mele Golden")
        self.assertEqual(ws.cell(row=3, column=1).value, "Totale")
        self.assertAlmostEqual(ws.cell(row=3, column=9).value, 9.0)

    def test_customers_cannot_read_margins(self):
        customer = Principal(user=self.viewer_user, role=Role.CUSTOMER, customer_id=self.customer.pk)

        with self.assertRaises(Unauthorized):
            margin_report(customer)


class DashboardTests(BaseReportTestCase):
    def setUp(self):
        super().setUp()
        self.waiting = self.confirmed_order()
        self.draft = self.create_order()
        delivered = self.confirmed_order(customer=self.other_customer)
        note = OrderService.record_delivery(self.operator, delivered)
        self.invoice = InvoiceService.issue_invoice(self.operator, {"delivery_notes": [str(note.public_id)]})
        PaymentService.record_payment(self.operator, {"invoice": str(self.invoice.public_id), "amount": "7.04"})
        OrderService.cancel_order(self.operator, self.create_order())

    def test_kpis(self):
        kpis = dashboard_kpis(self.viewer, today=self.today)

        self.assertEqual(kpis["orders_today"], 3)
        self.assertEqual(kpis["revenue_month"], Decimal("27.04"))
        self.assertEqual(kpis["revenue_previous_month"], Decimal("0"))
        self.assertEqual(kpis["receivables"], Decimal("20.00"))
        self.assertEqual(kpis["payables"], Decimal("0"))
        self.assertEqual(kpis["pending_orders"], 2)
        self.assertEqual(kpis["awaiting_delivery_note"], 1)
        self.assertEqual(kpis["overdue_invoices"], 0)

    def test_overdue_invoices_are_counted_not_marked(self):
        kpis = dashboard_kpis(self.viewer, today=self.invoice.due_date + timedelta(days=1))

        self.assertEqual(kpis["overdue_invoices"], 1)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PARTIALLY_PAID)

    def test_sales_chart_has_every_day(self):
        chart = sales_chart(self.viewer, days=6, today=self.today)

        self.assertEqual(len(chart), 7)
        self.assertEqual(chart[0]["date"], self.today - timedelta(days=6))
        self.assertEqual(chart[0]["revenue"], Decimal("0.00"))
        self.assertEqual(chart[-1], {"date": self.today, "revenue": Decimal("27.04"), "orders": 3})

    def test_top_products_and_customers(self):
        self.confirmed_order(items=[{"product_name": "Cesto regalo", "quantity": "1", "unit_price": "80.00"}])

        products = top_products(self.viewer)
        self.assertEqual(
            [(row["name"], row["revenue"]) for row in products],
            [("Prodotti personalizzati", Decimal("80.00")), ("Mele Golden", Decimal("60.00")), ("Insalata Gentile", Decimal("18.00"))],
        )
        self.assertEqual(products[1]["quantity"], Decimal("30"))

        customers = top_customers(self.viewer, limit=1)
        self.assertEqual(len(customers), 1)
        self.assertEqual(customers[0]["company_name"], "Trattoria Da Mario")
        self.assertEqual(customers[0]["orders"], 3)
        self.assertEqual(customers[0]["revenue"], Decimal("137.28"))


class ReportsApiTests(BaseReportTestCase):
    def test_dashboard_and_charts(self):
        self.sell_apples()
        self.client.force_login(self.viewer_user)

        response = self.client.get(reverse("reports:dashboard"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.json()["revenue_month"]), Decimal("20.80"))

        response = self.client.get(reverse("reports:sales"), {"days": "7"})
        self.assertEqual(len(response.json()["results"]), 8)

        response = self.client.get(reverse("reports:sales"), {"days": "0"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["violations"][0]["field"], "days")

        response = self.client.get(reverse("reports:top_products"), {"limit": "abc"})
        self.assertEqual(response.status_code, 400)

    def test_margins_endpoints(self):
        self.sell_apples()
        self.client.force_login(self.viewer_user)

        response = self.client.get(reverse("reports:margins"))
        self.assertEqual(response.json()["products"][0]["product"]["name"], "Mele Golden")

        response = self.client.get(reverse("reports:margins_export"), {"date_from": "2030-01-01"})
        self.assertEqual(response.status_code, 200)
        self.assertIn("margini.xlsx", response["Content-Disposition"])

    def test_anonymous_is_refused(self):
        response = self.client.get(reverse("reports:dashboard"))
        self.assertEqual(response.status_code, 401)
