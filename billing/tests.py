import random
from datetime import date, timedelta
from decimal import Decimal
from io import BytesIO

from django.core import mail
from django.urls import reverse
from django.utils import timezone
from openpyxl import load_workbook

from billing.models import BillingSettings, Invoice, Payment
from billing.services import (
    InvoiceService,
    PaymentService,
    export_receivables,
    receivables_schedule,
    update_billing_settings,
)
from core.exceptions import IllegalTransition, Unauthorized, ValidationError
from core.models import AuditLog, Notification
from core.testing import FruttaGestTestCase
from sales.models import Order
from sales.services import OrderService


class BaseBillingTestCase(FruttaGestTestCase):
    def setUp(self):
        super().setUp()
        self.year = timezone.localdate().year

    def delivered_order(self):
        order = self.confirmed_order()
        note = OrderService.record_delivery(self.operator, order)
        order.refresh_from_db()
        return order, note

    def standalone_note(self, customer, quantity="5"):
        return OrderService.create_delivery_note(self.operator, {
            "customer": str(customer.public_id),
            "items": [{"product": str(self.apples.public_id), "quantity": quantity}],
        })

    def issue(self, *notes, principal=None, **extra):
        payload = {"delivery_notes": [str(note.public_id) for note in notes], **extra}
        return InvoiceService.issue_invoice(principal or self.operator, payload)

    def pay(self, invoice, amount, principal=None, **extra):
        payload = {"invoice": str(invoice.public_id), "amount": amount, **extra}
        return PaymentService.record_payment(principal or self.operator, payload)


class InvoiceIssueTests(BaseBillingTestCase):
    def test_issue_invoice_from_delivery_note(self):
        order, note = self.delivered_order()

        invoice = self.issue(note, issue_date="2030-01-10")

        self.assertEqual(invoice.number, "FT-2030-0001")
        self.assertEqual(invoice.customer, self.customer)
        self.assertEqual(invoice.status, Invoice.Status.ISSUED)
        self.assertEqual(invoice.due_date, date(2030, 2, 9))
        self.assertEqual(invoice.total, Decimal("27.04"))
        self.assertEqual(
            set(invoice.lines.values_list("delivery_note_number", flat=True)),
            {note.number},
        )

        note.refresh_from_db()
        order.refresh_from_db()
        self.assertEqual(note.invoice, invoice)
        self.assertEqual(order.status, Order.Status.INVOICED)
        self.assertTrue(AuditLog.objects.filter(entity_type="billing.invoice", action="create").exists())

    def test_invoice_groups_several_notes(self):
        first = self.standalone_note(self.customer, "5")
        second = self.standalone_note(self.customer, "2.5")

        invoice = self.issue(first, second)

        self.assertEqual(invoice.lines.count(), 2)
        self.assertEqual(invoice.subtotal, Decimal("15.00"))
        self.assertEqual(invoice.vat_amount, Decimal("0.60"))
        self.assertEqual(invoice.total, Decimal("15.60"))

    def test_order_is_invoiced_only_when_every_note_is(self):
        order = self.confirmed_order()
        apples = order.lines.get(product=self.apples)
        first = OrderService.record_delivery(
            self.operator,
            order,
            {"items": [{"order_line": apples.pk, "quantity": "4"}]},
        )

        self.issue(first)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PARTIALLY_DELIVERED)

        second = OrderService.record_delivery(self.operator, order)
        self.issue(second)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.INVOICED)

    def test_delivery_note_is_invoiced_once(self):
        _order, note = self.delivered_order()
        self.issue(note)

        with self.assertRaises(ValidationError) as ctx:
            self.issue(note)

        self.assertEqual(
            {(v.field, v.rule) for v in ctx.exception.violations},
            {("delivery_notes", "already_invoiced")},
        )
        self.assertEqual(Invoice.objects.count(), 1)

    def test_notes_of_cancelled_orders_are_refused(self):
        order, note = self.delivered_order()
        OrderService.cancel_order(self.operator, order)

        with self.assertRaises(ValidationError) as ctx:
            self.issue(note)

        self.assertEqual(
            {(v.field, v.rule) for v in ctx.exception.violations},
            {("delivery_notes", "order_cancelled")},
        )
        self.assertFalse(Invoice.objects.exists())

    def test_notes_of_different_customers(self):
        with self.assertRaises(ValidationError) as ctx:
            self.issue(self.standalone_note(self.customer), self.standalone_note(self.other_customer))
        self.assertEqual(ctx.exception.violations[0].rule, "customer_mismatch")

    def test_due_date_falls_back_to_settings(self):
        settings_obj = BillingSettings.get_solo()
        settings_obj.default_payment_terms_days = 45
        settings_obj.save()
        self.customer.payment_terms_days = 0
        self.customer.save()

        invoice = self.issue(self.standalone_note(self.customer), issue_date="2030-01-01")

        self.assertEqual(invoice.due_date, date(2030, 1, 1) + timedelta(days=45))

    def test_viewer_cannot_invoice(self):
        with self.assertRaises(Unauthorized):
            self.issue(self.standalone_note(self.customer), principal=self.viewer)


class InvoiceSendTests(BaseBillingTestCase):
    def test_send_emails_customer(self):
        invoice = self.issue(self.standalone_note(self.customer))

        with self.captureOnCommitCallbacks(execute=True):
            invoice = InvoiceService.send_invoice(self.operator, invoice)

        self.assertEqual(invoice.status, Invoice.Status.SENT)
        self.assertIsNotNone(invoice.sent_at)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, f"Fattura {invoice.number}")
        self.assertIn("Totale: 10.40 EUR", mail.outbox[0].body)

    def test_invoice_is_sent_once(self):
        invoice = InvoiceService.send_invoice(self.operator, self.issue(self.standalone_note(self.customer)))

        with self.assertRaises(IllegalTransition) as ctx:
            InvoiceService.send_invoice(self.operator, invoice)
        self.assertEqual(ctx.exception.reason, "not allowed from sent")


class PaymentTests(BaseBillingTestCase):
    def test_partial_then_full_payment_settles_order(self):
        order, note = self.delivered_order()
        invoice = self.issue(note)

        self.pay(invoice, "20.00")
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.Status.PARTIALLY_PAID)
        self.assertEqual(invoice.paid_amount, Decimal("20.00"))
        self.assertEqual(invoice.balance, Decimal("7.04"))

        payment = self.pay(invoice, "7.04", method="contanti")
        invoice.refresh_from_db()
        order.refresh_from_db()
        self.assertEqual(payment.customer, self.customer)
        self.assertFalse(payment.overpayment_allowed)
        self.assertEqual(invoice.status, Invoice.Status.PAID)
        self.assertEqual(order.status, Order.Status.PAID)
        self.assertEqual(
            list(AuditLog.objects.filter(entity_type="billing.invoice").values_list("action", flat=True)),
            ["create", "register_partial_payment", "register_payment"],
        )

    def test_payments_never_exceed_total_without_authorization(self):
        invoice = self.issue(self.standalone_note(self.customer))

        for amount in ("4.00", "4.00", "4.00", "2.40", "0.01"):
            try:
                self.pay(invoice, amount)
            except ValidationError as exc:
                self.assertEqual(exc.violations[0].rule, "max_value")

        payments = Payment.objects.filter(invoice=invoice)
        self.assertEqual(sum(p.amount for p in payments), Decimal("10.40"))
        self.assertFalse(payments.filter(overpayment_allowed=True).exists())
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.Status.PAID)

    def test_random_payment_sequences_respect_the_balance(self):
        for seed in range(5):
            rng = random.Random(seed)
            invoice = self.issue(self.standalone_note(self.customer, str(rng.randint(1, 20))))

            for _ in range(6):
                amount = Decimal(rng.randint(1, 1500)) / 100
                if rng.random() < 0.2:
                    self.pay(invoice, str(amount), principal=self.admin, allow_overpayment=True)
                    continue
                try:
                    self.pay(invoice, str(amount))
                except ValidationError as exc:
                    self.assertEqual(exc.violations[0].rule, "max_value")

            invoice.refresh_from_db()
            payments = Payment.objects.filter(invoice=invoice)
            paid = sum((p.amount for p in payments), Decimal("0.00"))
            self.assertEqual(invoice.paid_amount, paid)
            if not payments.filter(overpayment_allowed=True).exists():
                self.assertLessEqual(paid, invoice.total, f"seed {seed}")

    def test_overpayment_is_refused(self):
        invoice = self.issue(self.standalone_note(self.customer))

        with self.assertRaises(ValidationError) as ctx:
            self.pay(invoice, "12.00")
        self.assertEqual({(v.field, v.rule) for v in ctx.exception.violations}, {("amount", "max_value")})

        with self.assertRaises(Unauthorized):
            self.pay(invoice, "12.00", allow_overpayment=True)

        self.assertFalse(Payment.objects.exists())

    def test_authorized_overpayment(self):
        invoice = self.issue(self.standalone_note(self.customer))

        with self.captureOnCommitCallbacks(execute=True):
            payment = self.pay(invoice, "12.00", principal=self.admin, allow_overpayment=True)

        invoice.refresh_from_db()
        self.assertTrue(payment.overpayment_allowed)
        self.assertEqual(invoice.status, Invoice.Status.PAID)
        self.assertEqual(invoice.balance, Decimal("-1.60"))
        warnings = Notification.objects.filter(level=Notification.Levels.WARNING)
        self.assertEqual(warnings.count(), 2)
        self.assertIn(invoice.number, warnings.first().verb)

    def test_authorization_flag_is_kept_only_when_needed(self):
        invoice = self.issue(self.standalone_note(self.customer))

        payment = self.pay(invoice, "5.00", principal=self.admin, allow_overpayment=True)

        self.assertFalse(payment.overpayment_allowed)

    def test_counterparty_rules(self):
        invoice = self.issue(self.standalone_note(self.customer))

        with self.assertRaises(ValidationError) as ctx:
            PaymentService.record_payment(self.operator, {"amount": "5.00"})
        self.assertEqual({(v.field, v.rule) for v in ctx.exception.violations}, {("customer", "required")})

        with self.assertRaises(ValidationError) as ctx:
            self.pay(invoice, "5.00", customer=str(self.other_customer.public_id))
        self.assertEqual({(v.field, v.rule) for v in ctx.exception.violations}, {("invoice", "customer_mismatch")})

        with self.assertRaises(ValidationError) as ctx:
            self.pay(invoice, "5.00", supplier=str(self.supplier.public_id))
        self.assertEqual({(v.field, v.rule) for v in ctx.exception.violations}, {("supplier", "invalid")})

    def test_payment_on_account(self):
        payment = PaymentService.record_payment(
            self.operator,
            {"customer": str(self.customer.public_id), "amount": "50.00", "reference": "acconto"},
        )

        self.assertIsNone(payment.invoice)
        self.assertEqual(payment.direction, Payment.Direction.INCOMING)
        self.assertEqual(payment.method, "bonifico")
        self.assertTrue(AuditLog.objects.filter(entity_type="billing.payment", action="create").exists())


class ReceivablesTests(BaseBillingTestCase):
    def setUp(self):
        super().setUp()
        self.overdue = self.issue(self.standalone_note(self.customer), issue_date="2030-01-01")
        self.current = self.issue(self.standalone_note(self.other_customer), issue_date="2030-03-01")
        self.settled = self.issue(self.standalone_note(self.customer), issue_date="2030-01-05")
        self.pay(self.overdue, "3.00")
        self.pay(self.settled, "10.40")

    def test_schedule(self):
        rows = receivables_schedule(self.viewer, on_date=date(2030, 3, 15))

        self.assertEqual([row["invoice"] for row in rows], [self.overdue.number, self.current.number])
        first, second = rows
        self.assertEqual(first["balance"], Decimal("7.40"))
        self.assertEqual(first["days_overdue"], 43)
        self.assertEqual(first["bucket"], "31-60")
        self.assertEqual(second["days_overdue"], 0)
        self.assertEqual(second["bucket"], "current")

    def test_schedule_for_customer(self):
        rows = receivables_schedule(self.viewer, on_date=date(2030, 3, 15), customer=self.other_customer)
        self.assertEqual([row["invoice"] for row in rows], [self.current.number])

    def test_export(self):
        ws = export_receivables(self.viewer, on_date=date(2030, 3, 15)).active

        self.assertEqual(ws.title, "Scadenzario")
        self.assertEqual(ws.max_row, 4)
        self.assertEqual(ws.cell(row=2, column=1).value, self.overdue.number)
        self.assertEqual(ws.cell(row=4, column=1).value, "Totale")
        self.assertEqual(ws.cell(row=4, column=7).value, 17.8)
        self.assertTrue(ws.cell(row=4, column=1).font.bold)

    def test_overdue_filter(self):
        overdue = Invoice.objects.overdue(date(2030, 3, 15))
        self.assertEqual(list(overdue), [self.overdue])


class BillingSettingsTests(BaseBillingTestCase):
    def test_admin_updates_policy(self):
        settings_obj = update_billing_settings(
            self.admin,
            {"auto_invoice_on_delivery": False, "default_payment_terms_days": 45},
        )

        self.assertFalse(settings_obj.auto_invoice_on_delivery)
        self.assertEqual(BillingSettings.get_solo().default_payment_terms_days, 45)
        entry = AuditLog.objects.get(entity_type="billing.billingsettings")
        self.assertEqual(entry.metadata["changed"], ["auto_invoice_on_delivery", "default_payment_terms_days"])

    def test_operator_cannot_change_policy(self):
        with self.assertRaises(Unauthorized):
            update_billing_settings(self.operator, {"auto_invoice_on_delivery": False})
        self.assertTrue(BillingSettings.get_solo().auto_invoice_on_delivery)

    def test_settings_are_validated(self):
        with self.assertRaises(ValidationError) as ctx:
            update_billing_settings(self.admin, {"default_vat_rate": "150"})
        self.assertEqual(ctx.exception.violations[0].field, "default_vat_rate")


class BillingApiTests(BaseBillingTestCase):
    def test_invoice_and_payment_over_http(self):
        note = self.standalone_note(self.customer)
        self.client.force_login(self.operator_user)

        response = self.client.post(
            reverse("billing:invoice_list"),
            {"delivery_notes": [str(note.public_id)]},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        invoice = response.json()
        self.assertEqual(invoice["delivery_notes"], [note.number])

        response = self.client.post(reverse("billing:invoice_send", kwargs={"public_id": invoice["id"]}))
        self.assertEqual(response.json()["status"], "sent")

        response = self.client.post(
            reverse("billing:payment_list"),
            {"invoice": invoice["id"], "amount": "99.00"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["violations"][0]["rule"], "max_value")

        response = self.client.post(
            reverse("billing:payment_list"),
            {"invoice": invoice["id"], "amount": "10.40"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)

        response = self.client.get(reverse("billing:invoice_detail", kwargs={"public_id": invoice["id"]}))
        self.assertEqual(response.json()["status"], "paid")
        self.assertEqual(response.json()["balance"], "0.00")

    def test_receivables_endpoints(self):
        self.issue(self.standalone_note(self.customer), issue_date="2030-01-01")
        self.client.force_login(self.viewer_user)

        response = self.client.get(reverse("billing:receivables"), {"on_date": "2030-03-15"})
        self.assertEqual(response.json()["count"], 1)
        self.assertEqual(response.json()["results"][0]["bucket"], "31-60")

        response = self.client.get(reverse("billing:receivables"), {"on_date": "2030-02-31"})
        self.assertEqual(response.status_code, 400)

        response = self.client.get(reverse("billing:receivables_export"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(load_workbook(BytesIO(response.content)).active.title, "Scadenzario")

    def test_settings_endpoint(self):
        self.client.force_login(self.operator_user)
        url = reverse("billing:settings")

        self.assertEqual(self.client.get(url).json()["auto_invoice_on_delivery"], True)
        response = self.client.patch(url, {"auto_invoice_on_delivery": False}, content_type="application/json")
        self.assertEqual(response.status_code, 403)
