from datetime import date
from decimal import Decimal

from django.core import mail
from django.urls import reverse
from django.utils import timezone

from billing.models import BillingSettings, Invoice
from catalog.models import CustomerPrice
from core.exceptions import IllegalTransition, Unauthorized, ValidationError
from core.models import AuditLog, Notification
from core.testing import FruttaGestTestCase
from sales.models import DeliveryNote, Order
from sales.services import OrderService


class BaseSalesTestCase(FruttaGestTestCase):
    def setUp(self):
        super().setUp()
        self.year = timezone.localdate().year

    def line_for(self, order, product):
        return order.lines.get(product=product)


class OrderCreationTests(BaseSalesTestCase):
    def test_create_order_prices_and_totals(self):
        order = self.create_order()

        self.assertEqual(order.number, f"ORD-{self.year}-0001")
        self.assertEqual(order.status, Order.Status.DRAFT)
        self.assertEqual(order.channel, Order.Channel.MANUAL)
        self.assertEqual(order.created_by, self.operator_user)

        apples = self.line_for(order, self.apples)
        self.assertEqual(apples.product_name, "Mele Golden")
        self.assertEqual(apples.unit, "kg")
        self.assertEqual(apples.unit_price, Decimal("2.00"))
        self.assertEqual(apples.line_total, Decimal("20.00"))

        self.assertEqual(order.subtotal, Decimal("26.00"))
        self.assertEqual(order.vat_amount, Decimal("1.04"))
        self.assertEqual(order.total, Decimal("27.04"))

        entry = AuditLog.objects.get(entity_type="sales.order", action="create")
        self.assertEqual(entry.metadata["number"], order.number)
        self.assertEqual(entry.metadata["total"], "27.04")

    def test_customer_price_is_used(self):
        CustomerPrice.objects.create(customer=self.customer, product=self.apples, price=Decimal("1.80"))

        order = self.create_order()

        self.assertEqual(self.line_for(order, self.apples).unit_price, Decimal("1.80"))
        self.assertEqual(order.subtotal, Decimal("24.00"))
        self.assertEqual(order.total, Decimal("24.96"))

    def test_free_text_item_uses_default_vat(self):
        settings_obj = BillingSettings.get_solo()
        settings_obj.default_vat_rate = Decimal("10.00")
        settings_obj.save()

        order = self.create_order(items=[
            {"product_name": "Funghi porcini", "quantity": "1.5", "unit_price": "24.00"},
        ])

        line = order.lines.get()
        self.assertIsNone(line.product)
        self.assertEqual(line.unit, "kg")
        self.assertEqual(line.vat_rate, Decimal("10.00"))
        self.assertEqual(order.subtotal, Decimal("36.00"))
        self.assertEqual(order.vat_amount, Decimal("3.60"))

    def test_item_violations(self):
        with self.assertRaises(ValidationError) as ctx:
            self.create_order(items=[
                {"product_name": "Funghi porcini", "quantity": "1"},
                {"quantity": "2"},
            ])

        rules = {(v.field, v.rule) for v in ctx.exception.violations}
        self.assertEqual(rules, {("items.0.unit_price", "required"), ("items.1.product", "required")})
        self.assertFalse(Order.objects.exists())

    def test_inactive_customer_is_rejected(self):
        self.customer.is_active = False
        self.customer.save()

        with self.assertRaises(ValidationError) as ctx:
            self.create_order()
        self.assertEqual(ctx.exception.violations[0].field, "customer")
        self.assertEqual(ctx.exception.violations[0].rule, "invalid_choice")

    def test_viewer_cannot_create(self):
        with self.assertRaises(Unauthorized):
            self.create_order(principal=self.viewer)

    def test_manual_orders_send_no_email(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.create_order()

        self.assertEqual(len(mail.outbox), 0)
        self.assertFalse(Notification.objects.exists())


class OrderUpdateTests(BaseSalesTestCase):
    def test_header_update_keeps_lines(self):
        order = self.create_order()

        order = OrderService.update_order(self.operator, order, {"notes": "Consegna entro le 9"})

        self.assertEqual(order.notes, "Consegna entro le 9")
        self.assertEqual(order.lines.count(), 2)
        entry = AuditLog.objects.get(action="update")
        self.assertEqual(entry.metadata["changed"], ["notes"])
        self.assertFalse(entry.metadata["lines_replaced"])

    def test_items_replace_lines(self):
        order = self.confirmed_order()

        order = OrderService.update_order(
            self.operator,
            order,
            {"items": [{"product": str(self.apples.public_id), "quantity": "5"}]},
        )

        self.assertEqual(order.lines.count(), 1)
        self.assertEqual(order.total, Decimal("10.40"))

    def test_order_is_frozen_after_delivery(self):
        order = self.confirmed_order()
        OrderService.record_delivery(
            self.operator,
            order,
            {"items": [{"order_line": self.line_for(order, self.apples).pk, "quantity": "2"}]},
        )

        with self.assertRaises(ValidationError) as ctx:
            OrderService.update_order(self.operator, order, {"notes": "troppo tardi"})
        self.assertEqual(ctx.exception.violations[0].rule, "not_editable")


class OrderLifecycleTests(BaseSalesTestCase):
    def test_confirmation_emails_customer(self):
        order = self.create_order(requested_delivery_date="2030-05-04")

        with self.captureOnCommitCallbacks(execute=True):
            order = OrderService.confirm_order(self.operator, order)

        self.assertEqual(order.status, Order.Status.CONFIRMED)
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ["mario@trattoria.test"])
        self.assertEqual(message.subject, f"Ordine confermato {order.number}")
        self.assertIn("04/05/2030", message.body)
        self.assertIn("Mele Golden", message.body)

    def test_full_delivery(self):
        order = self.confirmed_order()

        note = OrderService.record_delivery(self.operator, order)

        order.refresh_from_db()
        self.assertEqual(note.number, f"DDT-{self.year}-0001")
        self.assertEqual(note.customer, self.customer)
        self.assertEqual(note.transport_reason, "Vendita")
        self.assertEqual(note.lines.count(), 2)
        self.assertEqual(order.status, Order.Status.DELIVERED)
        self.assertEqual(
            list(AuditLog.objects.filter(entity_type="sales.order").values_list("action", flat=True)),
            ["create", "confirm", "record_delivery"],
        )

    def test_partial_then_complete_delivery(self):
        order = self.confirmed_order()
        apples = self.line_for(order, self.apples)

        OrderService.record_delivery(self.operator, order, {"items": [{"order_line": apples.pk, "quantity": "4"}]})
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PARTIALLY_DELIVERED)
        self.assertEqual(apples.remaining_quantity, Decimal("6.000"))

        note = OrderService.record_delivery(self.operator, order)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.DELIVERED)
        self.assertEqual(
            sorted(note.lines.values_list("quantity", flat=True)),
            [Decimal("4.000"), Decimal("6.000")],
        )

        with self.assertRaises(IllegalTransition):
            OrderService.record_delivery(self.operator, order)

    def test_delivery_cannot_exceed_order(self):
        order = self.confirmed_order()
        other = self.confirmed_order(customer=self.other_customer)

        with self.assertRaises(ValidationError) as ctx:
            OrderService.record_delivery(self.operator, order, {"items": [
                {"order_line": self.line_for(order, self.apples).pk, "quantity": "11"},
                {"order_line": self.line_for(other, self.apples).pk, "quantity": "1"},
            ]})

        rules = {(v.field, v.rule) for v in ctx.exception.violations}
        self.assertEqual(rules, {("items.0.quantity", "max_value"), ("items.1.order_line", "invalid_choice")})
        self.assertFalse(DeliveryNote.objects.exists())

    def test_draft_order_cannot_be_delivered(self):
        order = self.create_order()

        with self.assertRaises(IllegalTransition) as ctx:
            OrderService.record_delivery(self.operator, order)
        self.assertEqual(ctx.exception.reason, "not allowed from draft")

    def test_mark_delivered_issues_invoice(self):
        order = self.confirmed_order()
        note = OrderService.record_delivery(self.operator, order)

        note = OrderService.mark_delivered(self.operator, note, delivery_date=date(2030, 5, 4))

        order.refresh_from_db()
        self.assertEqual(note.status, DeliveryNote.Status.DELIVERED)
        self.assertEqual(note.delivery_date, date(2030, 5, 4))
        self.assertIsNotNone(note.invoice)
        self.assertEqual(note.invoice.total, order.total)
        self.assertEqual(order.status, Order.Status.INVOICED)

    def test_mark_delivered_without_auto_invoice_notifies_staff(self):
        settings_obj = BillingSettings.get_solo()
        settings_obj.auto_invoice_on_delivery = False
        settings_obj.save()
        order = self.confirmed_order()
        note = OrderService.record_delivery(self.operator, order)

        with self.captureOnCommitCallbacks(execute=True):
            note = OrderService.mark_delivered(self.operator, note)

        self.assertIsNone(note.invoice_id)
        self.assertEqual(note.delivery_date, timezone.localdate())
        self.assertFalse(Invoice.objects.exists())
        notifications = Notification.objects.filter(level=Notification.Levels.WARNING)
        self.assertEqual(notifications.count(), 2)
        self.assertIn(note.number, notifications.first().verb)

    def test_delivered_note_is_final(self):
        order = self.confirmed_order()
        note = OrderService.mark_delivered(self.operator, OrderService.record_delivery(self.operator, order))

        with self.assertRaises(IllegalTransition):
            OrderService.mark_delivered(self.operator, note)


class CancellationTests(BaseSalesTestCase):
    def test_cancel_draft(self):
        order = OrderService.cancel_order(self.operator, self.create_order(), reason="cliente chiuso")

        self.assertEqual(order.status, Order.Status.CANCELLED)
        entry = AuditLog.objects.get(action="cancel")
        self.assertEqual(entry.metadata["reason"], "cliente chiuso")

    def test_cancel_partially_delivered(self):
        order = self.confirmed_order()
        OrderService.record_delivery(
            self.operator,
            order,
            {"items": [{"order_line": self.line_for(order, self.apples).pk, "quantity": "1"}]},
        )

        order = OrderService.cancel_order(self.operator, order)
        self.assertEqual(order.status, Order.Status.CANCELLED)

    def test_invoiced_order_cannot_be_cancelled(self):
        order = self.confirmed_order()
        OrderService.mark_delivered(self.operator, OrderService.record_delivery(self.operator, order))

        with self.assertRaises(IllegalTransition) as ctx:
            OrderService.cancel_order(self.operator, order)

        self.assertEqual(ctx.exception.reason, "order has invoiced delivery notes")
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.INVOICED)

    def test_delivery_after_cancellation_is_not_invoiced(self):
        order = self.confirmed_order()
        note = OrderService.record_delivery(self.operator, order)
        OrderService.cancel_order(self.operator, order)

        note = OrderService.mark_delivered(self.operator, note)

        self.assertEqual(note.status, DeliveryNote.Status.DELIVERED)
        self.assertIsNone(note.invoice)
        self.assertFalse(Invoice.objects.exists())


class StandaloneDeliveryNoteTests(BaseSalesTestCase):
    def test_create_standalone_note(self):
        note = OrderService.create_delivery_note(self.operator, {
            "customer": str(self.customer.public_id),
            "number_of_packages": 3,
            "items": [
                {"product": str(self.apples.public_id), "quantity": "3"},
                {"product_name": "Cassetta mista", "quantity": "1", "unit": "cassetta", "unit_price": "15.00"},
            ],
        })

        self.assertIsNone(note.order)
        self.assertEqual(note.number_of_packages, 3)
        self.assertEqual(
            sorted(note.lines.values_list("line_total", flat=True)),
            [Decimal("6.00"), Decimal("15.00")],
        )

    def test_standalone_note_checks(self):
        with self.assertRaises(ValidationError) as ctx:
            OrderService.create_delivery_note(self.operator, {
                "customer": str(self.customer.public_id),
                "items": [{"product_name": "Funghi", "quantity": "1"}],
            })
        self.assertEqual(ctx.exception.fields(), {"items.0.unit_price"})

        with self.assertRaises(ValidationError) as ctx:
            OrderService.create_delivery_note(self.operator, {"customer": str(self.customer.public_id)})
        self.assertEqual(ctx.exception.violations[0].rule, "required")

    def test_order_and_customer_must_match(self):
        order = self.confirmed_order()

        with self.assertRaises(ValidationError) as ctx:
            OrderService.create_delivery_note(self.operator, {
                "customer": str(self.other_customer.public_id),
                "order": str(order.public_id),
            })
        self.assertEqual({(v.field, v.rule) for v in ctx.exception.violations}, {("order", "customer_mismatch")})

    def test_note_with_order_records_delivery(self):
        order = self.confirmed_order()

        note = OrderService.create_delivery_note(self.operator, {"order": str(order.public_id)})

        order.refresh_from_db()
        self.assertEqual(note.order, order)
        self.assertEqual(order.status, Order.Status.DELIVERED)


class SalesApiTests(BaseSalesTestCase):
    def test_order_lifecycle_over_http(self):
        self.client.force_login(self.operator_user)

        response = self.client.post(reverse("sales:order_list"), self.order_payload(), content_type="application/json")
        self.assertEqual(response.status_code, 201)
        order = response.json()
        self.assertEqual(order["total"], "27.04")
        self.assertEqual(order["allowed_actions"], ["confirm", "cancel"])

        confirm_url = reverse("sales:order_confirm", kwargs={"public_id": order["id"]})
        response = self.client.post(confirm_url)
        self.assertEqual(response.json()["status"], "confirmed")

        response = self.client.post(confirm_url)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "illegal_transition")
        self.assertEqual(response.json()["reason"], "not allowed from confirmed")

        response = self.client.post(
            reverse("sales:order_deliver", kwargs={"public_id": order["id"]}),
            {"goods_appearance": "cassette"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.json()["lines"]), 2)

        response = self.client.get(reverse("sales:order_list"), {"status": "delivered"})
        self.assertEqual(response.json()["count"], 1)

    def test_delivered_endpoint_checks_date(self):
        order = self.confirmed_order()
        note = OrderService.record_delivery(self.operator, order)
        self.client.force_login(self.operator_user)
        url = reverse("sales:delivery_note_delivered", kwargs={"public_id": note.public_id})

        response = self.client.post(url, {"delivery_date": "04/05/2030"}, content_type="application/json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["violations"][0]["field"], "delivery_date")

        response = self.client.post(url, {"delivery_date": "2030-05-04"}, content_type="application/json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["delivery_date"], "2030-05-04")
        self.assertIsNotNone(response.json()["invoice"])

    def test_unknown_order_is_404(self):
        self.client.force_login(self.operator_user)

        response = self.client.get(reverse("sales:order_detail", kwargs={"public_id": "00000000-0000-0000-0000-000000000000"}))

        self.assertEqual(response.status_code, 404)

    def test_viewer_cannot_confirm(self):
        order = self.create_order()
        self.client.force_login(self.viewer_user)

        response = self.client.post(reverse("sales:order_confirm", kwargs={"public_id": order.public_id}))

        self.assertEqual(response.status_code, 403)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.DRAFT)

    def test_staff_sees_internal_notes(self):
        order = self.create_order(internal_notes="cliente lento a pagare")
        self.client.force_login(self.viewer_user)

        response = self.client.get(reverse("sales:order_detail", kwargs={"public_id": order.public_id}))

        self.assertEqual(response.json()["internal_notes"], "cliente lento a pagare")
