from decimal import Decimal

from django.core import mail
from django.urls import reverse

from billing.services import InvoiceService
from catalog.services import ProductService
from contacts.services import CustomerService
from core.exceptions import Unauthorized, ValidationError
from core.models import Notification
from core.permissions import Principal, Role
from core.testing import FruttaGestTestCase, User
from portal import services
from sales.models import Order
from sales.services import OrderService


class BasePortalTestCase(FruttaGestTestCase):
    def setUp(self):
        super().setUp()
        self.portal_user = User.objects.create_user("mario", "mario@trattoria.test", "pw")
        self.customer.portal_user = self.portal_user
        self.customer.save()
        self.portal = Principal.for_user(self.portal_user)

    def portal_payload(self, **overrides):
        payload = {
            "requested_delivery_date": "2030-05-04",
            "items": [
                {"product": str(self.apples.public_id), "quantity": "10"},
                {"product": str(self.lettuce.public_id), "quantity": "4"},
            ],
        }
        payload.update(overrides)
        return payload


class PlaceOrderTests(BasePortalTestCase):
    def test_portal_user_is_a_customer_principal(self):
        self.assertEqual(self.portal.role, Role.CUSTOMER)
        self.assertEqual(self.portal.customer_id, self.customer.pk)
        self.assertFalse(self.portal.is_staff)

    def test_place_order_with_customer_prices(self):
        ProductService.set_customer_price(self.operator, self.customer, self.apples, "1.80")

        order = services.place_order(self.portal, self.portal_payload())

        self.assertEqual(order.customer, self.customer)
        self.assertEqual(order.channel, Order.Channel.WEB)
        self.assertEqual(order.status, Order.Status.DRAFT)
        self.assertEqual(order.created_by, self.portal_user)
        self.assertEqual(order.total, Decimal("24.96"))

    def test_customer_cannot_set_prices_or_customer(self):
        payload = self.portal_payload(
            customer=str(self.other_customer.public_id),
            items=[{"product": str(self.apples.public_id), "quantity": "1", "unit_price": "0.01"}],
        )

        order = services.place_order(self.portal, payload)

        self.assertEqual(order.customer, self.customer)
        self.assertEqual(order.lines.get().unit_price, Decimal("2.00"))

    def test_staff_and_customer_are_told(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = services.place_order(self.portal, self.portal_payload())

        notifications = Notification.objects.filter(verb__contains=order.number)
        self.assertEqual(
            set(notifications.values_list("recipient__username", flat=True)),
            {"admin", "operatore"},
        )
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, f"Ordine ricevuto {order.number}")
        self.assertEqual(mail.outbox[0].to, ["mario@trattoria.test"])
        self.assertIn("Totale (IVA inclusa): 27.04 EUR", mail.outbox[0].body)

    def test_only_available_products(self):
        ProductService.archive_product(self.operator, self.lettuce)

        with self.assertRaises(ValidationError) as ctx:
            services.place_order(self.portal, self.portal_payload())
        self.assertEqual(
            {(v.field, v.rule) for v in ctx.exception.violations},
            {("items.1.product", "invalid_choice")},
        )
        self.assertFalse(Order.objects.exists())

    def test_staff_cannot_use_the_portal(self):
        with self.assertRaises(Unauthorized):
            services.place_order(self.operator, self.portal_payload())

    def test_customer_principal_without_account(self):
        orphan = Principal(user=self.portal_user, role=Role.CUSTOMER)

        with self.assertRaises(Unauthorized) as ctx:
            services.own_orders(orphan)
        self.assertEqual(ctx.exception.reason, "no customer account")

    def test_archived_customer_loses_access(self):
        CustomerService.archive(self.operator, self.customer)

        with self.assertRaises(Unauthorized) as ctx:
            Principal.for_user(self.portal_user)
        self.assertEqual(ctx.exception.reason, "no role assigned")


class IsolationTests(BasePortalTestCase):
    def setUp(self):
        super().setUp()
        self.own = self.create_order()
        self.foreign = self.create_order(customer=self.other_customer)

    def test_orders_are_scoped(self):
        self.assertEqual(list(services.own_orders(self.portal)), [self.own])
        self.assertEqual(services.own_order(self.portal, self.own.public_id), self.own)

        with self.assertRaises(Order.DoesNotExist):
            services.own_order(self.portal, self.foreign.public_id)

    def test_invoices_and_payments_are_scoped(self):
        for order in (self.own, self.foreign):
            order = OrderService.confirm_order(self.operator, order)
            note = OrderService.record_delivery(self.operator, order)
            InvoiceService.issue_invoice(self.operator, {"delivery_notes": [str(note.public_id)]})

        invoices = list(services.own_invoices(self.portal))
        self.assertEqual([invoice.customer for invoice in invoices], [self.customer])
        self.assertEqual(list(services.own_payments(self.portal)), [])


class PortalApiTests(BasePortalTestCase):
    def test_place_and_read_orders(self):
        self.client.force_login(self.portal_user)

        response = self.client.post(
            reverse("portal:order_list"),
            self.portal_payload(internal_notes="sconto 50%"),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["channel"], "web")
        self.assertNotIn("internal_notes", body)

        response = self.client.get(reverse("portal:order_detail", kwargs={"public_id": body["id"]}))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["lines"]), 2)

        self.assertEqual(Order.objects.get(public_id=body["id"]).internal_notes, "")

    def test_foreign_order_is_not_found(self):
        foreign = self.create_order(customer=self.other_customer)
        self.client.force_login(self.portal_user)

        response = self.client.get(reverse("portal:order_detail", kwargs={"public_id": foreign.public_id}))

        self.assertEqual(response.status_code, 404)

    def test_staff_are_refused(self):
        self.client.force_login(self.operator_user)

        self.assertEqual(self.client.get(reverse("portal:order_list")).status_code, 403)

    def test_anonymous_is_refused(self):
        self.assertEqual(self.client.get(reverse("portal:invoice_list")).status_code, 401)
