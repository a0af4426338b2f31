from datetime import date, timedelta
from decimal import Decimal

from django.core import mail
from django.urls import reverse
from django.utils import timezone

from billing.services import PaymentService
from contacts.models import Supplier
from core.exceptions import IllegalTransition, Unauthorized, ValidationError
from core.models import AuditLog
from core.testing import FruttaGestTestCase
from purchasing.models import PurchaseOrder, ShoppingList, SupplierInvoice
from purchasing.services import PurchaseService, ShoppingListService
from sales.services import OrderService


class BasePurchasingTestCase(FruttaGestTestCase):
    def setUp(self):
        super().setUp()
        self.year = timezone.localdate().year

    def purchase_order(self, **overrides):
        payload = {
            "supplier": str(self.supplier.public_id),
            "expected_date": "2030-06-02",
            "items": [{"product": str(self.apples.public_id), "quantity": "50"}],
        }
        payload.update(overrides)
        return PurchaseService.create_purchase_order(self.operator, payload)


class PurchaseOrderTests(BasePurchasingTestCase):
    def test_create_prices_at_cost(self):
        purchase_order = self.purchase_order()

        self.assertEqual(purchase_order.number, f"OA-{self.year}-0001")
        self.assertEqual(purchase_order.status, PurchaseOrder.Status.DRAFT)
        line = purchase_order.lines.get()
        self.assertEqual(line.unit_price, Decimal("1.20"))
        self.assertEqual(line.unit, "kg")
        self.assertEqual(purchase_order.total, Decimal("62.40"))

    def test_list_price_when_cost_is_unknown(self):
        purchase_order = self.purchase_order(items=[{"product": str(self.lettuce.public_id), "quantity": "20"}])

        self.assertEqual(purchase_order.lines.get().unit_price, Decimal("1.50"))

    def test_free_text_items_need_a_price(self):
        with self.assertRaises(ValidationError) as ctx:
            self.purchase_order(items=[{"product_name": "Cassette vuote", "quantity": "100"}])
        self.assertEqual(ctx.exception.fields(), {"items.0.unit_price"})

    def test_send_emails_supplier(self):
        purchase_order = self.purchase_order()

        with self.captureOnCommitCallbacks(execute=True):
            purchase_order = PurchaseService.send_purchase_order(self.operator, purchase_order)

        self.assertEqual(purchase_order.status, PurchaseOrder.Status.SENT)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["ordini@ortofrutta.test"])
        self.assertIn("Mele Golden: 50.000 kg", mail.outbox[0].body)
        self.assertIn("02/06/2030", mail.outbox[0].body)

    def test_empty_order_cannot_be_sent(self):
        purchase_order = PurchaseOrder.objects.create(number="OA-TEST-0001", supplier=self.supplier)

        with self.assertRaises(IllegalTransition) as ctx:
            PurchaseService.send_purchase_order(self.operator, purchase_order)
        self.assertEqual(ctx.exception.reason, "purchase order has no lines")

    def test_receive_registers_supplier_invoice(self):
        purchase_order = PurchaseService.send_purchase_order(self.operator, self.purchase_order())

        invoice = PurchaseService.receive_purchase_order(self.operator, purchase_order, supplier_reference="2030/118")

        purchase_order.refresh_from_db()
        self.assertEqual(purchase_order.status, PurchaseOrder.Status.RECEIVED)
        self.assertIsNotNone(purchase_order.received_at)
        self.assertEqual(invoice.number, f"FT-FORN-{self.year}-0001")
        self.assertEqual(invoice.purchase_order, purchase_order)
        self.assertEqual(invoice.supplier_reference, "2030/118")
        self.assertEqual(invoice.total, Decimal("62.40"))
        self.assertEqual(invoice.due_date, timezone.localdate() + timedelta(days=30))
        self.assertEqual(invoice.status, SupplierInvoice.Status.UNPAID)

    def test_draft_cannot_be_received(self):
        with self.assertRaises(IllegalTransition) as ctx:
            PurchaseService.receive_purchase_order(self.operator, self.purchase_order())
        self.assertEqual(ctx.exception.reason, "not allowed from draft")
        self.assertFalse(SupplierInvoice.objects.exists())

    def test_cancel(self):
        purchase_order = PurchaseService.cancel_purchase_order(
            self.operator,
            self.purchase_order(),
            reason="merce non disponibile",
        )

        self.assertEqual(purchase_order.status, PurchaseOrder.Status.CANCELLED)
        entry = AuditLog.objects.get(action="cancel")
        self.assertEqual(entry.metadata["reason"], "merce non disponibile")

        with self.assertRaises(IllegalTransition) as ctx:
            PurchaseService.send_purchase_order(self.operator, purchase_order)
        self.assertEqual(ctx.exception.reason, "cancelled is a final state")

    def test_viewer_cannot_order(self):
        with self.assertRaises(Unauthorized):
            PurchaseService.create_purchase_order(self.viewer, {
                "supplier": str(self.supplier.public_id),
                "items": [{"product": str(self.apples.public_id), "quantity": "1"}],
            })


class SupplierInvoiceTests(BasePurchasingTestCase):
    def test_register_by_hand(self):
        invoice = PurchaseService.create_supplier_invoice(self.operator, {
            "supplier": str(self.supplier.public_id),
            "supplier_reference": "F-77",
            "issue_date": "2030-02-01",
            "subtotal": "100.00",
            "vat_amount": "4.00",
        })

        self.assertEqual(invoice.number, "FT-FORN-2030-0001")
        self.assertEqual(invoice.total, Decimal("104.00"))
        self.assertEqual(invoice.due_date, date(2030, 3, 3))

    def test_purchase_order_of_another_supplier(self):
        other = Supplier.objects.create(code="FOR-T-0002", company_name="Agrumi di Sicilia")

        with self.assertRaises(ValidationError) as ctx:
            PurchaseService.create_supplier_invoice(self.operator, {
                "supplier": str(other.public_id),
                "purchase_order": str(self.purchase_order().public_id),
                "subtotal": "10.00",
            })
        self.assertEqual(
            {(v.field, v.rule) for v in ctx.exception.violations},
            {("purchase_order", "supplier_mismatch")},
        )

    def test_outgoing_payments_settle_invoice(self):
        invoice = PurchaseService.create_supplier_invoice(self.operator, {
            "supplier": str(self.supplier.public_id),
            "subtotal": "60.00",
            "vat_amount": "2.40",
        })

        def pay(amount):
            return PaymentService.record_payment(self.operator, {
                "direction": "outgoing",
                "supplier_invoice": str(invoice.public_id),
                "amount": amount,
            })

        payment = pay("20.00")
        invoice.refresh_from_db()
        self.assertEqual(payment.supplier, self.supplier)
        self.assertEqual(invoice.status, SupplierInvoice.Status.PARTIALLY_PAID)

        pay("42.40")
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, SupplierInvoice.Status.PAID)
        self.assertEqual(invoice.balance, Decimal("0.00"))
        self.assertEqual(
            AuditLog.objects.filter(entity_type="purchasing.supplierinvoice", action="update").count(),
            2,
        )

        with self.assertRaises(ValidationError) as ctx:
            pay("0.01")
        self.assertEqual(ctx.exception.violations[0].rule, "max_value")

    def test_outgoing_payment_names_no_customer(self):
        with self.assertRaises(ValidationError) as ctx:
            PaymentService.record_payment(self.operator, {
                "direction": "outgoing",
                "supplier": str(self.supplier.public_id),
                "customer": str(self.customer.public_id),
                "amount": "5.00",
            })
        self.assertEqual({(v.field, v.rule) for v in ctx.exception.violations}, {("customer", "invalid")})


class PurchasingApiTests(BasePurchasingTestCase):
    def test_purchase_order_lifecycle(self):
        self.client.force_login(self.operator_user)

        response = self.client.post(
            reverse("purchasing:purchase_order_list"),
            {
                "supplier": str(self.supplier.public_id),
                "items": [{"product": str(self.apples.public_id), "quantity": "10", "unit_price": "1.10"}],
            },
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["allowed_actions"], ["send", "cancel"])
        kwargs = {"public_id": body["id"]}

        response = self.client.post(reverse("purchasing:purchase_order_send", kwargs=kwargs))
        self.assertEqual(response.json()["status"], "sent")

        response = self.client.post(
            reverse("purchasing:purchase_order_receive", kwargs=kwargs),
            {"supplier_reference": "B-12"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["purchase_order"], body["number"])
        self.assertEqual(response.json()["total"], "11.44")

        response = self.client.post(reverse("purchasing:purchase_order_cancel", kwargs=kwargs))
        self.assertEqual(response.status_code, 409)

        response = self.client.get(reverse("purchasing:supplier_invoice_list"), {"unpaid": "1"})
        self.assertEqual(response.json()["count"], 1)

    def test_cancel_accepts_form_post(self):
        purchase_order = self.purchase_order()
        self.client.force_login(self.operator_user)

        response = self.client.post(
            reverse("purchasing:purchase_order_cancel", kwargs={"public_id": purchase_order.public_id}),
            {"reason": "fornitore chiuso"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "cancelled")
        self.assertEqual(AuditLog.objects.get(action="cancel").metadata["reason"], "fornitore chiuso")

    def test_viewer_reads_only(self):
        purchase_order = self.purchase_order()
        self.client.force_login(self.viewer_user)

        response = self.client.get(
            reverse("purchasing:purchase_order_detail", kwargs={"public_id": purchase_order.public_id})
        )
        self.assertEqual(response.status_code, 200)

        response = self.client.post(reverse("purchasing:purchase_order_send", kwargs={"public_id": purchase_order.public_id}))
        self.assertEqual(response.status_code, 403)


class BaseShoppingListTestCase(BasePurchasingTestCase):
    delivery_date = date(2030, 6, 2)

    def setUp(self):
        super().setUp()
        self.apples.preferred_supplier = self.supplier
        self.apples.save()
        self.first = self.confirmed_order(requested_delivery_date="2030-06-02")
        self.second = self.confirmed_order(customer=self.other_customer, requested_delivery_date="2030-06-02")
        # Neither is on the list: still a draft, and due another day.
        self.create_order(requested_delivery_date="2030-06-02")
        self.confirmed_order(requested_delivery_date="2030-06-03")

    def generate(self, principal=None):
        return ShoppingListService.generate(principal or self.operator, {"delivery_date": "2030-06-02"})


class ShoppingListTests(BaseShoppingListTestCase):
    def test_generate_lists_what_is_left_to_deliver(self):
        OrderService.record_delivery(self.operator, self.first, {"items": [
            {"order_line": self.first.lines.get(product=self.apples).pk, "quantity": "6"},
        ]})

        shopping_list = self.generate()

        self.assertEqual(shopping_list.status, ShoppingList.Status.DRAFT)
        self.assertEqual(shopping_list.order_count, 2)
        apples = shopping_list.items.filter(product=self.apples).order_by("quantity")
        self.assertEqual([item.quantity for item in apples], [Decimal("4.000"), Decimal("10.000")])
        self.assertEqual({item.customer for item in apples}, {self.customer, self.other_customer})
        self.assertEqual(apples[0].supplier, self.supplier)
        self.assertEqual(apples[0].supplier_price, Decimal("1.20"))
        lettuce = shopping_list.items.filter(product=self.lettuce)
        self.assertEqual(lettuce.count(), 2)
        self.assertIsNone(lettuce[0].supplier)
        self.assertIsNone(lettuce[0].supplier_price)
        self.assertEqual(AuditLog.objects.get(entity_type="purchasing.shoppinglist").action, "create")

    def test_draft_list_is_rebuilt(self):
        shopping_list = self.generate()
        self.confirmed_order(requested_delivery_date="2030-06-02")

        regenerated = self.generate()

        self.assertEqual(regenerated.pk, shopping_list.pk)
        self.assertEqual(regenerated.order_count, 3)
        self.assertEqual(regenerated.items.count(), 6)
        self.assertTrue(AuditLog.objects.filter(action="regenerate").exists())

    def test_date_without_orders_is_refused(self):
        with self.assertRaises(ValidationError) as ctx:
            ShoppingListService.generate(self.operator, {"delivery_date": "2030-07-01"})
        self.assertEqual({(v.field, v.rule) for v in ctx.exception.violations}, {("delivery_date", "no_orders")})
        self.assertFalse(ShoppingList.objects.exists())

    def test_finalized_list_is_not_rebuilt(self):
        ShoppingListService.finalize(self.operator, self.generate())

        with self.assertRaises(ValidationError) as ctx:
            self.generate()
        self.assertEqual(ctx.exception.violations[0].rule, "not_editable")

    def test_empty_list_cannot_be_finalized(self):
        shopping_list = ShoppingList.objects.create(delivery_date=date(2030, 8, 1))

        with self.assertRaises(IllegalTransition) as ctx:
            ShoppingListService.finalize(self.operator, shopping_list)
        self.assertEqual(ctx.exception.reason, "shopping list has no items")

    def test_viewer_cannot_generate(self):
        with self.assertRaises(Unauthorized):
            self.generate(self.viewer)

    def test_update_item_keeps_fields_left_out(self):
        item = self.generate().items.filter(product=self.lettuce).first()

        item = ShoppingListService.update_item(self.operator, item, {
            "supplier": str(self.supplier.public_id),
            "supplier_price": "0.90",
        })

        self.assertEqual(item.supplier, self.supplier)
        self.assertEqual(item.supplier_price, Decimal("0.90"))
        self.assertEqual(item.quantity, Decimal("4.000"))
        entry = AuditLog.objects.get(entity_type="purchasing.shoppinglist", action="update")
        self.assertEqual(entry.metadata["changed"], ["supplier", "supplier_price"])

    def test_merge_items_of_the_same_product(self):
        shopping_list = self.generate()
        target, other = shopping_list.items.filter(product=self.apples)
        ShoppingListService.update_item(self.operator, other, {"notes": "ben mature"})

        merged = ShoppingListService.merge_items(self.operator, target, {"items": [str(other.public_id)]})

        self.assertEqual(merged.quantity, Decimal("20.000"))
        self.assertIsNone(merged.customer)
        self.assertEqual(merged.notes, "ben mature")
        self.assertEqual(shopping_list.items.filter(product=self.apples).count(), 1)
        self.assertTrue(AuditLog.objects.filter(action="merge_items").exists())

    def test_merge_refuses_other_products(self):
        shopping_list = self.generate()
        target = shopping_list.items.filter(product=self.apples).first()
        lettuce = shopping_list.items.filter(product=self.lettuce).first()

        with self.assertRaises(ValidationError) as ctx:
            ShoppingListService.merge_items(self.operator, target, {"items": [str(lettuce.public_id)]})
        self.assertEqual(ctx.exception.violations[0].rule, "product_mismatch")
        self.assertEqual(shopping_list.items.count(), 4)

    def test_purchase_orders_one_per_supplier(self):
        shopping_list = self.generate()

        result = ShoppingListService.create_purchase_orders(self.operator, shopping_list)

        self.assertEqual(result["shopping_list"].status, ShoppingList.Status.ORDERED)
        self.assertEqual(len(result["skipped"]), 2)
        (purchase_order,) = result["purchase_orders"]
        self.assertEqual(purchase_order.supplier, self.supplier)
        self.assertEqual(purchase_order.expected_date, self.delivery_date)
        self.assertEqual(purchase_order.notes, "Generato da lista spesa del 02/06/2030")
        self.assertEqual(purchase_order.lines.count(), 2)
        self.assertEqual(purchase_order.total, Decimal("24.96"))
        self.assertEqual(shopping_list.items.filter(purchase_order=purchase_order).count(), 2)

        item = shopping_list.items.filter(purchase_order=purchase_order).first()
        with self.assertRaises(ValidationError) as ctx:
            ShoppingListService.update_item(self.operator, item, {"quantity": "1"})
        self.assertEqual(ctx.exception.violations[0].rule, "not_editable")

    def test_purchase_orders_need_a_supplier(self):
        self.apples.preferred_supplier = None
        self.apples.save()
        shopping_list = self.generate()

        with self.assertRaises(ValidationError) as ctx:
            ShoppingListService.create_purchase_orders(self.operator, shopping_list)
        self.assertEqual(ctx.exception.violations[0].rule, "no_supplier")
        shopping_list.refresh_from_db()
        self.assertEqual(shopping_list.status, ShoppingList.Status.DRAFT)
        self.assertFalse(PurchaseOrder.objects.exists())


class ShoppingListApiTests(BaseShoppingListTestCase):
    def test_shopping_list_lifecycle(self):
        self.client.force_login(self.operator_user)

        response = self.client.post(
            reverse("purchasing:shopping_list_list"),
            {"delivery_date": "2030-06-02"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["allowed_actions"], ["finalize", "order"])
        self.assertEqual(len(body["items"]), 4)
        kwargs = {"public_id": body["id"]}

        lettuce = next(item for item in body["items"] if item["product_name"] == "Insalata Gentile")
        response = self.client.patch(
            reverse("purchasing:shopping_list_item_detail", kwargs={"public_id": lettuce["id"]}),
            {"quantity": "6"},
            content_type="application/json",
        )
        self.assertEqual(response.json()["quantity"], "6")

        response = self.client.post(reverse("purchasing:shopping_list_finalize", kwargs=kwargs))
        self.assertEqual(response.json()["status"], "finalized")

        response = self.client.post(reverse("purchasing:shopping_list_purchase_orders", kwargs=kwargs))
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.json()["purchase_orders"]), 1)
        self.assertEqual(response.json()["shopping_list"]["status"], "ordered")

        response = self.client.get(reverse("purchasing:shopping_list_list"))
        self.assertEqual(response.json()["count"], 1)

    def test_viewer_reads_only(self):
        shopping_list = self.generate()
        self.client.force_login(self.viewer_user)

        response = self.client.get(reverse("purchasing:shopping_list_detail", kwargs={"public_id": shopping_list.public_id}))
        self.assertEqual(response.status_code, 200)

        response = self.client.post(reverse("purchasing:shopping_list_finalize", kwargs={"public_id": shopping_list.public_id}))
        self.assertEqual(response.status_code, 403)
