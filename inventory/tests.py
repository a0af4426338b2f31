from decimal import Decimal

from django.urls import reverse

from core.exceptions import Unauthorized, ValidationError
from core.models import AuditLog
from core.testing import FruttaGestTestCase
from inventory.models import StockMovement
from inventory.services import StockService, product_stock_card, stock_on_hand, stock_summary
from purchasing.services import PurchaseService
from sales.services import OrderService

M = StockMovement.MovementType


class BaseInventoryTestCase(FruttaGestTestCase):
    def load(self, product, quantity, movement_type=M.CARICO):
        return StockService.record_movement(self.operator, {
            "product": str(product.public_id),
            "movement_type": movement_type,
            "quantity": quantity,
        })


class StockMovementTests(BaseInventoryTestCase):
    def test_manual_load_is_audited(self):
        movement = self.load(self.apples, "25.5")

        self.assertEqual(movement.unit, "kg")
        self.assertEqual(movement.reference_type, StockMovement.Reference.MANUAL)
        self.assertEqual(movement.created_by, self.operator_user)
        self.assertEqual(stock_on_hand(self.apples), Decimal("25.500"))

        entry = AuditLog.objects.get(entity_type="inventory.stockmovement")
        self.assertEqual(entry.action, "create")
        self.assertEqual(entry.metadata["type"], "carico")
        self.assertEqual(Decimal(entry.metadata["quantity"]), Decimal("25.5"))

    def test_every_outgoing_type_lowers_stock(self):
        self.load(self.apples, "20")
        self.load(self.apples, "3", M.SCARTO)
        self.load(self.apples, "2", M.RETTIFICA_NEG)
        self.load(self.apples, "1", M.RETTIFICA_POS)

        self.assertEqual(stock_on_hand(self.apples), Decimal("16.000"))

    def test_manual_unload_cannot_go_below_zero(self):
        self.load(self.apples, "5")

        with self.assertRaises(ValidationError) as ctx:
            self.load(self.apples, "5.001", M.SCARICO)
        self.assertEqual({(v.field, v.rule) for v in ctx.exception.violations}, {("quantity", "insufficient_stock")})
        self.assertEqual(stock_on_hand(self.apples), Decimal("5.000"))

    def test_movements_cannot_be_edited(self):
        movement = self.load(self.apples, "5")
        movement.quantity = Decimal("50")

        with self.assertRaises(RuntimeError):
            movement.save()

    def test_batch_is_all_or_nothing(self):
        self.load(self.apples, "10")

        with self.assertRaises(ValidationError) as ctx:
            StockService.record_movements(self.operator, {
                "items": [
                    {"product": str(self.lettuce.public_id), "movement_type": "carico", "quantity": "30"},
                    {"product": str(self.apples.public_id), "movement_type": "scarto", "quantity": "6"},
                    {"product": str(self.apples.public_id), "movement_type": "scarico", "quantity": "6"},
                ],
            })
        self.assertEqual(ctx.exception.fields(), {"items.2.quantity"})
        self.assertEqual(StockMovement.objects.count(), 1)
        self.assertEqual(stock_on_hand(self.lettuce), Decimal("0"))

    def test_batch_records_every_item(self):
        movements = StockService.record_movements(self.operator, {
            "items": [
                {"product": str(self.apples.public_id), "movement_type": "carico", "quantity": "30"},
                {"product": str(self.lettuce.public_id), "movement_type": "carico", "quantity": "12", "unit": "cassetta"},
            ],
        })

        self.assertEqual(len(movements), 2)
        self.assertEqual(movements[1].unit, "cassetta")

    def test_viewer_cannot_move_stock(self):
        with self.assertRaises(Unauthorized):
            StockService.record_movement(self.viewer, {
                "product": str(self.apples.public_id),
                "movement_type": "carico",
                "quantity": "1",
            })


class DocumentStockTests(BaseInventoryTestCase):
    def test_delivery_unloads_stock_without_free_text_lines(self):
        self.load(self.apples, "30")
        order = self.confirmed_order(items=[
            {"product": str(self.apples.public_id), "quantity": "10"},
            {"product_name": "Cesto regalo", "quantity": "1", "unit_price": "25.00"},
        ])

        note = OrderService.record_delivery(self.operator, order)

        movement = StockMovement.objects.get(movement_type=M.SCARICO)
        self.assertEqual(movement.product, self.apples)
        self.assertEqual(movement.quantity, Decimal("10.000"))
        self.assertEqual(movement.reference_type, StockMovement.Reference.DELIVERY_NOTE)
        self.assertEqual(movement.reference_number, note.number)
        self.assertEqual(stock_on_hand(self.apples), Decimal("20.000"))

    def test_delivery_may_take_stock_below_zero(self):
        OrderService.record_delivery(self.operator, self.confirmed_order())

        self.assertEqual(stock_on_hand(self.apples), Decimal("-10.000"))
        self.assertEqual(stock_on_hand(self.lettuce), Decimal("-4.000"))

    def test_cancelling_a_delivered_order_restores_stock_once(self):
        order = self.confirmed_order()
        OrderService.record_delivery(self.operator, order, {"items": [
            {"order_line": order.lines.get(product=self.apples).pk, "quantity": "6"},
        ]})
        OrderService.record_delivery(self.operator, order, {"items": [
            {"order_line": order.lines.get(product=self.apples).pk, "quantity": "4"},
        ]})
        self.assertEqual(stock_on_hand(self.apples), Decimal("-10.000"))

        OrderService.cancel_order(self.operator, order, reason="cliente chiuso")

        self.assertEqual(stock_on_hand(self.apples), Decimal("0.000"))
        restored = StockMovement.objects.filter(movement_type=M.CARICO)
        self.assertEqual(restored.count(), 2)
        self.assertTrue(all(m.reason.startswith("Ripristino") for m in restored))

    def test_cancelling_an_undelivered_order_moves_nothing(self):
        OrderService.cancel_order(self.operator, self.confirmed_order())

        self.assertFalse(StockMovement.objects.exists())

    def test_receiving_a_purchase_order_loads_stock(self):
        purchase_order = PurchaseService.create_purchase_order(self.operator, {
            "supplier": str(self.supplier.public_id),
            "items": [
                {"product": str(self.apples.public_id), "quantity": "50"},
                {"product_name": "Cassette vuote", "quantity": "20", "unit_price": "0.50"},
            ],
        })
        purchase_order = PurchaseService.send_purchase_order(self.operator, purchase_order)

        PurchaseService.receive_purchase_order(self.operator, purchase_order)

        movement = StockMovement.objects.get()
        self.assertEqual(movement.movement_type, M.CARICO)
        self.assertEqual(movement.reference_number, purchase_order.number)
        self.assertEqual(stock_on_hand(self.apples), Decimal("50.000"))


class StockCardTests(BaseInventoryTestCase):
    def test_card_values_stock_at_cost(self):
        self.lettuce.preferred_supplier = self.supplier
        self.lettuce.save()
        self.load(self.apples, "10")
        self.load(self.apples, "2.5", M.SCARTO)

        card = product_stock_card(self.viewer, self.apples)

        self.assertEqual(card["stock"]["current"], Decimal("7.500"))
        self.assertEqual(card["stock"]["total_in"], Decimal("10.000"))
        self.assertEqual(card["stock"]["total_out"], Decimal("2.500"))
        self.assertEqual(card["stock"]["value"], Decimal("9.00"))
        self.assertIsNone(card["preferred_supplier"])
        self.assertEqual(len(card["movements"]), 2)
        self.assertEqual(card["purchase_stats"]["order_count"], 0)
        self.assertEqual(product_stock_card(self.viewer, self.lettuce)["preferred_supplier"], "Ortofrutta Emilia")

    def test_card_lists_purchase_prices(self):
        for price in ("1.10", "1.30"):
            PurchaseService.create_purchase_order(self.operator, {
                "supplier": str(self.supplier.public_id),
                "items": [{"product": str(self.apples.public_id), "quantity": "10", "unit_price": price}],
            })

        stats = product_stock_card(self.viewer, self.apples)["purchase_stats"]

        self.assertEqual(stats["order_count"], 2)
        self.assertEqual(stats["average_price"], Decimal("1.20"))
        self.assertEqual(stats["min_price"], Decimal("1.10"))
        self.assertEqual(stats["max_price"], Decimal("1.30"))
        self.assertEqual(stats["total_quantity"], Decimal("20.000"))

    def test_summary_includes_products_without_movements(self):
        self.load(self.apples, "4")

        levels = {p.name: p.stock_in - p.stock_out for p in stock_summary(self.viewer)}

        self.assertEqual(levels, {"Insalata Gentile": Decimal("0"), "Mele Golden": Decimal("4.000")})


class InventoryApiTests(BaseInventoryTestCase):
    def test_record_and_list_movements(self):
        self.client.force_login(self.operator_user)

        response = self.client.post(
            reverse("inventory:movement_list"),
            {"product": str(self.apples.public_id), "movement_type": "carico", "quantity": "12", "reason": "Mercato"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Decimal(response.json()["signed_quantity"]), Decimal("12"))

        response = self.client.post(
            reverse("inventory:movement_list"),
            {"product": str(self.apples.public_id), "movement_type": "scarico", "quantity": "20"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["violations"][0]["rule"], "insufficient_stock")

        response = self.client.get(reverse("inventory:movement_list"), {"q": "mercato"})
        self.assertEqual(response.json()["count"], 1)

        response = self.client.get(reverse("inventory:stock_detail", kwargs={"public_id": self.apples.public_id}))
        self.assertEqual(Decimal(response.json()["stock"]["current"]), Decimal("12"))

    def test_batch_endpoint(self):
        self.client.force_login(self.operator_user)

        response = self.client.post(
            reverse("inventory:movement_batch"),
            {"items": [
                {"product": str(self.apples.public_id), "movement_type": "carico", "quantity": "3"},
                {"product": str(self.lettuce.public_id), "movement_type": "carico", "quantity": "5"},
            ]},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["count"], 2)

    def test_viewer_reads_only(self):
        self.client.force_login(self.viewer_user)

        response = self.client.get(reverse("inventory:stock_list"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["count"], 2)

        response = self.client.post(
            reverse("inventory:movement_list"),
            {"product": str(self.apples.public_id), "movement_type": "carico", "quantity": "1"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 403)
