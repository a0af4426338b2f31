from decimal import Decimal
from io import BytesIO

from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from openpyxl import Workbook, load_workbook

from catalog.models import CustomerPrice, Product
from catalog.services import ProductService, export_price_list, import_price_list
from core.exceptions import Unauthorized, ValidationError
from core.models import AuditLog
from core.testing import FruttaGestTestCase


def xlsx_file(rows) -> BytesIO:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


class ProductServiceTests(FruttaGestTestCase):
    def test_create_product_with_defaults(self):
        product = ProductService.create_product(
            self.operator,
            {"name": "Fragole", "unit": "cassetta", "default_price": "12.50"},
        )

        self.assertEqual(product.category, Product.Category.FRUTTA)
        self.assertEqual(product.vat_rate, Decimal("4.00"))
        self.assertTrue(product.is_available)
        self.assertIsNone(product.sku)
        self.assertTrue(AuditLog.objects.filter(entity_type="catalog.product", action="create").exists())

    def test_season_needs_both_ends(self):
        with self.assertRaises(ValidationError) as ctx:
            ProductService.create_product(
                self.operator,
                {"name": "Ciliegie", "unit": "kg", "default_price": "6.00", "seasonal_from": 5},
            )
        self.assertEqual(
            {(v.field, v.rule) for v in ctx.exception.violations},
            {("seasonal_to", "incomplete_season")},
        )

    def test_update_product(self):
        product = ProductService.update_product(self.operator, self.apples, {"default_price": "2.20"})

        self.assertEqual(product.default_price, Decimal("2.20"))
        self.assertEqual(product.sku, "MEL-001")
        entry = AuditLog.objects.get(action="update")
        self.assertEqual(entry.metadata["changed"], ["default_price"])

    def test_preferred_supplier_survives_other_updates(self):
        product = ProductService.update_product(
            self.operator, self.apples, {"preferred_supplier": str(self.supplier.public_id)}
        )
        self.assertEqual(product.preferred_supplier, self.supplier)

        product = ProductService.update_product(self.operator, product, {"cost_price": "1.35"})

        product.refresh_from_db()
        self.assertEqual(product.preferred_supplier, self.supplier)
        self.assertEqual(product.cost_price, Decimal("1.35"))

    def test_archive_product(self):
        product = ProductService.archive_product(self.operator, self.lettuce)

        self.assertTrue(product.is_archived)
        self.assertFalse(product.is_available)
        self.assertEqual(list(Product.objects.available()), [self.apples])

    def test_viewer_cannot_change_catalog(self):
        with self.assertRaises(Unauthorized):
            ProductService.update_product(self.viewer, self.apples, {"default_price": "9.99"})


class CustomerPriceTests(FruttaGestTestCase):
    def test_customer_price_overrides_list_price(self):
        ProductService.set_customer_price(self.operator, self.customer, self.apples, "1.80")

        self.assertEqual(self.apples.price_for(self.customer), Decimal("1.80"))
        self.assertEqual(self.apples.price_for(self.other_customer), Decimal("2.00"))
        self.assertEqual(self.apples.price_for(None), Decimal("2.00"))

    def test_setting_again_updates_the_price(self):
        ProductService.set_customer_price(self.operator, self.customer, self.apples, "1.80")
        ProductService.set_customer_price(self.operator, self.customer, self.apples, "1.70")

        self.assertEqual(CustomerPrice.objects.get().price, Decimal("1.70"))
        entries = AuditLog.objects.filter(action="set_customer_price").chronological()
        self.assertEqual([entry.metadata["created"] for entry in entries], [True, False])

    def test_price_must_be_positive(self):
        with self.assertRaises(ValidationError) as ctx:
            ProductService.set_customer_price(self.operator, self.customer, self.apples, "0")
        self.assertEqual(ctx.exception.violations[0].rule, "min_value")


class SeasonTests(FruttaGestTestCase):
    def setUp(self):
        super().setUp()
        self.oranges = Product.objects.create(
            name="Arance Tarocco",
            unit="kg",
            default_price=Decimal("1.60"),
            seasonal_from=11,
            seasonal_to=3,
        )
        self.peaches = Product.objects.create(
            name="Pesche",
            unit="kg",
            default_price=Decimal("2.80"),
            seasonal_from=6,
            seasonal_to=9,
        )

    def test_window_wrapping_year_end(self):
        december = set(Product.objects.in_season(12))
        self.assertIn(self.oranges, december)
        self.assertNotIn(self.peaches, december)

    def test_straight_window(self):
        july = set(Product.objects.in_season(7))
        self.assertIn(self.peaches, july)
        self.assertNotIn(self.oranges, july)
        self.assertIn(self.apples, july)


class PriceListTests(FruttaGestTestCase):
    def test_import_creates_updates_and_reports(self):
        upload = xlsx_file([
            ["Codice", "Nome", "Unita", "Prezzo", "IVA"],
            ["MEL-001", "Mele Golden", "KG", 2.40, 4],
            ["ARA-001", "Arance Tarocco", "kg", 1.80, 4],
            ["", "Latte", "litri", 1.10, 4],
            [None, None, None, None, None],
        ])

        summary = import_price_list(self.operator, upload)

        self.assertEqual(summary["created"], 1)
        self.assertEqual(summary["updated"], 1)
        self.assertEqual(len(summary["errors"]), 1)
        self.assertTrue(summary["errors"][0].startswith("Row 4: unit"))

        self.apples.refresh_from_db()
        self.assertEqual(self.apples.default_price, Decimal("2.40"))
        self.assertEqual(self.apples.cost_price, Decimal("1.20"))
        self.assertTrue(Product.objects.filter(sku="ARA-001", unit="kg").exists())
        self.assertFalse(Product.objects.filter(name="Latte").exists())
        self.assertEqual(AuditLog.objects.get(action="import").metadata, {"created": 1, "updated": 1, "errors": 1})

    def test_import_needs_required_columns(self):
        with self.assertRaises(ValidationError) as ctx:
            import_price_list(self.operator, xlsx_file([["nome", "prezzo"], ["Mele", 2]]))
        self.assertEqual(ctx.exception.violations[0].rule, "missing_columns")

    def test_export_for_customer(self):
        ProductService.set_customer_price(self.operator, self.customer, self.apples, "1.80")

        ws = export_price_list(self.customer).active
        rows = list(ws.iter_rows(min_row=2, values_only=True))

        self.assertEqual(ws.title, "Listino")
        self.assertEqual(rows[0][:5], ("MEL-001", "Mele Golden", "frutta", "kg", 1.8))
        self.assertIsNone(rows[0][5])
        self.assertEqual(rows[1][1], "Insalata Gentile")

    def test_export_reads_back_as_import(self):
        buffer = BytesIO()
        export_price_list().save(buffer)
        buffer.seek(0)

        summary = import_price_list(self.operator, buffer)

        self.assertEqual(summary, {"created": 0, "updated": 2, "errors": []})


class CatalogApiTests(FruttaGestTestCase):
    def test_import_endpoint(self):
        self.client.force_login(self.operator_user)
        upload = SimpleUploadedFile(
            "listino.xlsx",
            xlsx_file([["nome", "unita", "prezzo"], ["Zucchine", "kg", 1.9]]).getvalue(),
        )

        response = self.client.post(reverse("catalog:price_list_import"), {"file": upload})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["created"], 1)

    def test_export_endpoint(self):
        self.client.force_login(self.viewer_user)

        response = self.client.get(reverse("catalog:price_list_export"))

        self.assertEqual(response.status_code, 200)
        ws = load_workbook(BytesIO(response.content)).active
        self.assertEqual(ws.max_row, 3)

    def test_customer_price_endpoint(self):
        self.client.force_login(self.operator_user)
        url = reverse("catalog:customer_price", kwargs={"public_id": self.apples.public_id})

        response = self.client.post(
            url,
            {"customer": str(self.customer.public_id), "price": "1.75"},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.apples.price_for(self.customer), Decimal("1.75"))
