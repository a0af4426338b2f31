# core/testing.py
"""
Shared fixtures for the app test suites.
"""
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase

from catalog.models import Product
from contacts.models import Customer, Supplier
from core.models import Unit
from core.permissions import Principal
from sales.services import OrderService

User = get_user_model()


class FruttaGestTestCase(TestCase):
    def setUp(self):
        # Users and principals
        self.admin_user = User.objects.create_superuser("admin", "admin@fruttagest.test", "pw")
        self.operator_user = User.objects.create_user("operatore", "op@fruttagest.test", "pw", is_staff=True)
        self.viewer_user = User.objects.create_user("consulente", "viewer@fruttagest.test", "pw")
        self.viewer_user.groups.add(Group.objects.create(name="viewer"))

        self.admin = Principal.for_user(self.admin_user)
        self.operator = Principal.for_user(self.operator_user)
        self.viewer = Principal.for_user(self.viewer_user)

        # Contacts
        self.customer = Customer.objects.create(
            code="CLI-T-0001",
            company_name="Trattoria Da Mario",
            email="mario@trattoria.test",
            address="Via Roma 1",
            city="Bologna",
            province="BO",
            postal_code="40100",
            payment_terms_days=30,
        )
        self.other_customer = Customer.objects.create(
            code="CLI-T-0002",
            company_name="Hotel Bellavista",
            email="cucina@bellavista.test",
            address="Viale Mare 8",
            city="Rimini",
            province="RN",
            postal_code="47921",
            payment_terms_days=60,
        )
        self.supplier = Supplier.objects.create(
            code="FOR-T-0001",
            company_name="Ortofrutta Emilia",
            email="ordini@ortofrutta.test",
            payment_terms_days=30,
        )

        # Catalog
        self.apples = Product.objects.create(
            name="Mele Golden",
            sku="MEL-001",
            unit=Unit.KG,
            default_price=Decimal("2.00"),
            cost_price=Decimal("1.20"),
            vat_rate=Decimal("4.00"),
        )
        self.lettuce = Product.objects.create(
            name="Insalata Gentile",
            sku="INS-001",
            category=Product.Category.VERDURA,
            unit=Unit.PEZZI,
            default_price=Decimal("1.50"),
            vat_rate=Decimal("4.00"),
        )

    # ------------------------------------------------------------------
    # Payload helpers
    # ------------------------------------------------------------------
    def order_payload(self, customer=None, **overrides):
        payload = {
            "customer": str((customer or self.customer).public_id),
            "items": [
                {"product": str(self.apples.public_id), "quantity": "10"},
                {"product": str(self.lettuce.public_id), "quantity": "4"},
            ],
        }
        payload.update(overrides)
        return payload

    def create_order(self, principal=None, **overrides):
        return OrderService.create_order(principal or self.operator, self.order_payload(**overrides))

    def confirmed_order(self, **overrides):
        return OrderService.confirm_order(self.operator, self.create_order(**overrides))
