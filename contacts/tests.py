from django.urls import reverse
from django.utils import timezone

from contacts.models import Customer, Supplier
from contacts.services import CustomerService, SupplierService
from core.exceptions import Unauthorized, ValidationError
from core.models import AuditLog
from core.testing import FruttaGestTestCase, User


class BaseContactsTestCase(FruttaGestTestCase):
    def setUp(self):
        super().setUp()
        self.year = timezone.localdate().year
        self.payload = {
            "company_name": "Bar Centrale",
            "customer_type": "bar",
            "email": "info@barcentrale.test",
            "vat_number": "01234567890",
            "address": "Piazza Maggiore 2",
            "city": "Bologna",
            "province": "bo",
            "postal_code": "40124",
            "payment_terms_days": 15,
            "delivery_instructions": "Ingresso dal retro, prima delle 7",
        }


class CustomerServiceTests(BaseContactsTestCase):
    def test_create_allocates_code_and_logs(self):
        customer = CustomerService.create(self.operator, self.payload)

        self.assertEqual(customer.code, f"CLI-{self.year}-0001")
        self.assertEqual(customer.province, "BO")
        self.assertEqual(customer.delivery_instructions, "Ingresso dal retro, prima delle 7")
        self.assertEqual(customer.payment_terms_days, 15)
        self.assertEqual(customer.created_by, self.operator_user)

        entry = AuditLog.objects.get(entity_type="contacts.customer", entity_id=str(customer.pk))
        self.assertEqual(entry.action, "create")
        self.assertEqual(entry.metadata["code"], customer.code)

    def test_invalid_payload_consumes_no_code(self):
        payload = dict(self.payload)
        del payload["email"]

        with self.assertRaises(ValidationError) as ctx:
            CustomerService.create(self.operator, payload)
        self.assertEqual(ctx.exception.fields(), {"email"})
        self.assertFalse(Customer.objects.filter(company_name="Bar Centrale").exists())

        customer = CustomerService.create(self.operator, self.payload)
        self.assertEqual(customer.code, f"CLI-{self.year}-0001")

    def test_viewer_cannot_create(self):
        with self.assertRaises(Unauthorized):
            CustomerService.create(self.viewer, self.payload)
        self.assertFalse(AuditLog.objects.exists())

    def test_partial_update_records_changed_fields(self):
        customer = CustomerService.create(self.operator, self.payload)

        customer = CustomerService.update(self.operator, customer, {"city": "Modena", "delivery_zone": "Nord"})

        self.assertEqual(customer.city, "Modena")
        self.assertEqual(customer.email, "info@barcentrale.test")
        entry = AuditLog.objects.get(action="update")
        self.assertEqual(entry.metadata["changed"], ["city", "delivery_zone"])

    def test_noop_update_writes_nothing(self):
        customer = CustomerService.create(self.operator, self.payload)

        CustomerService.update(self.operator, customer, {"city": "Bologna"})

        self.assertFalse(AuditLog.objects.filter(action="update").exists())

    def test_update_is_validated(self):
        customer = CustomerService.create(self.operator, self.payload)

        with self.assertRaises(ValidationError) as ctx:
            CustomerService.update(self.operator, customer, {"email": "not-an-email"})

        self.assertEqual({(v.field, v.rule) for v in ctx.exception.violations}, {("email", "invalid")})
        customer.refresh_from_db()
        self.assertEqual(customer.email, "info@barcentrale.test")

    def test_archive(self):
        customer = CustomerService.archive(self.operator, self.customer)

        self.assertTrue(customer.is_archived)
        self.assertFalse(customer.is_active)
        self.assertEqual(customer.archived_by, self.operator_user)
        self.assertFalse(Customer.objects.alive().filter(pk=customer.pk).exists())

        with self.assertRaises(ValidationError) as ctx:
            CustomerService.update(self.operator, customer, {"city": "Parma"})
        self.assertEqual(ctx.exception.violations[0].rule, "archived")

    def test_portal_access_is_exclusive(self):
        user = User.objects.create_user("mario", "mario@trattoria.test", "pw")

        CustomerService.grant_portal_access(self.operator, self.customer, user)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.portal_user, user)
        with self.assertRaises(ValidationError) as ctx:
            CustomerService.grant_portal_access(self.operator, self.other_customer, user)
        self.assertEqual(ctx.exception.violations[0].rule, "unique")


class SupplierServiceTests(BaseContactsTestCase):
    def test_create_supplier_with_minimal_data(self):
        supplier = SupplierService.create(self.operator, {"company_name": "Agrumi di Sicilia"})

        self.assertEqual(supplier.code, f"FOR-{self.year}-0001")
        self.assertEqual(supplier.email, "")
        self.assertEqual(supplier.payment_terms_days, 30)

    def test_search(self):
        self.assertEqual(list(Supplier.objects.active().search("emilia")), [self.supplier])
        self.assertEqual(list(Customer.objects.active().search("rimini")), [self.other_customer])


class ContactsApiTests(BaseContactsTestCase):
    def test_create_and_list_customers(self):
        self.client.force_login(self.operator_user)

        response = self.client.post(reverse("contacts:customer_list"), self.payload, content_type="application/json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["code"], f"CLI-{self.year}-0001")

        response = self.client.get(reverse("contacts:customer_list"), {"q": "centrale"})
        self.assertEqual(response.json()["count"], 1)

    def test_validation_errors_are_listed(self):
        self.client.force_login(self.operator_user)

        response = self.client.post(
            reverse("contacts:customer_list"),
            {"company_name": "X"},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["error"], "validation")
        fields = {v["field"] for v in body["violations"]}
        self.assertTrue({"company_name", "email", "address"} <= fields)

    def test_malformed_json(self):
        self.client.force_login(self.operator_user)

        response = self.client.post(reverse("contacts:customer_list"), "{not json", content_type="application/json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["violations"][0]["rule"], "invalid_json")

    def test_viewer_reads_but_cannot_edit(self):
        self.client.force_login(self.viewer_user)
        url = reverse("contacts:customer_detail", kwargs={"public_id": self.customer.public_id})

        self.assertEqual(self.client.get(url).status_code, 200)
        response = self.client.patch(url, {"city": "Imola"}, content_type="application/json")
        self.assertEqual(response.status_code, 403)

    def test_archived_customers_are_hidden(self):
        CustomerService.archive(self.operator, self.other_customer)
        self.client.force_login(self.operator_user)

        response = self.client.get(reverse("contacts:customer_list"))
        self.assertEqual(response.json()["count"], 1)
        response = self.client.get(reverse("contacts:customer_list"), {"archived": "1"})
        self.assertEqual(response.json()["count"], 2)
