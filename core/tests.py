import threading
from dataclasses import dataclass
from datetime import date
from unittest import mock

from django.contrib.auth.models import AnonymousUser
from django.core import checks, mail
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import OperationalError, connection, transaction
from django.test import SimpleTestCase, TestCase, TransactionTestCase, skipUnlessDBFeature
from django.urls import reverse

from core.domain.dispatcher import DomainEventDispatcher
from core.domain.events import DomainEvent
from core.exceptions import ConcurrencyConflict, IllegalTransition, StorageUnavailable, Unauthorized, ValidationError
from core.models import AuditLog, DocumentType, Notification, NumberSequence, NumberingScheme
from core.permissions import Principal, Role, require
from core.services import numbering
from core.services.audit import entries, record, record_for
from core.services.notifications import create_notification, notify_staff, send_email
from core.services.numbering import allocate_number, next_document_number
from core.testing import FruttaGestTestCase, User
from core.transactions import atomic_operation
from core.validation import validate
from sales.models import Order
from sales.services import OrderService
from sales.workflow import ORDER_WORKFLOW


@dataclass(frozen=True, kw_only=True)
class PingEvent(DomainEvent):
    value: int


class _LockNotAvailable(Exception):
    sqlstate = "55P03"


# ============================================================
# System checks
# ============================================================

class SystemCheckTests(SimpleTestCase):
    def test_project_passes_system_checks(self):
        problems = [message for message in checks.run_checks() if message.is_serious()]
        self.assertEqual(problems, [])


# ============================================================
# Numbering
# ============================================================

class NumberingTests(TestCase):
    def test_allocations_are_consecutive(self):
        values = [allocate_number("invoice", "2024") for _ in range(3)]
        self.assertEqual(values, [1, 2, 3])

    def test_keys_and_periods_are_independent(self):
        allocate_number("invoice", "2024")
        allocate_number("invoice", "2024")
        self.assertEqual(allocate_number("invoice", "2025"), 1)
        self.assertEqual(allocate_number("order", "2024"), 1)

    def test_rolled_back_allocation_leaves_no_gap(self):
        self.assertEqual(allocate_number("invoice", "2024"), 1)

        with self.assertRaises(RuntimeError):
            with transaction.atomic():
                self.assertEqual(allocate_number("invoice", "2024"), 2)
                raise RuntimeError("document write failed")

        self.assertEqual(allocate_number("invoice", "2024"), 2)

    def test_losing_the_creation_race_falls_back_to_update(self):
        increment = numbering._increment

        def another_caller_creates_the_row_first(key, period):
            if not NumberSequence.objects.filter(key=key, period=period).exists():
                NumberSequence.objects.create(key=key, period=period, last_value=1)
                return None
            return increment(key, period)

        with mock.patch.object(numbering, "_increment", side_effect=another_caller_creates_the_row_first):
            value = allocate_number("invoice", "2024")

        self.assertEqual(value, 2)
        self.assertEqual(NumberSequence.objects.get(key="invoice", period="2024").last_value, 2)
        self.assertEqual(allocate_number("invoice", "2024"), 3)

    def test_document_number_format(self):
        self.assertEqual(next_document_number(DocumentType.INVOICE, on_date=date(2024, 3, 1)), "FT-2024-0001")
        self.assertEqual(next_document_number(DocumentType.INVOICE, on_date=date(2024, 7, 9)), "FT-2024-0002")
        self.assertEqual(next_document_number(DocumentType.INVOICE, on_date=date(2025, 1, 2)), "FT-2025-0001")
        self.assertEqual(next_document_number(DocumentType.ORDER, on_date=date(2024, 3, 1)), "ORD-2024-0001")

    def test_monthly_scheme(self):
        NumberingScheme.objects.create(
            document_type=DocumentType.DELIVERY_NOTE,
            prefix="DDT",
            pattern="{prefix}/{year}{month:02d}/{seq:03d}",
            reset=NumberingScheme.ResetPolicy.MONTH,
        )
        self.assertEqual(next_document_number(DocumentType.DELIVERY_NOTE, on_date=date(2024, 3, 5)), "DDT/202403/001")
        self.assertEqual(next_document_number(DocumentType.DELIVERY_NOTE, on_date=date(2024, 3, 20)), "DDT/202403/002")
        self.assertEqual(next_document_number(DocumentType.DELIVERY_NOTE, on_date=date(2024, 4, 1)), "DDT/202404/001")

    def test_scheme_pattern_needs_sequence(self):
        scheme = NumberingScheme(document_type=DocumentType.ORDER, prefix="ORD", pattern="{prefix}-{year}")
        with self.assertRaises(DjangoValidationError):
            scheme.clean()


class ConcurrentNumberingTests(TransactionTestCase):
    @skipUnlessDBFeature("has_select_for_update")
    def test_concurrent_allocations_are_unique_and_contiguous(self):
        results = []
        lock = threading.Lock()

        def worker():
            try:
                for _ in range(5):
                    value = allocate_number("invoice", "2024")
                    with lock:
                        results.append(value)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(results), list(range(1, 31)))


# ============================================================
# Activity log
# ============================================================

class AuditLogTests(FruttaGestTestCase):
    def test_entries_are_append_only(self):
        entry = record(self.admin_user, "contacts.customer", self.customer.pk, "update", {"changed": ["city"]})

        entry.message = "rewritten"
        with self.assertRaises(RuntimeError):
            entry.save()
        with self.assertRaises(RuntimeError):
            entry.delete()

        entry.refresh_from_db()
        self.assertEqual(entry.message, "")

    def test_invalid_action_is_rejected(self):
        with self.assertRaises(ValueError):
            record(self.admin_user, "contacts.customer", self.customer.pk, "Change Everything")

    def test_entries_are_chronological_and_filterable(self):
        record_for(self.admin_user, self.customer, AuditLog.Action.CREATE)
        record_for(self.operator_user, self.customer, AuditLog.Action.UPDATE, {"changed": ["email"]})
        record_for(self.operator_user, self.supplier, AuditLog.Action.CREATE)

        actions = list(entries(entity_type="contacts.customer", entity_id=self.customer.pk).values_list("action", flat=True))
        self.assertEqual(actions, ["create", "update"])
        self.assertEqual(entries(actor=self.operator_user).count(), 2)
        self.assertEqual(entries(action="create").count(), 2)

    def test_entries_without_a_user_have_no_actor(self):
        entry = record_for(None, self.customer, AuditLog.Action.UPDATE)
        self.assertIsNone(entry.actor)

    def test_failed_operation_leaves_no_entry(self):
        @atomic_operation
        def failing_operation():
            record_for(self.admin_user, self.customer, AuditLog.Action.UPDATE)
            raise ValidationError.single("email", "invalid", "Enter a valid email address.")

        with self.assertRaises(ValidationError):
            failing_operation()
        self.assertFalse(AuditLog.objects.exists())


# ============================================================
# Validation
# ============================================================

class ValidationTests(FruttaGestTestCase):
    def customer_payload(self, **overrides):
        payload = {
            "company_name": "Bar Centrale",
            "email": "info@barcentrale.test",
            "address": "Piazza Maggiore 2",
            "city": "Bologna",
            "province": "bo",
            "postal_code": "40124",
        }
        payload.update(overrides)
        return payload

    def test_missing_email_names_field_and_rule(self):
        payload = self.customer_payload()
        del payload["email"]

        with self.assertRaises(ValidationError) as ctx:
            validate("customer", payload)

        self.assertEqual(
            [(v.field, v.rule) for v in ctx.exception.violations],
            [("email", "required")],
        )

    def test_every_violation_is_reported(self):
        with self.assertRaises(ValidationError) as ctx:
            validate("customer", {"postal_code": "40A24"})

        fields = ctx.exception.fields()
        self.assertTrue({"company_name", "email", "address", "city", "province", "postal_code"} <= fields)
        rules = {(v.field, v.rule) for v in ctx.exception.violations}
        self.assertIn(("postal_code", "digits"), rules)

    def test_defaults_fill_empty_optional_fields(self):
        data = validate("customer", self.customer_payload()).data

        self.assertEqual(data["payment_terms_days"], 30)
        self.assertEqual(data["payment_method"], "bonifico")
        self.assertEqual(data["customer_type"], "ristorante")
        self.assertEqual(data["province"], "BO")

    def test_nested_item_violations_carry_their_index(self):
        payload = self.order_payload(items=[
            {"product": str(self.apples.public_id), "quantity": "3"},
            {"product": str(self.lettuce.public_id), "quantity": "0"},
        ])

        with self.assertRaises(ValidationError) as ctx:
            validate("order", payload)

        rules = {(v.field, v.rule) for v in ctx.exception.violations}
        self.assertEqual(rules, {("items.1.quantity", "min_value")})

    def test_order_needs_items(self):
        with self.assertRaises(ValidationError) as ctx:
            validate("order", self.order_payload(items=[]))

        self.assertEqual({(v.field, v.rule) for v in ctx.exception.violations}, {("items", "too_few_forms")})

    def test_unknown_entity_type(self):
        with self.assertRaises(LookupError):
            validate("spaceship", {})


# ============================================================
# Workflow
# ============================================================

class WorkflowTests(FruttaGestTestCase):
    def test_draft_order_cannot_be_invoiced(self):
        order = self.create_order()

        with self.assertRaises(IllegalTransition) as ctx:
            ORDER_WORKFLOW.apply(order, Order.Status.INVOICED, self.operator)

        self.assertEqual(ctx.exception.source, "draft")
        self.assertEqual(ctx.exception.target, "invoiced")
        self.assertEqual(ctx.exception.reason, "missing delivery note")
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.DRAFT)
        self.assertFalse(AuditLog.objects.filter(action="invoice").exists())

    def test_transition_writes_exactly_one_entry(self):
        order = self.create_order()
        before = AuditLog.objects.count()

        OrderService.confirm_order(self.operator, order)

        self.assertEqual(AuditLog.objects.count(), before + 1)
        entry = AuditLog.objects.get(action="confirm")
        self.assertEqual(entry.actor, self.operator_user)
        self.assertEqual(entry.entity_type, "sales.order")
        self.assertEqual(entry.entity_id, str(order.pk))
        self.assertEqual(entry.metadata["source"], "draft")
        self.assertEqual(entry.metadata["target"], "confirmed")

    def test_permission_is_checked_before_state(self):
        order = self.create_order()
        before = AuditLog.objects.count()

        with self.assertRaises(Unauthorized):
            ORDER_WORKFLOW.apply(order, Order.Status.INVOICED, self.viewer)

        self.assertEqual(AuditLog.objects.count(), before)

    def test_final_state_is_reported(self):
        order = OrderService.cancel_order(self.operator, self.create_order())

        with self.assertRaises(IllegalTransition) as ctx:
            ORDER_WORKFLOW.apply(order, Order.Status.CONFIRMED, self.operator)
        self.assertEqual(ctx.exception.reason, "cancelled is a final state")

    def test_source_state_is_checked_last(self):
        order = self.confirmed_order()

        with self.assertRaises(IllegalTransition) as ctx:
            ORDER_WORKFLOW.apply(order, Order.Status.CONFIRMED, self.operator)
        self.assertEqual(ctx.exception.reason, "not allowed from confirmed")

    def test_stale_instance_raises_conflict(self):
        order = self.create_order()
        stale = Order.objects.get(pk=order.pk)
        OrderService.confirm_order(self.operator, order)

        with self.assertRaises(ConcurrencyConflict):
            ORDER_WORKFLOW.apply(stale, Order.Status.CONFIRMED, self.operator)
        self.assertEqual(AuditLog.objects.filter(action="confirm").count(), 1)

    def test_graph_inspection(self):
        self.assertEqual(ORDER_WORKFLOW.allowed_actions("draft"), ["confirm", "cancel"])
        self.assertEqual(ORDER_WORKFLOW.allowed_actions("paid"), [])
        self.assertIn("delivered", ORDER_WORKFLOW.targets_from("partially_delivered"))


# ============================================================
# Principals
# ============================================================

class PermissionTests(FruttaGestTestCase):
    def test_roles_from_users(self):
        self.assertEqual(self.admin.role, Role.ADMIN)
        self.assertEqual(self.operator.role, Role.OPERATOR)
        self.assertEqual(self.viewer.role, Role.VIEWER)

    def test_portal_user_is_a_customer(self):
        user = User.objects.create_user("mario", "mario@trattoria.test", "pw")
        self.customer.portal_user = user
        self.customer.save()

        principal = Principal.for_user(user)

        self.assertEqual(principal.role, Role.CUSTOMER)
        self.assertEqual(principal.customer_id, self.customer.pk)
        self.assertFalse(principal.is_staff)

    def test_users_without_a_role_are_refused(self):
        user = User.objects.create_user("nessuno", "", "pw")
        with self.assertRaises(Unauthorized) as ctx:
            Principal.for_user(user)
        self.assertEqual(ctx.exception.reason, "no role assigned")

        with self.assertRaises(Unauthorized) as ctx:
            Principal.for_user(AnonymousUser())
        self.assertEqual(ctx.exception.reason, "unauthenticated")

        self.operator_user.is_active = False
        with self.assertRaises(Unauthorized) as ctx:
            Principal.for_user(self.operator_user)
        self.assertEqual(ctx.exception.reason, "inactive user")

    def test_action_table(self):
        self.assertTrue(self.viewer.can("sales.view"))
        self.assertFalse(self.viewer.can("sales.create_order"))
        self.assertTrue(self.operator.can("billing.record_payment"))
        self.assertFalse(self.operator.can("billing.allow_overpayment"))
        self.assertTrue(self.admin.can("billing.allow_overpayment"))

        with self.assertRaises(Unauthorized) as ctx:
            require(self.operator, "core.view_activity")
        self.assertEqual(ctx.exception.action, "core.view_activity")
        with self.assertRaises(Unauthorized):
            require(None, "sales.view")


# ============================================================
# Domain events
# ============================================================

class DispatcherTests(TestCase):
    def setUp(self):
        self.dispatcher = DomainEventDispatcher()
        self.received = []

    def test_failing_handler_does_not_stop_the_others(self):
        @self.dispatcher.register_handler(PingEvent)
        def broken(event):
            raise RuntimeError("smtp down")

        @self.dispatcher.register_handler(PingEvent)
        def collect(event):
            self.received.append(event.value)

        with self.assertLogs("core.domain.dispatcher", level="ERROR"):
            self.dispatcher.emit(PingEvent(value=7))

        self.assertEqual(self.received, [7])

    def test_emit_on_commit_waits_for_commit(self):
        self.dispatcher.register_handler(PingEvent)(lambda event: self.received.append(event.value))

        with self.captureOnCommitCallbacks(execute=True):
            self.dispatcher.emit_on_commit(PingEvent(value=1))
            self.assertEqual(self.received, [])

        self.assertEqual(self.received, [1])

    def test_emit_on_commit_is_dropped_on_rollback(self):
        self.dispatcher.register_handler(PingEvent)(lambda event: self.received.append(event.value))

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(RuntimeError):
                with transaction.atomic():
                    self.dispatcher.emit_on_commit(PingEvent(value=2))
                    raise RuntimeError("rollback")

        self.assertEqual(len(callbacks), 0)
        self.assertEqual(self.received, [])

    def test_registering_a_handler_twice_runs_it_once(self):
        def collect(event):
            self.received.append(event.value)

        self.dispatcher.register_handler(PingEvent)(collect)
        self.dispatcher.register_handler(PingEvent)(collect)
        self.dispatcher.emit(PingEvent(value=3))

        self.assertEqual(self.received, [3])


# ============================================================
# Transactions
# ============================================================

class AtomicOperationTests(TestCase):
    def test_connection_faults_become_storage_unavailable(self):
        @atomic_operation
        def broken():
            raise OperationalError("server closed the connection unexpectedly")

        with self.assertLogs("core.transactions", level="ERROR"):
            with self.assertRaises(StorageUnavailable):
                broken()

    def test_lock_failures_become_conflicts(self):
        @atomic_operation
        def locked():
            try:
                raise _LockNotAvailable()
            except _LockNotAvailable as exc:
                raise OperationalError("could not obtain lock") from exc

        with self.assertLogs("core.transactions", level="ERROR"):
            with self.assertRaises(ConcurrencyConflict):
                locked()


# ============================================================
# Notifications
# ============================================================

class NotificationServiceTests(FruttaGestTestCase):
    def test_notify_staff_reaches_active_staff(self):
        count = notify_staff("Nuovo ordine", self.customer, url="/api/customers/")

        self.assertEqual(count, 2)
        self.assertEqual(Notification.objects.filter(recipient=self.operator_user).count(), 1)
        self.assertFalse(Notification.objects.filter(recipient=self.viewer_user).exists())
        notification = Notification.objects.filter(recipient=self.admin_user).get()
        self.assertEqual(notification.target, self.customer)

    def test_send_email(self):
        self.assertFalse(send_email("Oggetto", "Testo", ["", None]))
        self.assertTrue(send_email("Oggetto", "Testo", ["mario@trattoria.test"]))
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["mario@trattoria.test"])


# ============================================================
# API
# ============================================================

class CoreApiTests(FruttaGestTestCase):
    def test_activity_is_admin_only(self):
        record_for(self.admin_user, self.customer, AuditLog.Action.CREATE)
        url = reverse("core:activity_list")

        response = self.client.get(url)
        self.assertEqual(response.status_code, 401)

        self.client.force_login(self.operator_user)
        response = self.client.get(url)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["action"], "core.view_activity")

        self.client.force_login(self.admin_user)
        response = self.client.get(url, {"entity_type": "contacts.customer"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 1)
        self.assertEqual(body["results"][0]["actor"], "admin")

    def test_notifications_can_be_read(self):
        notification = create_notification(self.operator_user, "DDT da fatturare")
        self.client.force_login(self.operator_user)

        response = self.client.get(reverse("core:notification_list"), {"unread": "1"})
        self.assertEqual(response.json()["count"], 1)

        response = self.client.post(
            reverse("core:notification_read", kwargs={"public_id": notification.public_id}),
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["is_read"])

        response = self.client.get(reverse("core:notification_list"), {"unread": "1"})
        self.assertEqual(response.json()["count"], 0)
