from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.branches.models import Branch
from apps.common.exceptions import Conflict, InvalidArgument
from apps.credits.services import apply_credit
from apps.inventory.models import InventoryItem
from apps.orders.models import ChequeStatus, OnlinePaymentStatus, PaymentOutcome, TaskStatus
from apps.orders.services import COMPLETED_MESSAGE, create_order, record_payment
from apps.settlements.models import DeferredPayment, DeferredPaymentStatus
from apps.settlements.services import complete_credit_settlement, resolve_cheque, resolve_online_payment

User = get_user_model()

CHEQUE = {"cheque_number": "000123", "bank_name": "People's Bank"}
TRANSFER = {"bill_number": "TRX-90", "bank_name": "Sampath"}


class SettlementFixtures:
    def setUp(self):
        self.branch = Branch.objects.create(name="Colombo")
        self.manager = User.objects.create_user(
            username="manager_set", password="manager123", role="MANAGER", branch=self.branch
        )
        self.mug = InventoryItem.objects.create(
            branch=self.branch,
            name="White mug",
            product_id="MUG-01",
            price=Decimal("500.00"),
            quantity=Decimal("20.00"),
        )

    def make_task(self):
        order = create_order(
            branch=self.branch,
            customer_name="Nimal Perera",
            whatsapp_number="0771234567",
            items=[{"product_ref": "MUG-01", "unit_price": "500.00", "quantity": "2"}],
        )
        return order.task

    def pay(self, task, amount, method, metadata=None):
        return record_payment(
            task_id=task.pk,
            branch=self.branch,
            amount=amount,
            method=method,
            metadata=metadata,
            actor=self.manager,
        )


class ChequeResolutionTests(SettlementFixtures, TestCase):
    def test_cleared_cheque_completes_task(self):
        task = self.make_task()
        self.pay(task, "1000", "CHEQUE", CHEQUE)

        resolved = resolve_cheque(task_id=task.pk, branch=self.branch, outcome="cleared", actor=self.manager)

        self.assertEqual(resolved.status, TaskStatus.COMPLETED)
        self.assertEqual(resolved.cheque_status, ChequeStatus.CLEARED)
        self.assertEqual(resolved.cheque_notes, "Cheque cleared successfully")
        deferred = DeferredPayment.objects.get(task=task)
        self.assertEqual(deferred.status, DeferredPaymentStatus.CLEARED)
        self.assertEqual(deferred.resolved_by, self.manager)
        self.assertIsNotNone(deferred.resolved_at)
        self.mug.refresh_from_db()
        self.assertEqual(self.mug.quantity, Decimal("18.00"))

    def test_returned_cheque_reverses_payment_and_rejects_second_resolution(self):
        task = self.make_task()
        self.pay(task, "1000", "CHEQUE", CHEQUE)

        resolved = resolve_cheque(task_id=task.pk, branch=self.branch, outcome="RETURNED", notes="bounced")

        self.assertEqual(resolved.status, TaskStatus.RETURNED)
        self.assertEqual(resolved.cheque_status, ChequeStatus.RETURNED)
        self.assertEqual(resolved.cheque_notes, "bounced")
        with self.assertRaises(Conflict):
            resolve_cheque(task_id=task.pk, branch=self.branch, outcome="CLEARED")

        task.refresh_from_db()
        self.assertIsNone(task.full_payment)
        self.assertIsNone(task.end_time)
        self.assertTrue(task.ready_for_payment)
        self.assertEqual(task.advance_payment, Decimal("0.00"))
        self.assertEqual(task.order.advance_payment, Decimal("0.00"))
        reversal = task.payments.get(outcome=PaymentOutcome.REVERSAL)
        self.assertEqual(reversal.amount, Decimal("-1000.00"))
        self.mug.refresh_from_db()
        self.assertEqual(self.mug.quantity, Decimal("20.00"))
        self.assertEqual(DeferredPayment.objects.get(task=task).status, DeferredPaymentStatus.RETURNED)

    def test_returned_cheque_default_note(self):
        task = self.make_task()
        self.pay(task, "1000", "CHEQUE", CHEQUE)

        resolved = resolve_cheque(task_id=task.pk, branch=self.branch, outcome="RETURNED")

        self.assertEqual(resolved.cheque_notes, "Cheque returned by bank")

    def test_returned_task_can_be_paid_again(self):
        task = self.make_task()
        self.pay(task, "1000", "CHEQUE", CHEQUE)
        resolve_cheque(task_id=task.pk, branch=self.branch, outcome="RETURNED", notes="bounced")

        result = self.pay(task, "1000", "CASH")

        task.refresh_from_db()
        self.mug.refresh_from_db()
        self.assertEqual(result.message, COMPLETED_MESSAGE)
        self.assertEqual(task.status, TaskStatus.COMPLETED)
        self.assertEqual(task.order.advance_payment, Decimal("1000.00"))
        self.assertEqual(self.mug.quantity, Decimal("18.00"))
        self.assertEqual(task.payments.count(), 3)

    def test_partial_cash_then_returned_cheque_only_reverses_cheque_share(self):
        task = self.make_task()
        self.pay(task, "400", "CASH")
        self.pay(task, "600", "CHEQUE", CHEQUE)

        resolve_cheque(task_id=task.pk, branch=self.branch, outcome="RETURNED")

        task.refresh_from_db()
        self.assertEqual(task.order.advance_payment, Decimal("400.00"))
        self.assertEqual(task.advance_payment, Decimal("400.00"))

    def test_requires_pending_cheque(self):
        task = self.make_task()
        self.pay(task, "1000", "CASH")

        with self.assertRaises(Conflict):
            resolve_cheque(task_id=task.pk, branch=self.branch, outcome="CLEARED")

    def test_rejects_unknown_outcome(self):
        task = self.make_task()
        self.pay(task, "1000", "CHEQUE", CHEQUE)

        with self.assertRaises(InvalidArgument):
            resolve_cheque(task_id=task.pk, branch=self.branch, outcome="CONFIRMED")


class OnlinePaymentResolutionTests(SettlementFixtures, TestCase):
    def test_confirmed_transfer_marks_status(self):
        task = self.make_task()
        self.pay(task, "1000", "ONLINE", TRANSFER)

        resolved = resolve_online_payment(task_id=task.pk, branch=self.branch, outcome="CONFIRMED")

        self.assertEqual(resolved.status, TaskStatus.COMPLETED)
        self.assertEqual(resolved.online_payment_status, OnlinePaymentStatus.CONFIRMED)
        self.assertEqual(DeferredPayment.objects.get(task=task).status, DeferredPaymentStatus.CONFIRMED)

    def test_confirmed_partial_transfer_leaves_task_open(self):
        task = self.make_task()
        self.pay(task, "300", "ONLINE", TRANSFER)

        resolved = resolve_online_payment(task_id=task.pk, branch=self.branch, outcome="CONFIRMED")

        self.assertEqual(resolved.status, TaskStatus.PENDING)
        self.assertEqual(resolved.online_payment_status, OnlinePaymentStatus.CONFIRMED)

    def test_failed_transfer_keeps_stock_and_records_notes(self):
        task = self.make_task()
        self.pay(task, "1000", "ONLINE", TRANSFER)

        resolved = resolve_online_payment(
            task_id=task.pk, branch=self.branch, outcome="failed", notes="Reference not found"
        )

        self.assertEqual(resolved.online_payment_status, OnlinePaymentStatus.FAILED)
        self.assertEqual(resolved.online_payment_notes, "Reference not found")
        self.assertEqual(resolved.status, TaskStatus.COMPLETED)
        self.mug.refresh_from_db()
        self.assertEqual(self.mug.quantity, Decimal("18.00"))
        with self.assertRaises(Conflict):
            resolve_online_payment(task_id=task.pk, branch=self.branch, outcome="CONFIRMED")

    def test_requires_pending_transfer(self):
        task = self.make_task()

        with self.assertRaises(Conflict):
            resolve_online_payment(task_id=task.pk, branch=self.branch, outcome="CONFIRMED")


class CreditSettlementTests(SettlementFixtures, TestCase):
    def test_completes_credit_settled_task(self):
        apply_credit(customer_key="0771234567", name="Nimal Perera", amount="1000")
        task = self.make_task()
        self.pay(task, "1000", "CREDITS")

        completed = complete_credit_settlement(task_id=task.pk, branch=self.branch, actor=self.manager)

        self.assertEqual(completed.status, TaskStatus.COMPLETED)
        self.assertTrue(AuditLog.objects.filter(action="credit.complete", entity_id=str(task.id)).exists())

    def test_clears_legacy_cheque_status(self):
        apply_credit(customer_key="0771234567", name="Nimal Perera", amount="1000")
        task = self.make_task()
        self.pay(task, "1000", "CREDITS")
        task.refresh_from_db()
        task.cheque_status = ChequeStatus.PENDING
        task.save(update_fields=["cheque_status"])

        completed = complete_credit_settlement(task_id=task.pk, branch=self.branch)

        self.assertEqual(completed.cheque_status, "")

    def test_rejects_cheque_settled_task(self):
        task = self.make_task()
        self.pay(task, "1000", "CHEQUE", CHEQUE)

        with self.assertRaises(Conflict):
            complete_credit_settlement(task_id=task.pk, branch=self.branch)

    def test_rejects_task_not_awaiting_clearance(self):
        task = self.make_task()

        with self.assertRaises(Conflict):
            complete_credit_settlement(task_id=task.pk, branch=self.branch)


class SettlementApiTests(SettlementFixtures, APITestCase):
    def setUp(self):
        super().setUp()
        self.cashier = User.objects.create_user(
            username="cashier_set", password="cashier123", role="CASHIER", branch=self.branch
        )

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_cashier_cannot_resolve_cheques(self):
        task = self.make_task()
        self.pay(task, "1000", "CHEQUE", CHEQUE)
        self.auth_as("cashier_set", "cashier123")

        response = self.client.post(f"/api/v1/tasks/{task.pk}/cheque-status/", {"outcome": "CLEARED"}, format="json")

        self.assertEqual(response.status_code, 403)

    def test_manager_resolves_cheque_and_second_call_conflicts(self):
        task = self.make_task()
        self.pay(task, "1000", "CHEQUE", CHEQUE)
        self.auth_as("manager_set", "manager123")
        url = f"/api/v1/tasks/{task.pk}/cheque-status/"

        first = self.client.post(url, {"outcome": "returned", "notes": "bounced"}, format="json")
        second = self.client.post(url, {"outcome": "returned"}, format="json")

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.data["task"]["status"], "RETURNED")
        self.assertEqual(first.data["task"]["cheque_notes"], "bounced")
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.data["code"], "conflict")
        self.assertTrue(AuditLog.objects.filter(action="cheque.resolve").exists())

    def test_online_payment_status_endpoint(self):
        task = self.make_task()
        self.pay(task, "1000", "ONLINE", TRANSFER)
        self.auth_as("manager_set", "manager123")

        response = self.client.post(
            f"/api/v1/tasks/{task.pk}/online-payment-status/", {"outcome": "CONFIRMED"}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["task"]["online_payment_status"], "CONFIRMED")

    def test_complete_credit_endpoint(self):
        apply_credit(customer_key="0771234567", name="Nimal Perera", amount="1000")
        task = self.make_task()
        self.pay(task, "1000", "CREDITS")
        self.auth_as("manager_set", "manager123")

        response = self.client.post(f"/api/v1/tasks/{task.pk}/complete-credit/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["task"]["status"], "COMPLETED")

    def test_deferred_payment_listing_filters(self):
        cheque_task = self.make_task()
        online_task = self.make_task()
        self.pay(cheque_task, "1000", "CHEQUE", CHEQUE)
        self.pay(online_task, "1000", "ONLINE", TRANSFER)
        self.auth_as("cashier_set", "cashier123")

        everything = self.client.get("/api/v1/deferred-payments/")
        cheques = self.client.get("/api/v1/deferred-payments/?kind=cheque&status=pending")

        self.assertEqual(everything.data["count"], 2)
        self.assertEqual(cheques.data["count"], 1)
        self.assertEqual(cheques.data["results"][0]["cheque_number"], "000123")
