from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.branches.models import Branch, BranchType
from apps.common.exceptions import Conflict, InsufficientBalance, InvalidArgument, NotFound
from apps.credits.models import CreditAccount
from apps.credits.services import apply_credit, get_balance
from apps.inventory.models import InventoryItem, InventoryMovement
from apps.orders.models import ChequeStatus, OnlinePaymentStatus, Order, PaymentOutcome, Task, TaskPayment, TaskStatus
from apps.orders.querysets import tasks_for_branch
from apps.orders.services import (
    COMPLETED_MESSAGE,
    PARTIAL_MESSAGE,
    create_order,
    mark_ready_for_payment,
    receive_sent_task,
    record_payment,
    send_to_main_branch,
    start_task,
)
from apps.settlements.models import DeferredPayment, DeferredPaymentKind, DeferredPaymentStatus
from apps.settlements.services import resolve_cheque

User = get_user_model()

CHEQUE = {"cheque_number": "000123", "bank_name": "People's Bank"}


class PaymentEngineTests(TestCase):
    def setUp(self):
        self.branch = Branch.objects.create(name="Colombo")
        self.cashier = User.objects.create_user(username="cashier_pay", password="cashier123", role="CASHIER", branch=self.branch)
        self.mug = InventoryItem.objects.create(
            branch=self.branch,
            name="White mug",
            product_id="MUG-01",
            price=Decimal("500.00"),
            quantity=Decimal("20.00"),
        )

    def make_task(self, items=None, **kwargs):
        order = create_order(
            branch=self.branch,
            customer_name="Nimal Perera",
            whatsapp_number="077 123 4567",
            items=items if items is not None else [{"product_ref": "MUG-01", "unit_price": "500.00", "quantity": "2"}],
            **kwargs,
        )
        return order.task

    def pay(self, task, amount, method, **kwargs):
        return record_payment(task_id=task.pk, branch=self.branch, amount=amount, method=method, actor=self.cashier, **kwargs)

    def test_cash_settlement_completes_task_and_releases_stock(self):
        task = self.make_task()

        result = self.pay(task, "1000", "CASH")

        task.refresh_from_db()
        order = task.order
        self.mug.refresh_from_db()
        self.assertEqual(result.message, COMPLETED_MESSAGE)
        self.assertFalse(result.is_temporary_completed)
        self.assertEqual(task.status, TaskStatus.COMPLETED)
        self.assertEqual(task.full_payment, Decimal("1000.00"))
        self.assertEqual(task.end_price, Decimal("1000.00"))
        self.assertIsNotNone(task.end_time)
        self.assertEqual(task.last_payment_method, "CASH")
        self.assertEqual(order.total_price, Decimal("1000.00"))
        self.assertEqual(order.advance_payment, Decimal("1000.00"))
        self.assertEqual(self.mug.quantity, Decimal("18.00"))
        self.assertEqual(len(result.released), 1)
        self.assertEqual(result.resolution_misses, [])
        self.assertTrue(AuditLog.objects.filter(action="payment.record", entity_id=str(task.id)).exists())

    def test_cheque_settlement_is_temporary_and_still_releases_stock(self):
        task = self.make_task()

        result = self.pay(task, "1000", "CHEQUE", metadata=CHEQUE)

        task.refresh_from_db()
        self.mug.refresh_from_db()
        self.assertTrue(result.is_temporary_completed)
        self.assertIn("pending cheque clearance", result.message)
        self.assertEqual(task.status, TaskStatus.TEMPORARY_COMPLETED)
        self.assertEqual(task.cheque_status, ChequeStatus.PENDING)
        self.assertEqual(self.mug.quantity, Decimal("18.00"))

        deferred = result.deferred_payment
        self.assertEqual(deferred.kind, DeferredPaymentKind.CHEQUE)
        self.assertEqual(deferred.status, DeferredPaymentStatus.PENDING)
        self.assertEqual(deferred.applied_amount, Decimal("1000.00"))
        self.assertEqual(deferred.cheque_number, "000123")
        self.assertIsNotNone(deferred.cheque_date)

        payment = task.payments.get()
        self.assertEqual(payment.method_details["bank_name"], "People's Bank")

    def test_partial_card_payment_then_balance_completes(self):
        task = self.make_task()
        start_task(task_id=task.pk, branch=self.branch)

        first = self.pay(task, "400", "CARD")

        task.refresh_from_db()
        self.assertEqual(first.message, PARTIAL_MESSAGE)
        self.assertEqual(task.status, TaskStatus.IN_PROGRESS)
        self.assertEqual(task.order.advance_payment, Decimal("400.00"))
        self.assertEqual(task.advance_payment, Decimal("400.00"))
        self.assertIsNone(task.full_payment)
        self.assertFalse(InventoryMovement.objects.exists())

        second = self.pay(task, "600", "CARD")

        task.refresh_from_db()
        self.mug.refresh_from_db()
        self.assertEqual(second.message, COMPLETED_MESSAGE)
        self.assertEqual(task.status, TaskStatus.COMPLETED)
        self.assertEqual(task.full_payment, Decimal("1000.00"))
        self.assertEqual(task.order.advance_payment, Decimal("1000.00"))
        self.assertEqual(self.mug.quantity, Decimal("18.00"))
        self.assertEqual(task.payments.count(), 2)

    def test_split_payment_matches_single_payment_end_state(self):
        split = self.make_task()
        single = self.make_task()

        self.pay(split, "600", "CASH")
        self.pay(split, "400", "CASH")
        self.pay(single, "1000", "CASH")

        split.refresh_from_db()
        single.refresh_from_db()
        for field in ("status", "full_payment", "end_price", "advance_payment", "last_payment_method"):
            self.assertEqual(getattr(split, field), getattr(single, field), field)
        self.assertEqual(split.order.advance_payment, single.order.advance_payment)
        self.mug.refresh_from_db()
        self.assertEqual(self.mug.quantity, Decimal("16.00"))

    def test_non_positive_amounts_are_rejected_without_writes(self):
        task = self.make_task()

        for amount in ("0", "-5", "abc", None):
            with self.assertRaises(InvalidArgument):
                self.pay(task, amount, "CASH")

        task.refresh_from_db()
        self.assertEqual(task.payments.count(), 0)
        self.assertEqual(task.order.advance_payment, Decimal("0.00"))

    def test_unknown_method_is_rejected(self):
        task = self.make_task()

        with self.assertRaises(InvalidArgument):
            self.pay(task, "100", "BITCOIN")

    def test_cheque_and_online_require_their_metadata(self):
        task = self.make_task()

        with self.assertRaises(InvalidArgument) as cheque_error:
            self.pay(task, "1000", "CHEQUE", metadata={"bank_name": "BOC"})
        with self.assertRaises(InvalidArgument) as online_error:
            self.pay(task, "1000", "ONLINE", metadata={"bill_number": "TRX-1"})

        self.assertIn("cheque_number", cheque_error.exception.fields)
        self.assertIn("bank_name", online_error.exception.fields)
        self.assertEqual(task.payments.count(), 0)

    def test_unknown_task_or_foreign_branch_is_not_found(self):
        task = self.make_task()
        other = Branch.objects.create(name="Kandy")

        with self.assertRaises(NotFound):
            record_payment(task_id=task.pk, branch=other, amount="100", method="CASH")
        with self.assertRaises(NotFound):
            record_payment(task_id="not-a-uuid", branch=self.branch, amount="100", method="CASH")

    def test_settled_task_rejects_further_payments(self):
        task = self.make_task()
        self.pay(task, "1000", "CASH")

        with self.assertRaises(Conflict):
            self.pay(task, "10", "CASH")

        self.mug.refresh_from_db()
        self.assertEqual(self.mug.quantity, Decimal("18.00"))
        self.assertEqual(task.payments.count(), 1)

    def test_declared_total_overrides_and_keeps_advance_within_total(self):
        task = self.make_task()

        result = self.pay(task, "1000", "CASH", declared_total="1200")

        order = Order.objects.get(pk=task.order_id)
        self.assertEqual(result.message, PARTIAL_MESSAGE)
        self.assertEqual(order.total_price, Decimal("1200.00"))
        self.assertEqual(order.advance_payment, Decimal("1000.00"))

        self.pay(task, "500", "CASH", declared_total="1200")

        order.refresh_from_db()
        task.refresh_from_db()
        self.assertEqual(task.status, TaskStatus.COMPLETED)
        self.assertEqual(order.advance_payment, Decimal("1200.00"))
        self.assertLessEqual(order.advance_payment, order.total_price)

    def test_overpayment_caps_advance_at_effective_total(self):
        task = self.make_task()

        self.pay(task, "1500", "CASH")

        order = Order.objects.get(pk=task.order_id)
        self.assertEqual(order.advance_payment, Decimal("1000.00"))
        self.assertEqual(task.payments.get().amount, Decimal("1500.00"))

    def test_order_without_any_price_needs_declared_total(self):
        task = self.make_task(items=[])

        with self.assertRaises(InvalidArgument):
            self.pay(task, "100", "CASH")

        result = self.pay(task, "100", "CASH", declared_total="100")
        self.assertEqual(result.message, COMPLETED_MESSAGE)

    def test_waste_is_released_with_quantity(self):
        task = self.make_task(items=[{"product_ref": "MUG-01", "unit_price": "500.00", "quantity": "2", "waste": "1"}])

        self.pay(task, "1000", "CASH")

        self.mug.refresh_from_db()
        self.assertEqual(self.mug.quantity, Decimal("17.00"))

    def test_legacy_single_product_task_uses_its_product_fields(self):
        order = Order.objects.create(
            order_id="COL-9001",
            branch=self.branch,
            customer_name="Legacy",
            whatsapp_number="0711111111",
        )
        task = Task.objects.create(
            order=order,
            branch=self.branch,
            name="Legacy mug",
            product_ref="MUG-01",
            product_price=Decimal("250.00"),
            product_quantity=Decimal("4.00"),
        )

        result = self.pay(task, "1000", "CASH")

        self.mug.refresh_from_db()
        self.assertEqual(result.message, COMPLETED_MESSAGE)
        self.assertEqual(self.mug.quantity, Decimal("16.00"))

    def test_unresolved_product_does_not_block_settlement(self):
        task = self.make_task(items=[{"product_ref": "NO-SUCH", "unit_price": "100.00", "quantity": "1"}])

        with self.assertLogs("apps.inventory.services", level="WARNING") as logs:
            result = self.pay(task, "100", "CASH")

        task.refresh_from_db()
        self.assertEqual(task.status, TaskStatus.COMPLETED)
        self.assertEqual(len(result.resolution_misses), 1)
        self.assertEqual(
            result.resolution_misses[0].attempted,
            ("identity", "product_id", "product_code", "catalog_product"),
        )
        self.assertIn("NO-SUCH", logs.output[0])

    def test_online_payment_opens_deferred_record_even_when_partial(self):
        task = self.make_task()

        result = self.pay(task, "300", "ONLINE", metadata={"bill_number": "TRX-77", "bank_name": "HNB"})

        task.refresh_from_db()
        self.assertEqual(result.message, PARTIAL_MESSAGE)
        self.assertEqual(task.online_payment_status, OnlinePaymentStatus.PENDING)
        deferred = DeferredPayment.objects.get(task=task)
        self.assertEqual(deferred.kind, DeferredPaymentKind.ONLINE)
        self.assertEqual(deferred.amount, Decimal("300.00"))
        self.assertEqual(deferred.customer_phone, "077 123 4567")

    def test_online_settlement_completes_immediately(self):
        task = self.make_task()

        result = self.pay(task, "1000", "ONLINE", metadata={"bill_number": "TRX-78", "bank_name": "HNB"})

        task.refresh_from_db()
        self.assertEqual(result.message, COMPLETED_MESSAGE)
        self.assertEqual(task.status, TaskStatus.COMPLETED)
        self.assertEqual(task.online_payment_status, OnlinePaymentStatus.PENDING)

    def test_credits_payment_debits_account_and_is_temporary(self):
        apply_credit(customer_key="0771234567", name="Nimal Perera", amount="1500")
        task = self.make_task()

        result = self.pay(task, "1000", "CREDITS")

        task.refresh_from_db()
        self.assertIn("pending credit clearance", result.message)
        self.assertEqual(task.status, TaskStatus.TEMPORARY_COMPLETED)
        self.assertTrue(task.is_credit_settled)
        self.assertEqual(task.cheque_status, "")
        self.assertEqual(get_balance("077 123 4567"), {"balance": Decimal("500.00"), "used_amount": Decimal("1000.00")})

    def test_credits_payment_aborts_when_balance_is_short(self):
        apply_credit(customer_key="0771234567", name="Nimal Perera", amount="100")
        task = self.make_task()

        with self.assertRaises(InsufficientBalance):
            self.pay(task, "1000", "CREDITS")

        task.refresh_from_db()
        self.mug.refresh_from_db()
        self.assertEqual(task.status, TaskStatus.PENDING)
        self.assertEqual(task.payments.count(), 0)
        self.assertEqual(task.order.advance_payment, Decimal("0.00"))
        self.assertEqual(task.order.total_price, Decimal("0.00"))
        self.assertEqual(self.mug.quantity, Decimal("20.00"))
        self.assertEqual(CreditAccount.objects.get().balance, Decimal("100.00"))

    def test_idempotency_key_replays_recorded_outcome(self):
        task = self.make_task()

        first = self.pay(task, "400", "CASH", idempotency_key="till-7-0001")
        replay = self.pay(task, "400", "CASH", idempotency_key="till-7-0001")

        task.refresh_from_db()
        self.assertFalse(first.replayed)
        self.assertTrue(replay.replayed)
        self.assertEqual(replay.payment.pk, first.payment.pk)
        self.assertEqual(replay.message, PARTIAL_MESSAGE)
        self.assertEqual(task.payments.count(), 1)
        self.assertEqual(task.order.advance_payment, Decimal("400.00"))

    def test_payment_history_records_outcomes(self):
        task = self.make_task()

        self.pay(task, "400", "CASH")
        self.pay(task, "600", "CARD")

        outcomes = list(TaskPayment.objects.filter(task=task).values_list("outcome", flat=True))
        self.assertEqual(outcomes, [PaymentOutcome.PARTIAL, PaymentOutcome.COMPLETED])


class TaskLifecycleTests(TestCase):
    def setUp(self):
        self.branch = Branch.objects.create(name="Main Branch")

    def test_create_order_allocates_branch_order_ids(self):
        first = create_order(branch=self.branch, customer_name="A", whatsapp_number="1", items=[])
        second = create_order(branch=self.branch, customer_name="B", whatsapp_number="2", items=[])

        self.assertEqual(first.order_id, "MB-0001")
        self.assertEqual(second.order_id, "MB-0002")
        self.assertEqual(first.task.status, TaskStatus.PENDING)
        self.assertTrue(AuditLog.objects.filter(action="order.create", entity_id=str(first.id)).exists())

    def test_create_order_rejects_advance_above_total(self):
        with self.assertRaises(InvalidArgument):
            create_order(
                branch=self.branch,
                customer_name="A",
                whatsapp_number="1",
                items=[],
                total_price="100",
                advance_payment="150",
            )
        self.assertFalse(Order.objects.exists())

    def test_start_task_only_from_pending(self):
        task = create_order(branch=self.branch, customer_name="A", whatsapp_number="1", items=[]).task

        started = start_task(task_id=task.pk, branch=self.branch)

        self.assertEqual(started.status, TaskStatus.IN_PROGRESS)
        self.assertIsNotNone(started.start_time)
        with self.assertRaises(Conflict):
            start_task(task_id=task.pk, branch=self.branch)

    def test_mark_ready_for_payment(self):
        task = create_order(branch=self.branch, customer_name="A", whatsapp_number="1", items=[]).task

        updated = mark_ready_for_payment(task_id=task.pk, branch=self.branch)

        self.assertTrue(updated.ready_for_payment)


class SendToMainBranchTests(TestCase):
    def setUp(self):
        self.main = Branch.objects.create(name="Main Branch", branch_type=BranchType.MAIN)
        self.kandy = Branch.objects.create(name="Kandy")
        self.kandy_plates = InventoryItem.objects.create(
            branch=self.kandy, name="Photo plate", product_id="PLT-1", quantity=Decimal("10")
        )
        self.main_plates = InventoryItem.objects.create(
            branch=self.main, name="Photo plate", product_id="PLT-1", quantity=Decimal("30")
        )
        self.task = create_order(
            branch=self.kandy,
            customer_name="Ruwan",
            whatsapp_number="0711112222",
            items=[{"product_ref": "PLT-1", "unit_price": "750.00", "quantity": "2", "waste": "1"}],
        ).task

    def send_and_receive(self):
        send_to_main_branch(task_id=self.task.pk, branch=self.kandy)
        return receive_sent_task(task_id=self.task.pk, branch=self.main)

    def test_send_moves_task_to_main_branch_queue(self):
        sent = send_to_main_branch(task_id=self.task.pk, branch=self.kandy)

        self.assertEqual(sent.status, TaskStatus.SENT_TO_MAIN_BRANCH)
        self.assertEqual(sent.fulfilling_branch, self.main)
        self.assertIsNotNone(sent.sent_at)
        self.assertIsNone(sent.received_at)
        self.assertEqual(tasks_for_branch(Task.objects.all(), self.main).get(), sent)
        self.assertTrue(AuditLog.objects.filter(action="task.send_to_main", entity_id=str(sent.id)).exists())

    def test_only_open_tasks_of_a_sub_branch_can_be_sent(self):
        own = create_order(branch=self.main, customer_name="A", whatsapp_number="1", items=[]).task
        with self.assertRaises(Conflict):
            send_to_main_branch(task_id=own.pk, branch=self.main)

        send_to_main_branch(task_id=self.task.pk, branch=self.kandy)
        with self.assertRaises(Conflict):
            send_to_main_branch(task_id=self.task.pk, branch=self.kandy)

    def test_send_without_main_branch_is_not_found(self):
        self.main.branch_type = BranchType.SUB
        self.main.save(update_fields=["branch_type"])

        with self.assertRaises(NotFound):
            send_to_main_branch(task_id=self.task.pk, branch=self.kandy)
        self.task.refresh_from_db()
        self.assertEqual(self.task.status, TaskStatus.PENDING)

    def test_only_the_main_branch_receives_once(self):
        send_to_main_branch(task_id=self.task.pk, branch=self.kandy)

        with self.assertRaises(Conflict):
            receive_sent_task(task_id=self.task.pk, branch=self.kandy)
        received = receive_sent_task(task_id=self.task.pk, branch=self.main)
        self.assertIsNotNone(received.received_at)
        with self.assertRaises(Conflict):
            receive_sent_task(task_id=self.task.pk, branch=self.main)

    def test_payment_waits_for_the_main_branch(self):
        send_to_main_branch(task_id=self.task.pk, branch=self.kandy)

        with self.assertRaises(Conflict):
            record_payment(task_id=self.task.pk, branch=self.main, amount="1500", method="CASH")
        receive_sent_task(task_id=self.task.pk, branch=self.main)
        with self.assertRaises(Conflict):
            record_payment(task_id=self.task.pk, branch=self.kandy, amount="1500", method="CASH")
        self.assertFalse(TaskPayment.objects.exists())

    def test_main_branch_settles_and_releases_its_own_stock(self):
        self.send_and_receive()

        partial = record_payment(task_id=self.task.pk, branch=self.main, amount="500", method="CASH")
        self.assertEqual(partial.task.status, TaskStatus.SENT_TO_MAIN_BRANCH)
        result = record_payment(task_id=self.task.pk, branch=self.main, amount="1000", method="CASH")

        self.kandy_plates.refresh_from_db()
        self.main_plates.refresh_from_db()
        self.assertEqual(result.task.status, TaskStatus.COMPLETED)
        self.assertEqual(result.task.full_payment, Decimal("1500.00"))
        self.assertEqual(self.main_plates.quantity, Decimal("27.00"))
        self.assertEqual(self.kandy_plates.quantity, Decimal("10.00"))

    def test_returned_cheque_restores_main_branch_stock(self):
        self.send_and_receive()
        record_payment(task_id=self.task.pk, branch=self.main, amount="1500", method="CHEQUE", metadata=CHEQUE)

        resolve_cheque(task_id=self.task.pk, branch=self.main, outcome="RETURNED")

        self.main_plates.refresh_from_db()
        deferred = DeferredPayment.objects.get()
        self.assertEqual(deferred.branch, self.main)
        self.assertEqual(self.main_plates.quantity, Decimal("30.00"))

class TaskApiTests(APITestCase):
    def setUp(self):
        self.branch = Branch.objects.create(name="Colombo")
        self.other_branch = Branch.objects.create(name="Galle")
        self.cashier = User.objects.create_user(
            username="cashier_api", password="cashier123", role="CASHIER", branch=self.branch
        )
        self.manager = User.objects.create_user(
            username="manager_api", password="manager123", role="MANAGER", branch=self.branch
        )
        self.drifter = User.objects.create_user(username="nobranch", password="nobranch123", role="CASHIER")
        InventoryItem.objects.create(
            branch=self.branch, name="White mug", product_id="MUG-01", price=Decimal("500.00"), quantity=Decimal("20.00")
        )

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def create_order(self):
        response = self.client.post(
            "/api/v1/orders/",
            {
                "customer_name": "Nimal Perera",
                "whatsapp_number": "0771234567",
                "task_name": "Photo mugs",
                "items": [{"product_ref": "MUG-01", "unit_price": "500.00", "quantity": "2"}],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        return response.data

    def test_order_intake_returns_task_with_lines(self):
        self.auth_as("cashier_api", "cashier123")

        data = self.create_order()

        self.assertEqual(data["order_id"], "COL-0001")
        self.assertEqual(data["task"]["status"], "PENDING")
        self.assertEqual(data["task"]["product_total"], "1000.00")
        self.assertEqual(len(data["task"]["lines"]), 1)

    def test_record_payment_endpoint_settles_task(self):
        self.auth_as("cashier_api", "cashier123")
        task_id = self.create_order()["task"]["id"]

        response = self.client.post(
            f"/api/v1/tasks/{task_id}/payments/",
            {"amount": "1000.00", "method": "cash"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["message"], COMPLETED_MESSAGE)
        self.assertFalse(response.data["is_temporary_completed"])
        self.assertEqual(response.data["task"]["status"], "COMPLETED")
        self.assertEqual(response.data["task"]["full_payment"], "1000.00")
        self.assertEqual(len(response.data["task"]["payments"]), 1)

    def test_zero_amount_returns_invalid_argument(self):
        self.auth_as("cashier_api", "cashier123")
        task_id = self.create_order()["task"]["id"]

        response = self.client.post(f"/api/v1/tasks/{task_id}/payments/", {"amount": "0", "method": "CASH"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_argument")
        self.assertFalse(TaskPayment.objects.exists())

    def test_second_settlement_returns_conflict(self):
        self.auth_as("cashier_api", "cashier123")
        task_id = self.create_order()["task"]["id"]
        self.client.post(f"/api/v1/tasks/{task_id}/payments/", {"amount": "1000", "method": "CASH"}, format="json")

        response = self.client.post(f"/api/v1/tasks/{task_id}/payments/", {"amount": "1", "method": "CASH"}, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "conflict")

    def test_idempotency_header_replays_with_200(self):
        self.auth_as("cashier_api", "cashier123")
        task_id = self.create_order()["task"]["id"]
        url = f"/api/v1/tasks/{task_id}/payments/"

        first = self.client.post(url, {"amount": "400", "method": "CASH"}, format="json", HTTP_IDEMPOTENCY_KEY="k-1")
        second = self.client.post(url, {"amount": "400", "method": "CASH"}, format="json", HTTP_IDEMPOTENCY_KEY="k-1")

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 200)
        self.assertTrue(second.data["replayed"])
        self.assertEqual(TaskPayment.objects.count(), 1)

    def test_overlong_idempotency_header_is_rejected(self):
        self.auth_as("cashier_api", "cashier123")
        task_id = self.create_order()["task"]["id"]

        response = self.client.post(
            f"/api/v1/tasks/{task_id}/payments/",
            {"amount": "400", "method": "CASH"},
            format="json",
            HTTP_IDEMPOTENCY_KEY="k" * 65,
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_argument")
        self.assertIn("idempotency_key", response.data["fields"])
        self.assertFalse(TaskPayment.objects.exists())

    def test_tasks_are_scoped_to_the_users_branch(self):
        self.auth_as("cashier_api", "cashier123")
        task_id = self.create_order()["task"]["id"]
        outsider = User.objects.create_user(
            username="galle_cashier", password="galle123", role="CASHIER", branch=self.other_branch
        )
        self.assertIsNotNone(outsider.pk)

        self.auth_as("galle_cashier", "galle123")
        listing = self.client.get("/api/v1/tasks/")
        payment = self.client.post(f"/api/v1/tasks/{task_id}/payments/", {"amount": "10", "method": "CASH"}, format="json")

        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.data["count"], 0)
        self.assertEqual(payment.status_code, 404)

    def test_user_without_branch_gets_not_found(self):
        self.auth_as("nobranch", "nobranch123")

        response = self.client.get("/api/v1/tasks/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "not_found")

    def test_task_list_filters_by_status(self):
        self.auth_as("cashier_api", "cashier123")
        task_id = self.create_order()["task"]["id"]
        self.create_order()
        self.client.post(f"/api/v1/tasks/{task_id}/start/")

        response = self.client.get("/api/v1/tasks/?status=in_progress")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["id"], task_id)

    def test_ready_for_payment_endpoint(self):
        self.auth_as("cashier_api", "cashier123")
        task_id = self.create_order()["task"]["id"]

        response = self.client.post(f"/api/v1/tasks/{task_id}/ready-for-payment/")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["task"]["ready_for_payment"])
        self.assertTrue(AuditLog.objects.filter(action="task.ready_for_payment").exists())

    def test_history_lists_task_audit_trail_oldest_first(self):
        self.auth_as("cashier_api", "cashier123")
        task_id = self.create_order()["task"]["id"]
        self.client.post(f"/api/v1/tasks/{task_id}/start/")
        self.client.post(f"/api/v1/tasks/{task_id}/payments/", {"amount": "250", "method": "CASH"}, format="json")

        response = self.client.get(f"/api/v1/tasks/{task_id}/history/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([entry["action"] for entry in response.data], ["task.start", "payment.record"])
        self.assertEqual(response.data[0]["actor"], "cashier_api")
        self.assertEqual(response.data[1]["payload"]["amount"], "250.00")

    def test_send_receive_and_settle_through_the_main_branch(self):
        main = Branch.objects.create(name="Main Branch", branch_type=BranchType.MAIN)
        User.objects.create_user(username="main_cashier", password="main123", role="CASHIER", branch=main)
        self.auth_as("cashier_api", "cashier123")
        task_id = self.create_order()["task"]["id"]

        sent = self.client.post(f"/api/v1/tasks/{task_id}/send-to-main/")
        outgoing = self.client.get("/api/v1/tasks/sent/")
        self.auth_as("main_cashier", "main123")
        incoming = self.client.get("/api/v1/tasks/sent/")
        received = self.client.post(f"/api/v1/tasks/{task_id}/receive/")
        paid = self.client.post(f"/api/v1/tasks/{task_id}/payments/", {"amount": "1000", "method": "CASH"}, format="json")

        self.assertEqual(sent.status_code, 200)
        self.assertEqual(sent.data["task"]["status"], "SENT_TO_MAIN_BRANCH")
        self.assertEqual(sent.data["task"]["fulfilling_branch"], "Main Branch")
        self.assertEqual(outgoing.data["count"], 1)
        self.assertEqual(incoming.data["count"], 1)
        self.assertEqual(incoming.data["results"][0]["id"], task_id)
        self.assertIsNotNone(received.data["task"]["received_at"])
        self.assertEqual(paid.status_code, 201)
        self.assertEqual(paid.data["task"]["status"], "COMPLETED")
        self.assertEqual(paid.data["unresolved_products"][0]["branch"], "Main Branch")
