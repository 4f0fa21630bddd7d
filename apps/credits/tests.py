from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.branches.models import Branch
from apps.common.exceptions import InsufficientBalance, InvalidArgument
from apps.credits.models import CreditAccount, CreditEntry
from apps.credits.services import apply_credit, get_balance
from apps.orders.services import create_order

User = get_user_model()


class CreditLedgerTests(TestCase):
    def test_balance_is_zero_without_account(self):
        self.assertEqual(get_balance("0770000000"), {"balance": Decimal("0.00"), "used_amount": Decimal("0.00")})
        self.assertFalse(CreditAccount.objects.exists())

    def test_top_up_creates_account_lazily(self):
        account = apply_credit(customer_key="077-555 1234", name="Kamal", amount="250.50")

        self.assertEqual(account.customer_key, "0775551234")
        self.assertEqual(account.balance, Decimal("250.50"))
        self.assertEqual(account.used_amount, Decimal("0.00"))
        entry = CreditEntry.objects.get(account=account)
        self.assertEqual(entry.balance_after, Decimal("250.50"))

    def test_debit_tracks_used_amount(self):
        apply_credit(customer_key="0775551234", name="Kamal", amount="100")

        apply_credit(customer_key="0775551234", name="Kamal", amount="-40")

        self.assertEqual(get_balance("0775551234"), {"balance": Decimal("60.00"), "used_amount": Decimal("40.00")})
        self.assertEqual(CreditEntry.objects.count(), 2)

    def test_overdraw_is_rejected_and_leaves_account_unchanged(self):
        apply_credit(customer_key="0775551234", name="Kamal", amount="30")

        with self.assertRaises(InsufficientBalance) as error:
            apply_credit(customer_key="0775551234", name="Kamal", amount="-50")

        self.assertEqual(str(error.exception), "Insufficient credits (need 50.00, but only 30.00 available).")
        self.assertEqual(get_balance("0775551234"), {"balance": Decimal("30.00"), "used_amount": Decimal("0.00")})
        self.assertEqual(CreditEntry.objects.count(), 1)

    def test_debit_on_missing_account_is_insufficient(self):
        with self.assertRaises(InsufficientBalance):
            apply_credit(customer_key="0779999999", name="Nobody", amount="-1")

    def test_zero_amount_and_missing_key_are_invalid(self):
        with self.assertRaises(InvalidArgument):
            apply_credit(customer_key="0775551234", name="Kamal", amount="0")
        with self.assertRaises(InvalidArgument):
            apply_credit(customer_key="", name="Kamal", amount="10")


class CreditApiTests(APITestCase):
    def setUp(self):
        self.branch = Branch.objects.create(name="Colombo")
        self.manager = User.objects.create_user(
            username="manager_cr", password="manager123", role="MANAGER", branch=self.branch
        )
        self.cashier = User.objects.create_user(
            username="cashier_cr", password="cashier123", role="CASHIER", branch=self.branch
        )

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_apply_and_read_balance(self):
        self.auth_as("manager_cr", "manager123")

        applied = self.client.post(
            "/api/v1/credits/apply/",
            {"customer_phone": "0771234567", "customer_name": "Nimal", "amount": "500.00"},
            format="json",
        )
        balance = self.client.get("/api/v1/credits/balance/", {"customer_key": "077 123 4567"})

        self.assertEqual(applied.status_code, 200)
        self.assertEqual(applied.data["balance"], "500.00")
        self.assertEqual(balance.status_code, 200)
        self.assertEqual(balance.data, {"customer_key": "0771234567", "balance": "500.00", "used_amount": "0.00"})
        self.assertTrue(AuditLog.objects.filter(action="credit.apply").exists())

    def test_balance_by_order_uses_whatsapp_number(self):
        order = create_order(branch=self.branch, customer_name="Nimal", whatsapp_number="0771234567", items=[])
        apply_credit(customer_key="0771234567", name="Nimal", amount="75")
        self.auth_as("cashier_cr", "cashier123")

        response = self.client.get(f"/api/v1/credits/balance/?order={order.order_id}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["balance"], "75.00")

    def test_balance_by_order_is_scoped_to_the_callers_branch(self):
        galle = Branch.objects.create(name="Galle")
        order = create_order(branch=galle, customer_name="Sunil", whatsapp_number="0719998888", items=[])
        apply_credit(customer_key="0719998888", name="Sunil", amount="40")
        self.auth_as("cashier_cr", "cashier123")

        response = self.client.get(f"/api/v1/credits/balance/?order={order.order_id}")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "not_found")

    def test_balance_for_unknown_order_is_not_found(self):
        self.auth_as("cashier_cr", "cashier123")

        response = self.client.get("/api/v1/credits/balance/?order=COL-0404")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "not_found")

    def test_overdraw_returns_insufficient_balance(self):
        apply_credit(customer_key="0771234567", name="Nimal", amount="30")
        self.auth_as("manager_cr", "manager123")

        response = self.client.post(
            "/api/v1/credits/apply/",
            {"customer_phone": "0771234567", "customer_name": "Nimal", "amount": "-50.00"},
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "insufficient_balance")
        self.assertEqual(response.data["fields"], {"balance": "30.00"})

    def test_cashier_cannot_apply_credit(self):
        self.auth_as("cashier_cr", "cashier123")

        response = self.client.post(
            "/api/v1/credits/apply/",
            {"customer_phone": "0771234567", "customer_name": "Nimal", "amount": "10.00"},
            format="json",
        )

        self.assertEqual(response.status_code, 403)

    def test_account_detail_lists_entries(self):
        account = apply_credit(customer_key="0771234567", name="Nimal", amount="30")
        apply_credit(customer_key="0771234567", name="Nimal", amount="-10")
        self.auth_as("cashier_cr", "cashier123")

        response = self.client.get(f"/api/v1/credits/{account.id}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data["entries"]), 2)
        self.assertEqual(response.data["used_amount"], "10.00")
