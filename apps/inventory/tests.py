from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.branches.models import Branch
from apps.catalog.models import Product
from apps.common.exceptions import InvalidArgument
from apps.inventory.models import InventoryItem, InventoryMovement, MovementType, StockStatus, stock_status_for
from apps.inventory.services import adjust_inventory, release_inventory, resolve_inventory_item, restore_inventory

User = get_user_model()


class StockStatusTests(TestCase):
    def test_status_is_a_function_of_quantity(self):
        cases = [
            ("-3", StockStatus.OUT_OF_STOCK),
            ("0", StockStatus.OUT_OF_STOCK),
            ("0.5", StockStatus.LOW_STOCK),
            ("10", StockStatus.LOW_STOCK),
            ("10.01", StockStatus.IN_STOCK),
            ("250", StockStatus.IN_STOCK),
        ]
        for quantity, expected in cases:
            with self.subTest(quantity=quantity):
                self.assertEqual(stock_status_for(Decimal(quantity)), expected)

    @override_settings(INVENTORY_LOW_STOCK_THRESHOLD=3)
    def test_threshold_is_configurable(self):
        self.assertEqual(stock_status_for(Decimal("4")), StockStatus.IN_STOCK)
        self.assertEqual(stock_status_for(Decimal("3")), StockStatus.LOW_STOCK)

    def test_save_recomputes_status_and_assigns_code(self):
        branch = Branch.objects.create(name="Colombo")
        item = InventoryItem.objects.create(branch=branch, name="Plate", product_id="PLT-1", quantity=Decimal("50"))

        self.assertEqual(item.status, StockStatus.IN_STOCK)
        self.assertEqual(len(item.product_code), 8)
        self.assertTrue(item.product_code.isdigit())

        item.quantity = Decimal("-2")
        item.save(update_fields=["quantity"])
        item.refresh_from_db()
        self.assertEqual(item.status, StockStatus.OUT_OF_STOCK)


class ResolverTests(TestCase):
    def setUp(self):
        self.branch = Branch.objects.create(name="Colombo")
        self.other_branch = Branch.objects.create(name="Kandy")
        self.item = InventoryItem.objects.create(
            branch=self.branch,
            name="White mug",
            product_id="MUG-01",
            product_code="40001234",
            quantity=Decimal("20"),
        )

    def test_identity_match(self):
        item_id, attempted = resolve_inventory_item(str(self.item.id), self.branch)

        self.assertEqual(item_id, self.item.id)
        self.assertEqual(attempted, ("identity",))

    def test_product_id_match(self):
        item_id, attempted = resolve_inventory_item("MUG-01", self.branch)

        self.assertEqual(item_id, self.item.id)
        self.assertEqual(attempted, ("identity", "product_id"))

    def test_product_code_match(self):
        item_id, attempted = resolve_inventory_item("40001234", self.branch)

        self.assertEqual(item_id, self.item.id)
        self.assertEqual(attempted, ("identity", "product_id", "product_code"))

    def test_catalog_product_match(self):
        product = Product.objects.create(name="Mug 11oz", product_code="40001234")

        item_id, attempted = resolve_inventory_item(str(product.id), self.branch)

        self.assertEqual(item_id, self.item.id)
        self.assertEqual(attempted[-1], "catalog_product")

    def test_catalog_product_prefers_product_id_then_code(self):
        product = Product.objects.create(name="Mug 11oz", product_id="MUG-01", product_code="nope", code="nope")

        item_id, _ = resolve_inventory_item(str(product.id), self.branch)

        self.assertEqual(item_id, self.item.id)

    def test_catalog_product_takes_product_id_match_over_code_match(self):
        by_code = InventoryItem.objects.create(
            branch=self.branch, name="Alpha plate", product_id="PLT-9", product_code="X-1", quantity=Decimal("5")
        )
        by_id = InventoryItem.objects.create(branch=self.branch, name="Zeta mug", product_id="X-1", quantity=Decimal("5"))
        product = Product.objects.create(name="Zeta mug", product_id="X-1")

        item_id, attempted = resolve_inventory_item(str(product.id), self.branch)

        self.assertEqual(item_id, by_id.id)
        self.assertNotEqual(item_id, by_code.id)
        self.assertEqual(attempted[-1], "catalog_product")

    def test_catalog_product_falls_back_to_code_match(self):
        by_code = InventoryItem.objects.create(
            branch=self.branch, name="Alpha plate", product_id="PLT-9", product_code="X-1", quantity=Decimal("5")
        )
        product = Product.objects.create(name="Alpha plate", product_id="X-1")

        item_id, _ = resolve_inventory_item(str(product.id), self.branch)

        self.assertEqual(item_id, by_code.id)

    def test_lookups_are_scoped_to_branch(self):
        item_id, attempted = resolve_inventory_item("MUG-01", self.other_branch)

        self.assertIsNone(item_id)
        self.assertEqual(len(attempted), 4)

    def test_release_moves_stock_and_writes_movement(self):
        item, miss = release_inventory("MUG-01", Decimal("12"), self.branch, reference_type="test", reference_id="T-1")

        self.assertIsNone(miss)
        self.assertEqual(item.quantity, Decimal("8.00"))
        self.assertEqual(item.status, StockStatus.LOW_STOCK)
        movement = InventoryMovement.objects.get(item=self.item)
        self.assertEqual(movement.movement_type, MovementType.OUTBOUND)
        self.assertEqual(movement.quantity_delta, Decimal("-12.00"))
        self.assertEqual(movement.quantity_after, Decimal("8.00"))

    def test_release_can_drive_stock_negative(self):
        item, _ = release_inventory("MUG-01", Decimal("25"), self.branch, reference_type="test", reference_id="T-2")

        self.assertEqual(item.quantity, Decimal("-5.00"))
        self.assertEqual(item.status, StockStatus.OUT_OF_STOCK)

    def test_release_is_noop_for_blank_or_not_applicable_refs(self):
        for ref, quantity in (("", Decimal("1")), ("N/A", Decimal("1")), ("MUG-01", Decimal("0")), ("MUG-01", Decimal("-1"))):
            with self.subTest(ref=ref, quantity=quantity):
                self.assertEqual(
                    release_inventory(ref, quantity, self.branch, reference_type="test", reference_id="T-3"),
                    (None, None),
                )
        self.assertFalse(InventoryMovement.objects.exists())

    def test_miss_is_reported_not_raised(self):
        with self.assertLogs("apps.inventory.services", level="WARNING"):
            item, miss = release_inventory("GHOST", Decimal("1"), self.branch, reference_type="test", reference_id="T-4")

        self.assertIsNone(item)
        self.assertEqual(miss.as_dict()["attempted"], ["identity", "product_id", "product_code", "catalog_product"])
        self.assertEqual(miss.branch, "Colombo")

    def test_anonymous_actor_is_stored_as_null(self):
        release_inventory(
            "MUG-01", Decimal("1"), self.branch, reference_type="test", reference_id="T-6", actor=AnonymousUser()
        )

        self.assertIsNone(InventoryMovement.objects.get(item=self.item).created_by)

    def test_restore_adds_stock_back(self):
        release_inventory("MUG-01", Decimal("5"), self.branch, reference_type="test", reference_id="T-5")

        item, _ = restore_inventory("MUG-01", Decimal("5"), self.branch, reference_type="test", reference_id="T-5")

        self.assertEqual(item.quantity, Decimal("20.00"))
        self.assertEqual(InventoryMovement.objects.filter(movement_type=MovementType.INBOUND).count(), 1)

    def test_adjust_rejects_zero(self):
        with self.assertRaises(InvalidArgument):
            adjust_inventory(self.item, Decimal("0"), reference_id="MUG-01")


class InventoryApiTests(APITestCase):
    def setUp(self):
        self.branch = Branch.objects.create(name="Colombo")
        self.admin = User.objects.create_user(username="admin_inv", password="admin123", role="ADMIN", branch=self.branch)
        self.cashier = User.objects.create_user(
            username="cashier_inv", password="cash123", role="CASHIER", branch=self.branch
        )
        self.item = InventoryItem.objects.create(
            branch=self.branch, name="White mug", product_id="MUG-01", quantity=Decimal("20")
        )

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_adjustment_is_audited_and_recorded(self):
        self.auth_as("admin_inv", "admin123")

        response = self.client.post(
            f"/api/v1/inventory/items/{self.item.id}/adjust/",
            {"quantity_delta": "-15.00", "note": "Broken in storage"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["quantity"], "5.00")
        self.assertEqual(response.data["status"], StockStatus.LOW_STOCK)
        movement = InventoryMovement.objects.get(item=self.item)
        self.assertEqual(movement.movement_type, MovementType.ADJUSTMENT)
        self.assertEqual(movement.created_by, self.admin)
        self.assertTrue(AuditLog.objects.filter(action="inventory.adjust", entity_id=str(self.item.id)).exists())

    def test_cashier_cannot_adjust(self):
        self.auth_as("cashier_inv", "cash123")

        response = self.client.post(
            f"/api/v1/inventory/items/{self.item.id}/adjust/",
            {"quantity_delta": "5.00"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_item_rejects_duplicate_product_id(self):
        self.auth_as("admin_inv", "admin123")

        created = self.client.post(
            "/api/v1/inventory/items/",
            {"name": "Plate", "product_id": "PLT-1", "price": "300.00", "quantity": "4"},
            format="json",
        )
        duplicate = self.client.post(
            "/api/v1/inventory/items/",
            {"name": "Plate again", "product_id": "MUG-01", "quantity": "1"},
            format="json",
        )

        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        self.assertEqual(created.data["status"], StockStatus.LOW_STOCK)
        self.assertEqual(len(created.data["product_code"]), 8)
        self.assertEqual(duplicate.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("product_id", duplicate.data["fields"])

    def test_patch_cannot_change_quantity(self):
        self.auth_as("admin_inv", "admin123")

        response = self.client.patch(f"/api/v1/inventory/items/{self.item.id}/", {"quantity": "99"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, Decimal("20.00"))

    def test_items_and_movements_are_branch_scoped(self):
        other = Branch.objects.create(name="Galle")
        InventoryItem.objects.create(branch=other, name="Galle mug", product_id="MUG-01", quantity=Decimal("3"))
        release_inventory("MUG-01", Decimal("1"), other, reference_type="test", reference_id="G-1")
        self.auth_as("cashier_inv", "cash123")

        items = self.client.get("/api/v1/inventory/items/")
        movements = self.client.get("/api/v1/inventory/movements/")
        low = self.client.get("/api/v1/inventory/items/?status=low_stock")

        self.assertEqual(items.data["count"], 1)
        self.assertEqual(movements.data["count"], 0)
        self.assertEqual(low.data["count"], 0)
