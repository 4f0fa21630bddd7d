import random
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class StockStatus(models.TextChoices):
    IN_STOCK = "IN_STOCK", "In Stock"
    LOW_STOCK = "LOW_STOCK", "Low Stock"
    OUT_OF_STOCK = "OUT_OF_STOCK", "Out of Stock"


class MovementType(models.TextChoices):
    INBOUND = "INBOUND", "Inbound"
    OUTBOUND = "OUTBOUND", "Outbound"
    ADJUSTMENT = "ADJUSTMENT", "Adjustment"


def low_stock_threshold():
    return Decimal(str(getattr(settings, "INVENTORY_LOW_STOCK_THRESHOLD", 10)))


def stock_status_for(quantity):
    quantity = Decimal(quantity)
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= low_stock_threshold():
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def generate_product_code():
    return str(random.randint(10_000_000, 99_999_999))


class InventoryItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    branch = models.ForeignKey("branches.Branch", on_delete=models.PROTECT, related_name="inventory_items")
    name = models.CharField(max_length=255)
    product_id = models.CharField(max_length=64)
    product_code = models.CharField(max_length=64, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    quantity = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=16, choices=StockStatus.choices, default=StockStatus.OUT_OF_STOCK)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["branch", "status"], name="invitem_branch_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["branch", "product_id"], name="unique_inventory_branch_product_id"),
            models.UniqueConstraint(fields=["branch", "product_code"], name="unique_inventory_branch_product_code"),
        ]

    def clean(self):
        if not (self.product_id or "").strip():
            raise ValidationError("product_id is required")

    def _assign_product_code(self):
        code = generate_product_code()
        siblings = InventoryItem.objects.filter(branch_id=self.branch_id)
        while siblings.filter(product_code=code).exists():
            code = generate_product_code()
        self.product_code = code

    def save(self, *args, **kwargs):
        self.product_id = (self.product_id or "").strip()
        self.product_code = (self.product_code or "").strip()
        if not self.product_code:
            self._assign_product_code()
        self.status = stock_status_for(self.quantity)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "quantity" in update_fields:
            kwargs["update_fields"] = {*update_fields, "status"}
        self.full_clean(exclude=["branch"], validate_unique=False, validate_constraints=False)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.product_id}) @ {self.branch_id}"


class InventoryMovement(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    item = models.ForeignKey(InventoryItem, on_delete=models.PROTECT, related_name="movements")
    movement_type = models.CharField(max_length=20, choices=MovementType.choices)
    quantity_delta = models.DecimalField(max_digits=12, decimal_places=2)
    quantity_after = models.DecimalField(max_digits=12, decimal_places=2)
    reference_type = models.CharField(max_length=64)
    reference_id = models.CharField(max_length=64)
    note = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="inventory_movements",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["reference_type", "reference_id"], name="invmove_reference_idx"),
        ]

    def clean(self):
        if self.quantity_delta == 0:
            raise ValidationError("quantity_delta cannot be zero")

    def save(self, *args, **kwargs):
        self.full_clean(exclude=["item", "created_by"])
        super().save(*args, **kwargs)
