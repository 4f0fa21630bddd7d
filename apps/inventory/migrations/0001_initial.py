import django.db.models.deletion
import uuid

from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("branches", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="InventoryItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("product_id", models.CharField(max_length=64)),
                ("product_code", models.CharField(blank=True, max_length=64)),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("quantity", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                (
                    "status",
                    models.CharField(
                        choices=[("IN_STOCK", "In Stock"), ("LOW_STOCK", "Low Stock"), ("OUT_OF_STOCK", "Out of Stock")],
                        default="OUT_OF_STOCK",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "branch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="inventory_items",
                        to="branches.branch",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "indexes": [models.Index(fields=["branch", "status"], name="invitem_branch_status_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("branch", "product_id"), name="unique_inventory_branch_product_id"),
                    models.UniqueConstraint(fields=("branch", "product_code"), name="unique_inventory_branch_product_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryMovement",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "movement_type",
                    models.CharField(
                        choices=[("INBOUND", "Inbound"), ("OUTBOUND", "Outbound"), ("ADJUSTMENT", "Adjustment")],
                        max_length=20,
                    ),
                ),
                ("quantity_delta", models.DecimalField(decimal_places=2, max_digits=12)),
                ("quantity_after", models.DecimalField(decimal_places=2, max_digits=12)),
                ("reference_type", models.CharField(max_length=64)),
                ("reference_id", models.CharField(max_length=64)),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="inventory_movements",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="movements",
                        to="inventory.inventoryitem",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["reference_type", "reference_id"], name="invmove_reference_idx")],
            },
        ),
    ]
