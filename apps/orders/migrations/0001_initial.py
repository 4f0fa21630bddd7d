import django.db.models.deletion
import uuid

from django.conf import settings
from django.db import migrations, models


PAYMENT_METHOD_CHOICES = [
    ("CASH", "Cash"),
    ("CARD", "Card"),
    ("CHEQUE", "Cheque"),
    ("CREDITS", "Customer Credits"),
    ("ONLINE", "Online Transfer"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("branches", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_id", models.CharField(max_length=32, unique=True)),
                ("customer_name", models.CharField(max_length=255)),
                ("customer_email", models.CharField(blank=True, max_length=255)),
                ("whatsapp_number", models.CharField(max_length=50)),
                ("description", models.TextField(blank=True)),
                ("total_price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("advance_payment", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "branch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="branches.branch",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["branch", "created_at"], name="order_branch_created_idx"),
                    models.Index(fields=["whatsapp_number"], name="order_whatsapp_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(check=models.Q(total_price__gte=0), name="order_total_gte_zero"),
                    models.CheckConstraint(check=models.Q(advance_payment__gte=0), name="order_advance_gte_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Task",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                (
                    "priority",
                    models.CharField(
                        choices=[("LOW", "Low"), ("NORMAL", "Normal"), ("HIGH", "High"), ("URGENT", "Urgent")],
                        default="NORMAL",
                        max_length=16,
                    ),
                ),
                ("description", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("IN_PROGRESS", "In Progress"),
                            ("TEMPORARY_COMPLETED", "Temporary Completed"),
                            ("COMPLETED", "Completed"),
                            ("RETURNED", "Returned"),
                            ("SENT_TO_MAIN_BRANCH", "Sent to Main Branch"),
                        ],
                        default="PENDING",
                        max_length=24,
                    ),
                ),
                ("ready_for_payment", models.BooleanField(default=False)),
                ("start_time", models.DateTimeField(blank=True, null=True)),
                ("end_time", models.DateTimeField(blank=True, null=True)),
                ("advance_payment", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("full_payment", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("end_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("last_payment_method", models.CharField(blank=True, choices=PAYMENT_METHOD_CHOICES, max_length=16)),
                (
                    "cheque_status",
                    models.CharField(
                        blank=True,
                        choices=[("PENDING", "Pending"), ("CLEARED", "Cleared"), ("RETURNED", "Returned")],
                        max_length=16,
                    ),
                ),
                ("cheque_notes", models.CharField(blank=True, max_length=255)),
                (
                    "online_payment_status",
                    models.CharField(
                        blank=True,
                        choices=[("PENDING", "Pending"), ("CONFIRMED", "Confirmed"), ("FAILED", "Failed")],
                        max_length=16,
                    ),
                ),
                ("online_payment_notes", models.CharField(blank=True, max_length=255)),
                ("product_ref", models.CharField(blank=True, max_length=64)),
                ("product_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("product_quantity", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("product_waste", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "branch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tasks",
                        to="branches.branch",
                    ),
                ),
                (
                    "order",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="task",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["branch", "status"], name="task_branch_status_idx"),
                    models.Index(fields=["status", "last_payment_method"], name="task_status_method_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(check=models.Q(advance_payment__gte=0), name="task_advance_gte_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TaskLine",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("position", models.PositiveIntegerField(default=0)),
                ("product_ref", models.CharField(max_length=64)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("quantity", models.DecimalField(decimal_places=2, max_digits=12)),
                ("waste", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                (
                    "task",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="orders.task",
                    ),
                ),
            ],
            options={
                "ordering": ["position"],
                "constraints": [
                    models.CheckConstraint(check=models.Q(quantity__gt=0), name="taskline_qty_gt_zero"),
                    models.CheckConstraint(check=models.Q(waste__gte=0), name="taskline_waste_gte_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TaskPayment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("method", models.CharField(choices=PAYMENT_METHOD_CHOICES, max_length=16)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "outcome",
                    models.CharField(
                        choices=[
                            ("PARTIAL", "Partial"),
                            ("COMPLETED", "Completed"),
                            ("TEMPORARY_COMPLETED", "Temporary Completed"),
                            ("REVERSAL", "Reversal"),
                        ],
                        max_length=24,
                    ),
                ),
                ("cheque_number", models.CharField(blank=True, max_length=64)),
                ("bank_name", models.CharField(blank=True, max_length=120)),
                ("cheque_date", models.DateTimeField(blank=True, null=True)),
                ("bill_number", models.CharField(blank=True, max_length=64)),
                ("notes", models.CharField(blank=True, max_length=255)),
                ("idempotency_key", models.CharField(blank=True, max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="task_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "task",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="orders.task",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["task", "created_at"], name="taskpayment_task_created_idx"),
                    models.Index(fields=["method"], name="taskpayment_method_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("idempotency_key", ""), _negated=True),
                        fields=("task", "idempotency_key"),
                        name="unique_taskpayment_idempotency_key",
                    )
                ],
            },
        ),
    ]
