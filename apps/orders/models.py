import uuid
from collections import namedtuple
from decimal import Decimal

from django.db import models

from apps.common.money import ZERO, quantize


class TaskStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    IN_PROGRESS = "IN_PROGRESS", "In Progress"
    TEMPORARY_COMPLETED = "TEMPORARY_COMPLETED", "Temporary Completed"
    COMPLETED = "COMPLETED", "Completed"
    RETURNED = "RETURNED", "Returned"
    SENT_TO_MAIN_BRANCH = "SENT_TO_MAIN_BRANCH", "Sent to Main Branch"


class TaskPriority(models.TextChoices):
    LOW = "LOW", "Low"
    NORMAL = "NORMAL", "Normal"
    HIGH = "HIGH", "High"
    URGENT = "URGENT", "Urgent"


class PaymentMethod(models.TextChoices):
    CASH = "CASH", "Cash"
    CARD = "CARD", "Card"
    CHEQUE = "CHEQUE", "Cheque"
    CREDITS = "CREDITS", "Customer Credits"
    ONLINE = "ONLINE", "Online Transfer"


class ChequeStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    CLEARED = "CLEARED", "Cleared"
    RETURNED = "RETURNED", "Returned"


class OnlinePaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    CONFIRMED = "CONFIRMED", "Confirmed"
    FAILED = "FAILED", "Failed"


class PaymentOutcome(models.TextChoices):
    PARTIAL = "PARTIAL", "Partial"
    COMPLETED = "COMPLETED", "Completed"
    TEMPORARY_COMPLETED = "TEMPORARY_COMPLETED", "Temporary Completed"
    REVERSAL = "REVERSAL", "Reversal"


SETTLED_STATUSES = {TaskStatus.COMPLETED, TaskStatus.TEMPORARY_COMPLETED}

LineItem = namedtuple("LineItem", ["product_ref", "unit_price", "quantity", "waste"])


class Order(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_id = models.CharField(max_length=32, unique=True)
    branch = models.ForeignKey("branches.Branch", on_delete=models.PROTECT, related_name="orders")
    customer_name = models.CharField(max_length=255)
    customer_email = models.CharField(max_length=255, blank=True)
    whatsapp_number = models.CharField(max_length=50)
    description = models.TextField(blank=True)
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    advance_payment = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    due_date = models.DateField(null=True, blank=True)
    created_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="orders",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["branch", "created_at"], name="order_branch_created_idx"),
            models.Index(fields=["whatsapp_number"], name="order_whatsapp_idx"),
        ]
        constraints = [
            models.CheckConstraint(check=models.Q(total_price__gte=0), name="order_total_gte_zero"),
            models.CheckConstraint(check=models.Q(advance_payment__gte=0), name="order_advance_gte_zero"),
        ]

    @property
    def balance_due(self):
        return max(quantize(self.total_price - self.advance_payment), ZERO)

    def __str__(self):
        return self.order_id


class Task(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.OneToOneField(Order, on_delete=models.PROTECT, related_name="task")
    branch = models.ForeignKey("branches.Branch", on_delete=models.PROTECT, related_name="tasks")
    name = models.CharField(max_length=255)
    priority = models.CharField(max_length=16, choices=TaskPriority.choices, default=TaskPriority.NORMAL)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=24, choices=TaskStatus.choices, default=TaskStatus.PENDING)
    ready_for_payment = models.BooleanField(default=False)
    start_time = models.DateTimeField(null=True, blank=True)
    end_time = models.DateTimeField(null=True, blank=True)
    advance_payment = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    full_payment = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    end_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    last_payment_method = models.CharField(max_length=16, choices=PaymentMethod.choices, blank=True)
    cheque_status = models.CharField(max_length=16, choices=ChequeStatus.choices, blank=True)
    cheque_notes = models.CharField(max_length=255, blank=True)
    online_payment_status = models.CharField(max_length=16, choices=OnlinePaymentStatus.choices, blank=True)
    online_payment_notes = models.CharField(max_length=255, blank=True)
    fulfilling_branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="fulfilled_tasks",
    )
    sent_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    # Single-product tasks captured before line items existed.
    product_ref = models.CharField(max_length=64, blank=True)
    product_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    product_quantity = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    product_waste = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["branch", "status"], name="task_branch_status_idx"),
            models.Index(fields=["fulfilling_branch", "status"], name="task_fulfilling_status_idx"),
            models.Index(fields=["status", "last_payment_method"], name="task_status_method_idx"),
        ]
        constraints = [
            models.CheckConstraint(check=models.Q(advance_payment__gte=0), name="task_advance_gte_zero"),
        ]

    def __str__(self):
        return f"{self.name} ({self.order_id})"

    @property
    def stock_branch(self):
        return self.fulfilling_branch or self.branch

    def line_items(self):
        lines = [
            LineItem(line.product_ref, line.unit_price, line.quantity, line.waste or ZERO)
            for line in self.lines.all()
        ]
        if lines:
            return lines
        if self.product_ref and self.product_quantity:
            return [
                LineItem(
                    self.product_ref,
                    self.product_price or ZERO,
                    self.product_quantity,
                    self.product_waste or ZERO,
                )
            ]
        return []

    @property
    def product_total(self):
        lines = list(self.lines.all())
        if lines:
            total = sum((line.unit_price * line.quantity for line in lines), Decimal("0"))
            return quantize(total)
        if self.product_price and self.product_quantity:
            return quantize(self.product_price * self.product_quantity)
        return ZERO

    @property
    def latest_payment(self):
        return self.payments.order_by("-created_at").first()

    @property
    def is_credit_settled(self):
        latest = self.latest_payment
        if latest is not None and latest.method == PaymentMethod.CREDITS:
            return True
        return self.last_payment_method == PaymentMethod.CREDITS


class TaskLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="lines")
    position = models.PositiveIntegerField(default=0)
    product_ref = models.CharField(max_length=64)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    waste = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    class Meta:
        ordering = ["position"]
        constraints = [
            models.CheckConstraint(check=models.Q(quantity__gt=0), name="taskline_qty_gt_zero"),
            models.CheckConstraint(check=models.Q(waste__gte=0), name="taskline_waste_gte_zero"),
        ]


class TaskPayment(models.Model):
    """One entry of a task's payment history. Rows are only ever appended."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task = models.ForeignKey(Task, on_delete=models.PROTECT, related_name="payments")
    method = models.CharField(max_length=16, choices=PaymentMethod.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    outcome = models.CharField(max_length=24, choices=PaymentOutcome.choices)
    cheque_number = models.CharField(max_length=64, blank=True)
    bank_name = models.CharField(max_length=120, blank=True)
    cheque_date = models.DateTimeField(null=True, blank=True)
    bill_number = models.CharField(max_length=64, blank=True)
    notes = models.CharField(max_length=255, blank=True)
    idempotency_key = models.CharField(max_length=64, blank=True)
    created_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="task_payments",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["task", "created_at"], name="taskpayment_task_created_idx"),
            models.Index(fields=["method"], name="taskpayment_method_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["task", "idempotency_key"],
                condition=~models.Q(idempotency_key=""),
                name="unique_taskpayment_idempotency_key",
            )
        ]

    @property
    def method_details(self):
        if self.method == PaymentMethod.CHEQUE:
            return {
                "cheque_number": self.cheque_number,
                "bank_name": self.bank_name,
                "cheque_date": self.cheque_date.isoformat() if self.cheque_date else None,
            }
        if self.method == PaymentMethod.ONLINE:
            return {"bill_number": self.bill_number, "bank_name": self.bank_name}
        return None
