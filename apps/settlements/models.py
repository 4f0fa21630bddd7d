import uuid

from django.db import models


class DeferredPaymentKind(models.TextChoices):
    CHEQUE = "CHEQUE", "Cheque"
    ONLINE = "ONLINE", "Online Transfer"


class DeferredPaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    CLEARED = "CLEARED", "Cleared"
    RETURNED = "RETURNED", "Returned"
    CONFIRMED = "CONFIRMED", "Confirmed"
    FAILED = "FAILED", "Failed"


ALLOWED_OUTCOMES = {
    DeferredPaymentKind.CHEQUE: {DeferredPaymentStatus.CLEARED, DeferredPaymentStatus.RETURNED},
    DeferredPaymentKind.ONLINE: {DeferredPaymentStatus.CONFIRMED, DeferredPaymentStatus.FAILED},
}


class DeferredPayment(models.Model):
    """A cheque or online transfer whose funds are confirmed after the fact."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    kind = models.CharField(max_length=16, choices=DeferredPaymentKind.choices)
    status = models.CharField(max_length=16, choices=DeferredPaymentStatus.choices, default=DeferredPaymentStatus.PENDING)
    task = models.ForeignKey("orders.Task", on_delete=models.PROTECT, related_name="deferred_payments")
    order = models.ForeignKey("orders.Order", on_delete=models.PROTECT, related_name="deferred_payments")
    branch = models.ForeignKey("branches.Branch", on_delete=models.PROTECT, related_name="deferred_payments")
    payment = models.ForeignKey("orders.TaskPayment", on_delete=models.PROTECT, related_name="deferred_payments")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    applied_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    bank_name = models.CharField(max_length=120, blank=True)
    cheque_number = models.CharField(max_length=64, blank=True)
    cheque_date = models.DateTimeField(null=True, blank=True)
    bill_number = models.CharField(max_length=64, blank=True)
    customer_name = models.CharField(max_length=255)
    customer_phone = models.CharField(max_length=50, blank=True)
    notes = models.CharField(max_length=255, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="resolved_deferred_payments",
    )
    created_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="deferred_payments",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["branch", "kind", "status"], name="deferred_branch_kind_idx"),
            models.Index(fields=["task", "status"], name="deferred_task_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(check=models.Q(amount__gt=0), name="deferred_amount_gt_zero"),
        ]

    @property
    def is_pending(self):
        return self.status == DeferredPaymentStatus.PENDING

    def __str__(self):
        return f"{self.get_kind_display()} {self.amount} ({self.get_status_display()})"
