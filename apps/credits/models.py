import re
import uuid

from django.db import models


def normalize_phone(value):
    raw = str(value or "").strip()
    normalized = re.sub(r"\D+", "", raw)
    return normalized or raw


class CreditAccount(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer_key = models.CharField(max_length=50, unique=True)
    customer_phone = models.CharField(max_length=50, blank=True)
    customer_name = models.CharField(max_length=255)
    customer_email = models.CharField(max_length=255, blank=True)
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    used_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["customer_name"]
        indexes = [
            models.Index(fields=["customer_name"], name="creditaccount_name_idx"),
        ]
        constraints = [
            models.CheckConstraint(check=models.Q(balance__gte=0), name="credit_account_balance_gte_zero"),
            models.CheckConstraint(check=models.Q(used_amount__gte=0), name="credit_account_used_gte_zero"),
        ]

    def __str__(self):
        return f"{self.customer_name} ({self.customer_phone or self.customer_key})"


class CreditEntry(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    account = models.ForeignKey(CreditAccount, on_delete=models.CASCADE, related_name="entries")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    balance_after = models.DecimalField(max_digits=12, decimal_places=2)
    reference_type = models.CharField(max_length=64)
    reference_id = models.CharField(max_length=64)
    note = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="credit_entries",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["reference_type", "reference_id"], name="creditentry_reference_idx"),
        ]
