import uuid

from django.db import models


class BranchType(models.TextChoices):
    MAIN = "MAIN", "Main"
    SUB = "SUB", "Sub"


class Branch(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120, unique=True)
    branch_type = models.CharField(max_length=8, choices=BranchType.choices, default=BranchType.SUB)
    location = models.CharField(max_length=255, blank=True)
    contact = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["branch_type"],
                condition=models.Q(branch_type="MAIN"),
                name="unique_main_branch",
            )
        ]

    def __str__(self):
        return self.name


class BranchOrderCounter(models.Model):
    branch = models.OneToOneField(Branch, on_delete=models.CASCADE, primary_key=True, related_name="order_counter")
    prefix = models.CharField(max_length=3)
    last_number = models.PositiveIntegerField(default=0)
    last_order_id = models.CharField(max_length=32, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.prefix} #{self.last_number}"
