import django.db.models.deletion
import uuid

from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CreditAccount",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("customer_key", models.CharField(max_length=50, unique=True)),
                ("customer_phone", models.CharField(blank=True, max_length=50)),
                ("customer_name", models.CharField(max_length=255)),
                ("customer_email", models.CharField(blank=True, max_length=255)),
                ("balance", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("used_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["customer_name"],
                "indexes": [models.Index(fields=["customer_name"], name="creditaccount_name_idx")],
                "constraints": [
                    models.CheckConstraint(check=models.Q(balance__gte=0), name="credit_account_balance_gte_zero"),
                    models.CheckConstraint(check=models.Q(used_amount__gte=0), name="credit_account_used_gte_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("balance_after", models.DecimalField(decimal_places=2, max_digits=12)),
                ("reference_type", models.CharField(max_length=64)),
                ("reference_id", models.CharField(max_length=64)),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="entries",
                        to="credits.creditaccount",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="credit_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["reference_type", "reference_id"], name="creditentry_reference_idx")],
            },
        ),
    ]
