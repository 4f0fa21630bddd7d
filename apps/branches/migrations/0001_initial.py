import django.db.models.deletion
import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Branch",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=120, unique=True)),
                (
                    "branch_type",
                    models.CharField(choices=[("MAIN", "Main"), ("SUB", "Sub")], default="SUB", max_length=8),
                ),
                ("location", models.CharField(blank=True, max_length=255)),
                ("contact", models.CharField(blank=True, max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(branch_type="MAIN"),
                        fields=("branch_type",),
                        name="unique_main_branch",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="BranchOrderCounter",
            fields=[
                (
                    "branch",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="order_counter",
                        serialize=False,
                        to="branches.branch",
                    ),
                ),
                ("prefix", models.CharField(max_length=3)),
                ("last_number", models.PositiveIntegerField(default=0)),
                ("last_order_id", models.CharField(blank=True, max_length=32)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
    ]
