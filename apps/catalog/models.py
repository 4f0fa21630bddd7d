import uuid

from django.db import models


def normalize_code(value: str) -> str:
    return (value or "").strip()


class Product(models.Model):
    """Catalog entry for a printable product (mug, plate, banner...).

    Inventory rows are kept per branch and may reference a catalog product by
    its ``product_id``, its ``product_code`` or its legacy ``code``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, db_index=True)
    product_id = models.CharField(max_length=64, blank=True, db_index=True)
    product_code = models.CharField(max_length=64, blank=True, db_index=True)
    code = models.CharField(max_length=64, blank=True)
    default_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        self.product_id = normalize_code(self.product_id)
        self.product_code = normalize_code(self.product_code)
        self.code = normalize_code(self.code)
        super().save(*args, **kwargs)

    @property
    def inventory_identifier(self):
        return self.product_id or self.product_code or self.code

    def __str__(self):
        return f"{self.inventory_identifier or '-'} - {self.name}"
