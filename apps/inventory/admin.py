from django.contrib import admin

from apps.inventory.models import InventoryItem, InventoryMovement


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ("name", "branch", "product_id", "product_code", "price", "quantity", "status")
    list_filter = ("branch", "status")
    search_fields = ("name", "product_id", "product_code")
    readonly_fields = ("status",)


@admin.register(InventoryMovement)
class InventoryMovementAdmin(admin.ModelAdmin):
    list_display = (
        "item",
        "movement_type",
        "quantity_delta",
        "quantity_after",
        "reference_type",
        "reference_id",
        "created_by",
        "created_at",
    )
    list_filter = ("movement_type", "created_by")
    search_fields = ("item__product_id", "item__name", "reference_type", "reference_id", "note")
    autocomplete_fields = ("item", "created_by")
