from django.contrib import admin

from apps.catalog.models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "product_id", "product_code", "code", "default_price", "is_active", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("name", "product_id", "product_code", "code")
