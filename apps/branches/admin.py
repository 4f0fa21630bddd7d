from django.contrib import admin

from apps.branches.models import Branch, BranchOrderCounter


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    list_display = ("name", "branch_type", "location", "is_active", "updated_at")
    list_filter = ("branch_type", "is_active")
    search_fields = ("name", "location")


@admin.register(BranchOrderCounter)
class BranchOrderCounterAdmin(admin.ModelAdmin):
    list_display = ("branch", "prefix", "last_number", "last_order_id", "updated_at")
    readonly_fields = ("last_number", "last_order_id")
