from django.contrib import admin

from apps.credits.models import CreditAccount, CreditEntry


class CreditEntryInline(admin.TabularInline):
    model = CreditEntry
    extra = 0
    readonly_fields = ("amount", "balance_after", "reference_type", "reference_id", "note", "created_by", "created_at")
    can_delete = False


@admin.register(CreditAccount)
class CreditAccountAdmin(admin.ModelAdmin):
    list_display = ("customer_name", "customer_phone", "balance", "used_amount", "updated_at")
    search_fields = ("customer_name", "customer_phone", "customer_key")
    readonly_fields = ("balance", "used_amount")
    inlines = [CreditEntryInline]
