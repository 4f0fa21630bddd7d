from django.contrib import admin

from apps.settlements.models import DeferredPayment


@admin.register(DeferredPayment)
class DeferredPaymentAdmin(admin.ModelAdmin):
    list_display = ("kind", "status", "order", "customer_name", "amount", "bank_name", "created_at", "resolved_at")
    list_filter = ("kind", "status", "branch")
    search_fields = ("order__order_id", "customer_name", "cheque_number", "bill_number")
    readonly_fields = ("amount", "applied_amount", "payment", "resolved_at", "resolved_by")
