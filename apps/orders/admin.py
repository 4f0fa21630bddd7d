from django.contrib import admin

from apps.orders.models import Order, Task, TaskLine, TaskPayment


class TaskLineInline(admin.TabularInline):
    model = TaskLine
    extra = 0


class TaskPaymentInline(admin.TabularInline):
    model = TaskPayment
    extra = 0
    can_delete = False
    readonly_fields = ("method", "amount", "outcome", "cheque_number", "bank_name", "bill_number", "notes", "created_at")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_id", "branch", "customer_name", "whatsapp_number", "total_price", "advance_payment", "created_at")
    list_filter = ("branch",)
    search_fields = ("order_id", "customer_name", "whatsapp_number")


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ("name", "order", "branch", "status", "last_payment_method", "cheque_status", "online_payment_status")
    list_filter = ("status", "last_payment_method", "branch")
    search_fields = ("name", "order__order_id", "order__customer_name")
    readonly_fields = ("advance_payment", "full_payment", "end_price", "end_time")
    inlines = [TaskLineInline, TaskPaymentInline]
