from rest_framework import serializers

from apps.settlements.models import DeferredPayment


class DeferredPaymentSerializer(serializers.ModelSerializer):
    order_id = serializers.CharField(source="order.order_id", read_only=True)
    task_name = serializers.CharField(source="task.name", read_only=True)

    class Meta:
        model = DeferredPayment
        fields = [
            "id",
            "kind",
            "status",
            "task",
            "task_name",
            "order_id",
            "amount",
            "applied_amount",
            "bank_name",
            "cheque_number",
            "cheque_date",
            "bill_number",
            "customer_name",
            "customer_phone",
            "notes",
            "resolved_at",
            "resolved_by",
            "created_at",
        ]
        read_only_fields = fields
