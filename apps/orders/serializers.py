from rest_framework import serializers

from apps.orders.models import Order, PaymentMethod, Task, TaskLine, TaskPayment, TaskPriority


class TaskLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = TaskLine
        fields = ["id", "position", "product_ref", "unit_price", "quantity", "waste"]
        read_only_fields = fields


class TaskPaymentSerializer(serializers.ModelSerializer):
    method_details = serializers.ReadOnlyField()

    class Meta:
        model = TaskPayment
        fields = [
            "id",
            "method",
            "amount",
            "outcome",
            "method_details",
            "notes",
            "idempotency_key",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class TaskSerializer(serializers.ModelSerializer):
    order_id = serializers.CharField(source="order.order_id", read_only=True)
    customer_name = serializers.CharField(source="order.customer_name", read_only=True)
    product_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    is_credit_settled = serializers.BooleanField(read_only=True)
    lines = TaskLineSerializer(many=True, read_only=True)
    payments = TaskPaymentSerializer(many=True, read_only=True)
    fulfilling_branch = serializers.CharField(source="fulfilling_branch.name", read_only=True, default=None)

    class Meta:
        model = Task
        fields = [
            "id",
            "order_id",
            "customer_name",
            "name",
            "priority",
            "description",
            "status",
            "ready_for_payment",
            "start_time",
            "end_time",
            "advance_payment",
            "full_payment",
            "end_price",
            "product_total",
            "last_payment_method",
            "is_credit_settled",
            "cheque_status",
            "cheque_notes",
            "online_payment_status",
            "online_payment_notes",
            "fulfilling_branch",
            "sent_at",
            "received_at",
            "lines",
            "payments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    balance_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    task = TaskSerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_id",
            "branch",
            "customer_name",
            "customer_email",
            "whatsapp_number",
            "description",
            "total_price",
            "advance_payment",
            "balance_due",
            "due_date",
            "task",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderItemInputSerializer(serializers.Serializer):
    product_ref = serializers.CharField(max_length=64)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2)
    waste = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0, min_value=0)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be greater than 0.")
        return value


class OrderCreateSerializer(serializers.Serializer):
    customer_name = serializers.CharField(max_length=255)
    customer_email = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    whatsapp_number = serializers.CharField(max_length=50)
    task_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    description = serializers.CharField(required=False, allow_blank=True, default="")
    priority = serializers.ChoiceField(choices=TaskPriority.choices, required=False, default=TaskPriority.NORMAL)
    due_date = serializers.DateField(required=False, allow_null=True, default=None)
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0, min_value=0)
    advance_payment = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0, min_value=0)
    items = OrderItemInputSerializer(many=True, required=False, default=list)


class RecordPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    declared_total = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    cheque_number = serializers.CharField(required=False, allow_blank=True, default="")
    bank_name = serializers.CharField(required=False, allow_blank=True, default="")
    cheque_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    bill_number = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")

    def to_internal_value(self, data):
        # Method names are accepted in any case ("cash", "Cash", "CASH").
        if hasattr(data, "copy") and isinstance(data.get("method"), str):
            data = data.copy()
            data["method"] = data["method"].strip().upper()
        return super().to_internal_value(data)


class ResolutionSerializer(serializers.Serializer):
    outcome = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")
