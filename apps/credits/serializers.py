from rest_framework import serializers

from apps.credits.models import CreditAccount, CreditEntry, normalize_phone


class CreditEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = CreditEntry
        fields = ["id", "amount", "balance_after", "reference_type", "reference_id", "note", "created_by", "created_at"]
        read_only_fields = fields


class CreditAccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = CreditAccount
        fields = [
            "id",
            "customer_key",
            "customer_phone",
            "customer_name",
            "customer_email",
            "balance",
            "used_amount",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CreditAccountDetailSerializer(CreditAccountSerializer):
    entries = CreditEntrySerializer(many=True, read_only=True)

    class Meta(CreditAccountSerializer.Meta):
        fields = CreditAccountSerializer.Meta.fields + ["entries"]
        read_only_fields = fields


class ApplyCreditSerializer(serializers.Serializer):
    customer_phone = serializers.CharField()
    customer_name = serializers.CharField()
    customer_email = serializers.CharField(required=False, allow_blank=True, default="")
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    reference_type = serializers.CharField(required=False, allow_blank=True, default="manual")
    reference_id = serializers.CharField(required=False, allow_blank=True, default="-")
    note = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_customer_phone(self, value):
        if not normalize_phone(value):
            raise serializers.ValidationError("A customer phone number is required.")
        return value.strip()

    def validate_amount(self, value):
        if value == 0:
            raise serializers.ValidationError("Amount must be non-zero.")
        return value
