from rest_framework import serializers

from apps.inventory.models import InventoryItem, InventoryMovement


class InventoryItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InventoryItem
        fields = ["id", "name", "product_id", "product_code", "price", "quantity", "status", "created_at", "updated_at"]
        read_only_fields = ["id", "status", "created_at", "updated_at"]
        extra_kwargs = {"product_code": {"required": False, "allow_blank": True}}

    def validate(self, attrs):
        if self.instance is not None and "quantity" in attrs:
            raise serializers.ValidationError({"quantity": "Use the adjust action to change stock."})
        branch = self.context["branch"]
        siblings = InventoryItem.objects.filter(branch=branch)
        if self.instance is not None:
            siblings = siblings.exclude(pk=self.instance.pk)

        product_id = (attrs.get("product_id") or "").strip()
        product_code = (attrs.get("product_code") or "").strip()
        if product_id and siblings.filter(product_id=product_id).exists():
            raise serializers.ValidationError({"product_id": "This product id already exists in the branch."})
        if product_code and siblings.filter(product_code=product_code).exists():
            raise serializers.ValidationError({"product_code": "This product code already exists in the branch."})
        return attrs

    def create(self, validated_data):
        validated_data["branch"] = self.context["branch"]
        return super().create(validated_data)


class InventoryAdjustSerializer(serializers.Serializer):
    quantity_delta = serializers.DecimalField(max_digits=12, decimal_places=2)
    note = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_quantity_delta(self, value):
        if value == 0:
            raise serializers.ValidationError("quantity_delta cannot be zero.")
        return value


class InventoryMovementSerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source="item.name", read_only=True)
    product_id = serializers.CharField(source="item.product_id", read_only=True)
    created_by_username = serializers.CharField(source="created_by.username", read_only=True)

    class Meta:
        model = InventoryMovement
        fields = [
            "id",
            "item",
            "item_name",
            "product_id",
            "movement_type",
            "quantity_delta",
            "quantity_after",
            "reference_type",
            "reference_id",
            "note",
            "created_by",
            "created_by_username",
            "created_at",
        ]
        read_only_fields = fields
