from django.db.models import Q
from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.branches.services import branch_for_user
from apps.common.permissions import RolePermission
from apps.inventory.models import InventoryItem, InventoryMovement
from apps.inventory.serializers import InventoryAdjustSerializer, InventoryItemSerializer, InventoryMovementSerializer
from apps.inventory.services import adjust_inventory


class InventoryItemViewSet(mixins.CreateModelMixin, mixins.UpdateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = InventoryItem.objects.all()
    serializer_class = InventoryItemSerializer
    permission_classes = [RolePermission]
    http_method_names = ["get", "post", "patch", "head", "options"]
    capability_map = {
        "list": ["inventory.view"],
        "retrieve": ["inventory.view"],
        "create": ["inventory.manage"],
        "partial_update": ["inventory.manage"],
        "adjust": ["inventory.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset().filter(branch=branch_for_user(self.request.user))
        status_param = self.request.query_params.get("status")
        query = self.request.query_params.get("q")
        if status_param:
            queryset = queryset.filter(status=status_param.upper())
        if query:
            queryset = queryset.filter(
                Q(name__icontains=query) | Q(product_id__icontains=query) | Q(product_code__icontains=query)
            )
        return queryset

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["branch"] = branch_for_user(self.request.user)
        return context

    def perform_create(self, serializer):
        item = serializer.save()
        record_audit(
            actor=self.request.user,
            action="inventory.create",
            entity_type="inventory_item",
            entity_id=item.id,
            payload={"product_id": item.product_id, "quantity": str(item.quantity)},
            branch=item.branch,
        )

    @action(detail=True, methods=["post"])
    def adjust(self, request, pk=None):
        item = self.get_object()
        serializer = InventoryAdjustSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item = adjust_inventory(
            item,
            serializer.validated_data["quantity_delta"],
            reference_id=item.product_id,
            note=serializer.validated_data["note"],
            actor=request.user,
        )
        record_audit(
            actor=request.user,
            action="inventory.adjust",
            entity_type="inventory_item",
            entity_id=item.id,
            payload={
                "quantity_delta": str(serializer.validated_data["quantity_delta"]),
                "quantity_after": str(item.quantity),
                "status": item.status,
            },
            branch=item.branch,
        )
        return Response(InventoryItemSerializer(item, context=self.get_serializer_context()).data, status=200)


class InventoryMovementViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = InventoryMovement.objects.select_related("item", "created_by")
    serializer_class = InventoryMovementSerializer
    permission_classes = [RolePermission]
    capability_map = {"list": ["inventory.view"], "retrieve": ["inventory.view"]}

    def get_queryset(self):
        queryset = super().get_queryset().filter(item__branch=branch_for_user(self.request.user))
        item_id = self.request.query_params.get("item")
        reference_id = self.request.query_params.get("reference_id")
        if item_id:
            queryset = queryset.filter(item_id=item_id)
        if reference_id:
            queryset = queryset.filter(reference_id=reference_id)
        return queryset
