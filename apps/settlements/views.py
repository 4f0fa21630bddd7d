from rest_framework import viewsets

from apps.branches.services import branch_for_user
from apps.common.permissions import RolePermission
from apps.settlements.models import DeferredPayment
from apps.settlements.serializers import DeferredPaymentSerializer


class DeferredPaymentViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = DeferredPayment.objects.select_related("order", "task")
    serializer_class = DeferredPaymentSerializer
    permission_classes = [RolePermission]
    capability_map = {"list": ["settlements.view"], "retrieve": ["settlements.view"]}

    def get_queryset(self):
        queryset = super().get_queryset().filter(branch=branch_for_user(self.request.user))
        kind = self.request.query_params.get("kind")
        status_param = self.request.query_params.get("status")
        if kind:
            queryset = queryset.filter(kind=kind.upper())
        if status_param:
            queryset = queryset.filter(status=status_param.upper())
        return queryset
