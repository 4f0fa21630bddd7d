from django.db.models import Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.branches.services import branch_for_user
from apps.common.exceptions import InvalidArgument, NotFound
from apps.common.permissions import RolePermission
from apps.credits.models import CreditAccount, normalize_phone
from apps.credits.serializers import ApplyCreditSerializer, CreditAccountDetailSerializer, CreditAccountSerializer
from apps.credits.services import apply_credit, get_balance
from apps.orders.models import Order


class CreditAccountViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = CreditAccount.objects.order_by("customer_name")
    serializer_class = CreditAccountSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["credits.view"],
        "retrieve": ["credits.view"],
        "balance": ["credits.view"],
        "apply": ["credits.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        query = self.request.query_params.get("q")
        if query:
            normalized = normalize_phone(query)
            queryset = queryset.filter(
                Q(customer_name__icontains=query) | Q(customer_phone__icontains=query) | Q(customer_key__icontains=normalized)
            )
        return queryset

    def get_serializer_class(self):
        if self.action == "retrieve":
            return CreditAccountDetailSerializer
        return CreditAccountSerializer

    @action(detail=False, methods=["get"])
    def balance(self, request):
        customer_key = request.query_params.get("customer_key")
        order_ref = request.query_params.get("order")
        if order_ref:
            branch = branch_for_user(request.user)
            scope = Q(branch=branch) | Q(task__fulfilling_branch=branch)
            order = Order.objects.filter(scope, order_id=order_ref).first()
            if order is None:
                raise NotFound("Order not found.")
            if not normalize_phone(order.whatsapp_number):
                raise InvalidArgument("Order has no WhatsApp number on file.")
            customer_key = order.whatsapp_number
        if not customer_key:
            raise InvalidArgument("customer_key or order is required.")

        balances = get_balance(customer_key)
        return Response(
            {
                "customer_key": normalize_phone(customer_key),
                "balance": str(balances["balance"]),
                "used_amount": str(balances["used_amount"]),
            },
            status=200,
        )

    @action(detail=False, methods=["post"])
    def apply(self, request):
        serializer = ApplyCreditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        account = apply_credit(
            customer_key=data["customer_phone"],
            name=data["customer_name"],
            email=data["customer_email"],
            amount=data["amount"],
            reference_type=data["reference_type"] or "manual",
            reference_id=data["reference_id"] or "-",
            note=data["note"],
            actor=request.user,
        )
        record_audit(
            actor=request.user,
            action="credit.apply",
            entity_type="credit_account",
            entity_id=account.id,
            payload={"amount": str(data["amount"]), "balance": str(account.balance)},
        )
        return Response(CreditAccountSerializer(account).data, status=200)
