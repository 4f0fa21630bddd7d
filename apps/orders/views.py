from django.db.models import Prefetch, Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.serializers import AuditLogSerializer
from apps.audit.services import audit_trail
from apps.branches.models import BranchType
from apps.branches.services import branch_for_user
from apps.common.permissions import RolePermission
from apps.orders.models import Order, Task, TaskPayment, TaskStatus
from apps.orders.querysets import tasks_for_branch
from apps.orders.serializers import (
    OrderCreateSerializer,
    OrderSerializer,
    RecordPaymentSerializer,
    ResolutionSerializer,
    TaskSerializer,
)
from apps.orders.services import (
    create_order,
    mark_ready_for_payment,
    receive_sent_task,
    record_payment,
    send_to_main_branch,
    start_task,
)
from apps.settlements.services import complete_credit_settlement, resolve_cheque, resolve_online_payment

TASK_QUERYSET = Task.objects.select_related("order", "branch", "fulfilling_branch").prefetch_related(
    "lines",
    Prefetch("payments", queryset=TaskPayment.objects.order_by("created_at")),
)


class OrderViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = Order.objects.select_related("branch", "task").prefetch_related("task__lines", "task__payments")
    serializer_class = OrderSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["orders.view"],
        "retrieve": ["orders.view"],
        "create": ["orders.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset().filter(branch=branch_for_user(self.request.user))
        query = self.request.query_params.get("q")
        if query:
            queryset = queryset.filter(Q(order_id__icontains=query) | Q(customer_name__icontains=query))
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = create_order(
            branch=branch_for_user(request.user),
            customer_name=data["customer_name"],
            customer_email=data["customer_email"],
            whatsapp_number=data["whatsapp_number"],
            task_name=data["task_name"],
            description=data["description"],
            priority=data["priority"],
            due_date=data["due_date"],
            total_price=data["total_price"],
            advance_payment=data["advance_payment"],
            items=data["items"],
            actor=request.user,
        )
        order = self.get_queryset().get(pk=order.pk)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class TaskViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = TASK_QUERYSET
    serializer_class = TaskSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["tasks.view"],
        "retrieve": ["tasks.view"],
        "history": ["tasks.view"],
        "payments": ["payments.record"],
        "cheque_status": ["settlements.resolve"],
        "online_payment_status": ["settlements.resolve"],
        "complete_credit": ["settlements.resolve"],
        "start": ["tasks.manage"],
        "ready_for_payment": ["tasks.manage"],
        "send_to_main": ["tasks.manage"],
        "receive": ["tasks.manage"],
        "sent": ["tasks.view"],
    }

    def get_queryset(self):
        queryset = tasks_for_branch(super().get_queryset(), branch_for_user(self.request.user))
        status_param = self.request.query_params.get("status")
        method = self.request.query_params.get("last_payment_method")
        if status_param:
            queryset = queryset.filter(status=status_param.upper())
        if method:
            queryset = queryset.filter(last_payment_method=method.upper())
        if str(self.request.query_params.get("ready_for_payment")).lower() in {"1", "true", "yes"}:
            queryset = queryset.filter(ready_for_payment=True)
        return queryset

    def _task_response(self, task_id, status_code=status.HTTP_200_OK, **extra):
        task = TASK_QUERYSET.get(pk=task_id)
        return Response({"task": TaskSerializer(task).data, **extra}, status=status_code)

    @action(detail=True, methods=["post"])
    def payments(self, request, pk=None):
        serializer = RecordPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = record_payment(
            task_id=pk,
            branch=branch_for_user(request.user),
            amount=data["amount"],
            method=data["method"],
            metadata={
                "cheque_number": data["cheque_number"],
                "bank_name": data["bank_name"],
                "cheque_date": data["cheque_date"],
                "bill_number": data["bill_number"],
                "notes": data["notes"],
            },
            declared_total=data.get("declared_total"),
            idempotency_key=data["idempotency_key"] or request.headers.get("Idempotency-Key", ""),
            actor=request.user,
        )
        return self._task_response(
            result.task.pk,
            status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED,
            message=result.message,
            is_temporary_completed=result.is_temporary_completed,
            payment_id=str(result.payment.pk),
            deferred_payment_id=str(result.deferred_payment.pk) if result.deferred_payment else None,
            unresolved_products=[miss.as_dict() for miss in result.resolution_misses],
            replayed=result.replayed,
        )

    @action(detail=True, methods=["post"], url_path="cheque-status")
    def cheque_status(self, request, pk=None):
        serializer = ResolutionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = resolve_cheque(
            task_id=pk,
            branch=branch_for_user(request.user),
            outcome=serializer.validated_data["outcome"],
            notes=serializer.validated_data["notes"],
            actor=request.user,
        )
        return self._task_response(task.pk)

    @action(detail=True, methods=["post"], url_path="online-payment-status")
    def online_payment_status(self, request, pk=None):
        serializer = ResolutionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = resolve_online_payment(
            task_id=pk,
            branch=branch_for_user(request.user),
            outcome=serializer.validated_data["outcome"],
            notes=serializer.validated_data["notes"],
            actor=request.user,
        )
        return self._task_response(task.pk)

    @action(detail=True, methods=["post"], url_path="complete-credit")
    def complete_credit(self, request, pk=None):
        task = complete_credit_settlement(task_id=pk, branch=branch_for_user(request.user), actor=request.user)
        return self._task_response(task.pk)

    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        task = start_task(task_id=pk, branch=branch_for_user(request.user), actor=request.user)
        return self._task_response(task.pk)

    @action(detail=True, methods=["post"], url_path="ready-for-payment")
    def ready_for_payment(self, request, pk=None):
        task = mark_ready_for_payment(task_id=pk, branch=branch_for_user(request.user), actor=request.user)
        return self._task_response(task.pk)

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        task = self.get_object()
        return Response(AuditLogSerializer(audit_trail("task", task.pk), many=True).data)

    @action(detail=True, methods=["post"], url_path="send-to-main")
    def send_to_main(self, request, pk=None):
        task = send_to_main_branch(task_id=pk, branch=branch_for_user(request.user), actor=request.user)
        return self._task_response(task.pk)

    @action(detail=True, methods=["post"])
    def receive(self, request, pk=None):
        task = receive_sent_task(task_id=pk, branch=branch_for_user(request.user), actor=request.user)
        return self._task_response(task.pk)

    @action(detail=False, methods=["get"])
    def sent(self, request):
        """Tasks in transit: incoming for the main branch, outgoing for the others."""
        branch = branch_for_user(request.user)
        queryset = TASK_QUERYSET.filter(status=TaskStatus.SENT_TO_MAIN_BRANCH)
        if branch.branch_type == BranchType.MAIN:
            queryset = queryset.filter(fulfilling_branch=branch)
        else:
            queryset = queryset.filter(branch=branch)
        page = self.paginate_queryset(queryset.order_by("sent_at"))
        return self.get_paginated_response(TaskSerializer(page, many=True).data)
