"""Order intake, task lifecycle and the payment engine."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.audit.services import record_audit
from apps.branches.models import Branch, BranchType
from apps.branches.services import next_order_id
from apps.common.exceptions import Conflict, InvalidArgument, NotFound
from apps.common.money import ZERO, parse_amount, quantize
from apps.credits.services import apply_credit
from apps.inventory.services import release_inventory
from apps.orders.models import (
    SETTLED_STATUSES,
    ChequeStatus,
    OnlinePaymentStatus,
    Order,
    PaymentMethod,
    PaymentOutcome,
    Task,
    TaskLine,
    TaskPayment,
    TaskPriority,
    TaskStatus,
)
from apps.orders.querysets import tasks_for_branch
from apps.settlements.models import DeferredPayment, DeferredPaymentKind

logger = logging.getLogger(__name__)

PARTIAL_MESSAGE = "Partial payment recorded."
COMPLETED_MESSAGE = "Payment completed and task marked as Completed."
TEMPORARY_MESSAGES = {
    PaymentMethod.CHEQUE.value: "Full payment received → task moved to Temporary Completed (pending cheque clearance).",
    PaymentMethod.CREDITS.value: "Full payment received → task moved to Temporary Completed (pending credit clearance).",
}
DEFERRED_CLEARANCE_METHODS = {PaymentMethod.CHEQUE, PaymentMethod.CREDITS}
SENDABLE_STATUSES = {TaskStatus.PENDING, TaskStatus.IN_PROGRESS}


@dataclass
class PaymentResult:
    task: Task
    order: Order
    payment: TaskPayment
    message: str
    is_temporary_completed: bool
    released: list = field(default_factory=list)
    resolution_misses: list = field(default_factory=list)
    deferred_payment: Optional[DeferredPayment] = None
    replayed: bool = False


def message_for(outcome, method):
    if outcome == PaymentOutcome.PARTIAL:
        return PARTIAL_MESSAGE
    if outcome == PaymentOutcome.TEMPORARY_COMPLETED:
        return TEMPORARY_MESSAGES[method]
    return COMPLETED_MESSAGE


def lock_task(task_id, branch):
    """Lock the task and its order for the rest of the enclosing transaction."""
    try:
        task = tasks_for_branch(Task.objects.select_for_update(), branch).get(pk=task_id)
    except (Task.DoesNotExist, ValidationError, ValueError):
        raise NotFound("Task not found.") from None
    try:
        order = Order.objects.select_for_update().get(pk=task.order_id)
    except Order.DoesNotExist:
        raise NotFound("Order not found.") from None
    return task, order


def _ensure_handled_here(task, branch):
    if task.status != TaskStatus.SENT_TO_MAIN_BRANCH:
        return
    if task.fulfilling_branch_id != branch.pk:
        raise Conflict("Task has been sent to the main branch; it is settled there.")
    if task.received_at is None:
        raise Conflict("Task has not been received by the main branch yet.")


def _validated_metadata(method, metadata):
    metadata = metadata or {}
    cleaned = {
        "cheque_number": str(metadata.get("cheque_number") or "").strip(),
        "bank_name": str(metadata.get("bank_name") or "").strip(),
        "bill_number": str(metadata.get("bill_number") or "").strip(),
        "notes": str(metadata.get("notes") or "").strip(),
        "cheque_date": None,
    }
    if method == PaymentMethod.CHEQUE:
        missing = [name for name in ("cheque_number", "bank_name") if not cleaned[name]]
        if missing:
            raise InvalidArgument(
                "Cheque number and bank name are required for cheque payments.",
                fields={name: ["This field is required."] for name in missing},
            )
        cleaned["cheque_date"] = metadata.get("cheque_date") or timezone.now()
    elif method == PaymentMethod.ONLINE:
        missing = [name for name in ("bill_number", "bank_name") if not cleaned[name]]
        if missing:
            raise InvalidArgument(
                "Bill number and bank name are required for online payments.",
                fields={name: ["This field is required."] for name in missing},
            )
    return cleaned


def _replay(task, order, payment):
    is_temporary = payment.outcome == PaymentOutcome.TEMPORARY_COMPLETED
    return PaymentResult(
        task=task,
        order=order,
        payment=payment,
        message=message_for(payment.outcome, payment.method),
        is_temporary_completed=is_temporary,
        deferred_payment=payment.deferred_payments.first(),
        replayed=True,
    )


def record_payment(
    *,
    task_id,
    branch,
    amount,
    method,
    metadata=None,
    declared_total=None,
    idempotency_key="",
    actor=None,
):
    """Record one payment against a task and settle it once fully paid.

    Every accepted call appends exactly one ``TaskPayment``. Reaching the
    effective total settles the task: cheque and credit payments leave it
    ``TEMPORARY_COMPLETED`` until cleared, the other methods complete it, and
    in both cases the task's stock is released.
    """
    value = parse_amount(amount)
    if value is None or value <= 0:
        raise InvalidArgument("Payment amount must be a positive number.", fields={"amount": ["Must be greater than 0."]})
    if method not in PaymentMethod.values:
        raise InvalidArgument(f"Unsupported payment method: {method}.", fields={"method": ["Invalid choice."]})
    method = PaymentMethod(method)
    details = _validated_metadata(method, metadata)
    declared = parse_amount(declared_total) if declared_total not in (None, "") else None
    idempotency_key = str(idempotency_key or "").strip()
    key_limit = TaskPayment._meta.get_field("idempotency_key").max_length
    if len(idempotency_key) > key_limit:
        raise InvalidArgument(
            f"Idempotency key must be at most {key_limit} characters.",
            fields={"idempotency_key": [f"Ensure this field has no more than {key_limit} characters."]},
        )
    now = timezone.now()

    with transaction.atomic():
        task, order = lock_task(task_id, branch)

        if idempotency_key:
            previous = task.payments.filter(idempotency_key=idempotency_key).first()
            if previous is not None:
                logger.info("Replaying payment %s for task %s", idempotency_key, task.pk)
                return _replay(task, order, previous)

        _ensure_handled_here(task, branch)
        if task.status in SETTLED_STATUSES:
            raise Conflict(f"Task is already {task.get_status_display()}; no further payments are accepted.")

        product_total = task.product_total
        if declared is not None and declared > 0:
            effective_total = declared
        else:
            effective_total = max(quantize(order.total_price), product_total)
        if effective_total <= 0:
            raise InvalidArgument(
                "Order total is unknown; provide declared_total.",
                fields={"declared_total": ["Required when the order has no price or line items."]},
            )

        if method == PaymentMethod.CREDITS:
            apply_credit(
                customer_key=order.whatsapp_number,
                name=order.customer_name,
                email=order.customer_email,
                amount=-value,
                reference_type="task_payment",
                reference_id=order.order_id,
                note=f"Payment for task {task.name}",
                actor=actor,
            )

        # Keeps advance_payment <= total_price when a larger total is declared.
        if order.total_price < effective_total:
            order.total_price = effective_total

        prior_paid = quantize(order.advance_payment)
        new_paid = prior_paid + value
        settles = new_paid >= effective_total
        if not settles:
            outcome = PaymentOutcome.PARTIAL
        elif method in DEFERRED_CLEARANCE_METHODS:
            outcome = PaymentOutcome.TEMPORARY_COMPLETED
        else:
            outcome = PaymentOutcome.COMPLETED

        payment = TaskPayment.objects.create(
            task=task,
            method=method,
            amount=value,
            outcome=outcome,
            cheque_number=details["cheque_number"],
            bank_name=details["bank_name"],
            cheque_date=details["cheque_date"],
            bill_number=details["bill_number"],
            notes=details["notes"],
            idempotency_key=idempotency_key,
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
        )
        applied_amount = min(value, max(effective_total - prior_paid, ZERO))

        deferred = None
        if method == PaymentMethod.ONLINE:
            deferred = _open_deferred(DeferredPaymentKind.ONLINE, task, order, payment, applied_amount, actor)
            task.online_payment_status = OnlinePaymentStatus.PENDING
            task.online_payment_notes = ""

        released = []
        misses = []
        if settles:
            order.advance_payment = effective_total
            task.advance_payment = effective_total
            task.full_payment = effective_total
            task.end_price = effective_total
            task.end_time = now
            task.last_payment_method = method
            task.ready_for_payment = False
            if outcome == PaymentOutcome.TEMPORARY_COMPLETED:
                task.status = TaskStatus.TEMPORARY_COMPLETED
                if method == PaymentMethod.CHEQUE:
                    task.cheque_status = ChequeStatus.PENDING
                    task.cheque_notes = ""
                    deferred = _open_deferred(DeferredPaymentKind.CHEQUE, task, order, payment, applied_amount, actor)
            else:
                task.status = TaskStatus.COMPLETED

            for line in task.line_items():
                item, miss = release_inventory(
                    line.product_ref,
                    line.quantity + line.waste,
                    task.stock_branch,
                    reference_type="task_settlement",
                    reference_id=order.order_id,
                    actor=actor,
                )
                if item is not None:
                    released.append(item)
                if miss is not None:
                    misses.append(miss)
            logger.info(
                "Task %s settled by %s for %s (%s)",
                order.order_id,
                method,
                effective_total,
                task.status,
            )
        else:
            order.advance_payment = new_paid
            task.advance_payment = new_paid
            logger.debug("Partial payment of %s on %s; %s of %s paid", value, order.order_id, new_paid, effective_total)

        order.save()
        task.save()

        record_audit(
            actor=actor,
            action="payment.record",
            entity_type="task",
            entity_id=task.id,
            payload={
                "order_id": order.order_id,
                "method": method,
                "amount": str(value),
                "outcome": outcome,
                "effective_total": str(effective_total),
                "unresolved_products": [miss.product_ref for miss in misses],
            },
            branch=task.branch,
        )

    return PaymentResult(
        task=task,
        order=order,
        payment=payment,
        message=message_for(outcome, method),
        is_temporary_completed=outcome == PaymentOutcome.TEMPORARY_COMPLETED,
        released=released,
        resolution_misses=misses,
        deferred_payment=deferred,
    )


def _open_deferred(kind, task, order, payment, applied_amount, actor):
    return DeferredPayment.objects.create(
        kind=kind,
        task=task,
        order=order,
        branch=task.stock_branch,
        payment=payment,
        amount=payment.amount,
        applied_amount=applied_amount,
        bank_name=payment.bank_name,
        cheque_number=payment.cheque_number,
        cheque_date=payment.cheque_date,
        bill_number=payment.bill_number,
        customer_name=order.customer_name,
        customer_phone=order.whatsapp_number,
        created_by=actor if getattr(actor, "is_authenticated", False) else None,
    )


def start_task(*, task_id, branch, actor=None):
    with transaction.atomic():
        task, _ = lock_task(task_id, branch)
        if task.status != TaskStatus.PENDING:
            raise Conflict(f"Only pending tasks can be started; task is {task.get_status_display()}.")
        task.status = TaskStatus.IN_PROGRESS
        task.start_time = timezone.now()
        task.save(update_fields=["status", "start_time", "updated_at"])
        record_audit(
            actor=actor,
            action="task.start",
            entity_type="task",
            entity_id=task.id,
            branch=task.branch,
        )
    return task


def mark_ready_for_payment(*, task_id, branch, actor=None):
    with transaction.atomic():
        task, _ = lock_task(task_id, branch)
        if task.status in SETTLED_STATUSES:
            raise Conflict("Task has already been paid.")
        _ensure_handled_here(task, branch)
        task.ready_for_payment = True
        task.save(update_fields=["ready_for_payment", "updated_at"])
        record_audit(
            actor=actor,
            action="task.ready_for_payment",
            entity_type="task",
            entity_id=task.id,
            branch=task.branch,
        )
    return task


def send_to_main_branch(*, task_id, branch, actor=None):
    """Hand an unfinished task over to the main branch for fulfilment.

    The main branch receives it, finishes the work and takes the remaining
    payment through the regular payment engine; stock is then released from
    the main branch.
    """
    with transaction.atomic():
        task, order = lock_task(task_id, branch)
        if task.branch_id != branch.pk:
            raise NotFound("Task not found.")
        if task.status not in SENDABLE_STATUSES:
            raise Conflict(f"Only pending or in-progress tasks can be sent; task is {task.get_status_display()}.")
        main = Branch.objects.filter(branch_type=BranchType.MAIN, is_active=True).first()
        if main is None:
            raise NotFound("Main branch not found.")
        if main.pk == branch.pk:
            raise Conflict("Tasks of the main branch cannot be sent to it.")

        task.status = TaskStatus.SENT_TO_MAIN_BRANCH
        task.fulfilling_branch = main
        task.sent_at = timezone.now()
        task.received_at = None
        task.ready_for_payment = False
        task.save(
            update_fields=["status", "fulfilling_branch", "sent_at", "received_at", "ready_for_payment", "updated_at"]
        )
        record_audit(
            actor=actor,
            action="task.send_to_main",
            entity_type="task",
            entity_id=task.id,
            payload={"order_id": order.order_id, "main_branch": main.name},
            branch=branch,
        )
    logger.info("Task %s sent from %s to %s", order.order_id, branch.name, main.name)
    return task


def receive_sent_task(*, task_id, branch, actor=None):
    with transaction.atomic():
        task, order = lock_task(task_id, branch)
        if task.status != TaskStatus.SENT_TO_MAIN_BRANCH or task.fulfilling_branch_id != branch.pk:
            raise Conflict("Task is not waiting to be received by this branch.")
        if task.received_at is not None:
            raise Conflict("Task has already been received.")
        task.received_at = timezone.now()
        task.save(update_fields=["received_at", "updated_at"])
        record_audit(
            actor=actor,
            action="task.receive",
            entity_type="task",
            entity_id=task.id,
            payload={"order_id": order.order_id, "from_branch": task.branch.name},
            branch=branch,
        )
    return task

def create_order(
    *,
    branch,
    customer_name,
    whatsapp_number,
    items,
    task_name="",
    customer_email="",
    description="",
    priority="",
    due_date=None,
    total_price=ZERO,
    advance_payment=ZERO,
    actor=None,
):
    """Create an order and its pending task, one line per item.

    ``items`` are mappings with ``product_ref``, ``unit_price``, ``quantity``
    and optional ``waste``.
    """
    total_price = quantize(total_price or ZERO)
    advance_payment = quantize(advance_payment or ZERO)
    if total_price < 0 or advance_payment < 0:
        raise InvalidArgument("Prices cannot be negative.")
    if total_price > 0 and advance_payment > total_price:
        raise InvalidArgument(
            "Advance payment cannot exceed the total price.",
            fields={"advance_payment": ["Must not exceed total_price."]},
        )

    with transaction.atomic():
        order = Order.objects.create(
            order_id=next_order_id(branch),
            branch=branch,
            customer_name=customer_name,
            customer_email=customer_email,
            whatsapp_number=whatsapp_number,
            description=description,
            total_price=total_price,
            advance_payment=advance_payment,
            due_date=due_date,
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
        )
        task = Task.objects.create(
            order=order,
            branch=branch,
            name=task_name or f"{customer_name} - {order.order_id}",
            priority=priority or TaskPriority.NORMAL,
            description=description,
            advance_payment=advance_payment,
        )
        for position, item in enumerate(items):
            TaskLine.objects.create(
                task=task,
                position=position,
                product_ref=str(item["product_ref"]).strip(),
                unit_price=quantize(item["unit_price"]),
                quantity=Decimal(item["quantity"]),
                waste=Decimal(item.get("waste") or 0),
            )
        record_audit(
            actor=actor,
            action="order.create",
            entity_type="order",
            entity_id=order.id,
            payload={"order_id": order.order_id, "total_price": str(total_price), "lines": len(items)},
            branch=branch,
        )
    logger.info("Order %s created with %d line(s)", order.order_id, len(items))
    return order
