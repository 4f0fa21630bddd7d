"""Clearance of payments whose funds are confirmed after settlement.

Cheques and online transfers are recorded immediately by the payment engine
and tracked here as ``DeferredPayment`` rows until the bank confirms them.
Credit settlements have nothing to clear with the bank; they are completed
by staff once the order has been handed over.
"""

import logging

from django.db import transaction
from django.utils import timezone

from apps.audit.services import record_audit
from apps.common.exceptions import Conflict, InvalidArgument
from apps.common.money import ZERO, quantize
from apps.inventory.services import restore_inventory
from apps.orders.models import ChequeStatus, OnlinePaymentStatus, PaymentMethod, PaymentOutcome, TaskPayment, TaskStatus
from apps.orders.services import lock_task
from apps.settlements.models import ALLOWED_OUTCOMES, DeferredPaymentKind, DeferredPaymentStatus

logger = logging.getLogger(__name__)

CHEQUE_CLEARED_NOTE = "Cheque cleared successfully"
CHEQUE_RETURNED_NOTE = "Cheque returned by bank"
ONLINE_CONFIRMED_NOTE = "Online payment confirmed"
ONLINE_FAILED_NOTE = "Online payment failed"


def _parse_outcome(kind, outcome):
    value = str(outcome or "").strip().upper()
    allowed = ALLOWED_OUTCOMES[kind]
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise InvalidArgument(f"Outcome must be one of: {choices}.", fields={"outcome": ["Invalid choice."]})
    return DeferredPaymentStatus(value)


def _close_pending(task, kind, outcome, notes, actor):
    pending = list(task.deferred_payments.select_for_update().filter(kind=kind, status=DeferredPaymentStatus.PENDING))
    for deferred in pending:
        deferred.status = outcome
        deferred.notes = notes
        deferred.resolved_at = timezone.now()
        deferred.resolved_by = actor if getattr(actor, "is_authenticated", False) else None
        deferred.save(update_fields=["status", "notes", "resolved_at", "resolved_by", "updated_at"])
    return pending


def _reverse_returned_cheque(task, order, deferred, notes, actor):
    if deferred is not None:
        applied = quantize(deferred.applied_amount)
        source = deferred.payment
    else:
        source = task.payments.filter(method=PaymentMethod.CHEQUE).exclude(outcome=PaymentOutcome.REVERSAL).last()
        applied = min(quantize(source.amount), quantize(order.advance_payment)) if source else ZERO

    if applied > 0:
        TaskPayment.objects.create(
            task=task,
            method=PaymentMethod.CHEQUE,
            amount=-applied,
            outcome=PaymentOutcome.REVERSAL,
            cheque_number=source.cheque_number if source else "",
            bank_name=source.bank_name if source else "",
            cheque_date=source.cheque_date if source else None,
            notes=notes,
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
        )
    order.advance_payment = max(quantize(order.advance_payment) - applied, ZERO)
    task.advance_payment = max(quantize(task.advance_payment) - applied, ZERO)
    task.full_payment = None
    task.end_price = None
    task.end_time = None
    task.ready_for_payment = True

    for line in task.line_items():
        restore_inventory(
            line.product_ref,
            line.quantity + line.waste,
            task.stock_branch,
            reference_type="cheque_return",
            reference_id=order.order_id,
            actor=actor,
        )
    return applied


def resolve_cheque(*, task_id, branch, outcome, notes="", actor=None):
    """Clear or return the pending cheque that settled a task."""
    outcome = _parse_outcome(DeferredPaymentKind.CHEQUE, outcome)
    notes = str(notes or "").strip()

    with transaction.atomic():
        task, order = lock_task(task_id, branch)
        if task.last_payment_method != PaymentMethod.CHEQUE or task.cheque_status != ChequeStatus.PENDING:
            raise Conflict("Task has no cheque pending clearance.")

        closed = _close_pending(
            task,
            DeferredPaymentKind.CHEQUE,
            outcome,
            notes or (CHEQUE_CLEARED_NOTE if outcome == DeferredPaymentStatus.CLEARED else CHEQUE_RETURNED_NOTE),
            actor,
        )
        reversed_amount = ZERO
        if outcome == DeferredPaymentStatus.CLEARED:
            task.status = TaskStatus.COMPLETED
            task.cheque_status = ChequeStatus.CLEARED
            task.cheque_notes = notes or CHEQUE_CLEARED_NOTE
        else:
            task.status = TaskStatus.RETURNED
            task.cheque_status = ChequeStatus.RETURNED
            task.cheque_notes = notes or CHEQUE_RETURNED_NOTE
            reversed_amount = _reverse_returned_cheque(
                task, order, closed[0] if closed else None, task.cheque_notes, actor
            )
            order.save()
        task.save()

        record_audit(
            actor=actor,
            action="cheque.resolve",
            entity_type="task",
            entity_id=task.id,
            payload={
                "order_id": order.order_id,
                "outcome": outcome,
                "notes": task.cheque_notes,
                "reversed_amount": str(reversed_amount),
            },
            branch=task.branch,
        )

    logger.info("Cheque for %s resolved as %s", order.order_id, outcome)
    return task


def resolve_online_payment(*, task_id, branch, outcome, notes="", actor=None):
    outcome = _parse_outcome(DeferredPaymentKind.ONLINE, outcome)
    notes = str(notes or "").strip()

    with transaction.atomic():
        task, order = lock_task(task_id, branch)
        if task.online_payment_status != OnlinePaymentStatus.PENDING:
            raise Conflict("Task has no online payment pending confirmation.")

        if outcome == DeferredPaymentStatus.CONFIRMED:
            task.online_payment_status = OnlinePaymentStatus.CONFIRMED
            task.online_payment_notes = notes or ONLINE_CONFIRMED_NOTE
            if task.last_payment_method == PaymentMethod.ONLINE and task.full_payment is not None:
                task.status = TaskStatus.COMPLETED
        else:
            # Stock and credit stay as they are; staff follow up with the customer.
            task.online_payment_status = OnlinePaymentStatus.FAILED
            task.online_payment_notes = notes or ONLINE_FAILED_NOTE
        _close_pending(task, DeferredPaymentKind.ONLINE, outcome, task.online_payment_notes, actor)
        task.save()

        record_audit(
            actor=actor,
            action="online_payment.resolve",
            entity_type="task",
            entity_id=task.id,
            payload={"order_id": order.order_id, "outcome": outcome, "notes": task.online_payment_notes},
            branch=task.branch,
        )

    if outcome == DeferredPaymentStatus.FAILED:
        logger.warning("Online payment for %s failed: %s", order.order_id, task.online_payment_notes)
    else:
        logger.info("Online payment for %s confirmed", order.order_id)
    return task


def complete_credit_settlement(*, task_id, branch, actor=None):
    with transaction.atomic():
        task, order = lock_task(task_id, branch)
        if task.status != TaskStatus.TEMPORARY_COMPLETED or not task.is_credit_settled:
            raise Conflict("Task is not awaiting credit settlement.")

        task.status = TaskStatus.COMPLETED
        # Older credit settlements were tagged with a cheque status.
        task.cheque_status = ""
        task.save(update_fields=["status", "cheque_status", "updated_at"])

        record_audit(
            actor=actor,
            action="credit.complete",
            entity_type="task",
            entity_id=task.id,
            payload={"order_id": order.order_id},
            branch=task.branch,
        )

    logger.info("Credit settlement for %s completed", order.order_id)
    return task
