import logging

from django.db import transaction

from apps.common.exceptions import InsufficientBalance, InvalidArgument
from apps.common.money import ZERO, parse_amount, quantize
from apps.credits.models import CreditAccount, CreditEntry, normalize_phone

logger = logging.getLogger(__name__)


def customer_key_for(phone):
    key = normalize_phone(phone)
    if not key:
        raise InvalidArgument("A customer phone number is required for credit operations.")
    return key


def get_balance(customer_key):
    account = CreditAccount.objects.filter(customer_key=customer_key_for(customer_key)).first()
    if account is None:
        return {"balance": ZERO, "used_amount": ZERO}
    return {"balance": quantize(account.balance), "used_amount": quantize(account.used_amount)}


def apply_credit(
    *,
    customer_key,
    name,
    amount,
    email="",
    reference_type="manual",
    reference_id="-",
    note="",
    actor=None,
):
    """Add (positive ``amount``) or consume (negative ``amount``) customer credit.

    The account is created on first use. A debit larger than the available
    balance raises ``InsufficientBalance`` and leaves the account untouched.
    """
    value = parse_amount(amount)
    if value is None or value == 0:
        raise InvalidArgument("Credit amount must be a non-zero number.")
    key = customer_key_for(customer_key)

    with transaction.atomic():
        account, created = CreditAccount.objects.select_for_update().get_or_create(
            customer_key=key,
            defaults={
                "customer_phone": str(customer_key).strip(),
                "customer_name": str(name or "").strip() or key,
                "customer_email": str(email or "").strip(),
            },
        )
        if value < 0 and account.balance + value < 0:
            raise InsufficientBalance(
                f"Insufficient credits (need {quantize(-value)}, but only {quantize(account.balance)} available).",
                fields={"balance": str(quantize(account.balance))},
            )

        account.balance = quantize(account.balance + value)
        if value < 0:
            account.used_amount = quantize(account.used_amount - value)
        if name and not created:
            account.customer_name = str(name).strip()
        if email:
            account.customer_email = str(email).strip()
        account.save()

        CreditEntry.objects.create(
            account=account,
            amount=value,
            balance_after=account.balance,
            reference_type=reference_type,
            reference_id=str(reference_id),
            note=note,
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
        )

    logger.info("Credit %s applied to %s; balance now %s", value, key, account.balance)
    return account
