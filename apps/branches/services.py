import re

from django.conf import settings
from django.db import transaction

from apps.branches.models import BranchOrderCounter
from apps.common.exceptions import NotFound


def branch_for_user(user):
    branch = getattr(user, "branch", None)
    if branch is None or not branch.is_active:
        raise NotFound("Branch not found.")
    return branch


def branch_prefix(name):
    """Derive the order id prefix for a branch name.

    "main branch" -> "MB", "colombo" -> "COL", "x" -> "X0", "" -> "GN".
    """
    words = re.split(r"\s+", (name or "").strip().upper())
    words = [word for word in words if word]
    if not words:
        return "GN"
    if len(words) >= 2:
        return "".join(word[0] for word in words[:3])
    word = words[0]
    if len(word) >= 3:
        return word[:3]
    if len(word) == 2:
        return word
    return f"{word}0"


def next_order_id(branch):
    padding = getattr(settings, "ORDER_NUMBER_PADDING", 4)
    with transaction.atomic():
        counter, _ = BranchOrderCounter.objects.select_for_update().get_or_create(
            branch=branch,
            defaults={"prefix": branch_prefix(branch.name)},
        )
        counter.last_number += 1
        counter.last_order_id = f"{counter.prefix}-{str(counter.last_number).zfill(padding)}"
        counter.save(update_fields=["last_number", "last_order_id", "updated_at"])
    return counter.last_order_id
