"""Inventory resolution and stock movements.

Tasks reference products through an opaque ``product_ref`` that, depending on
how the order was captured, may be an inventory row id, the item's
``product_id``, its ``product_code`` or the id of a catalog product. The
resolver tries each interpretation in a fixed order and the first hit wins.

A resolution miss never fails the caller: stock accuracy is best effort and a
settled payment must not roll back because a stock row could not be found.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction

from apps.catalog.models import Product
from apps.common.exceptions import InvalidArgument
from apps.common.money import quantize
from apps.inventory.models import InventoryItem, InventoryMovement, MovementType

logger = logging.getLogger(__name__)

NOT_APPLICABLE = "N/A"


@dataclass(frozen=True)
class ResolutionMiss:
    product_ref: str
    branch: str
    attempted: tuple

    def as_dict(self):
        return {"product_ref": self.product_ref, "branch": self.branch, "attempted": list(self.attempted)}


def _as_uuid(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


class ResolverStrategy:
    name = "base"

    def resolve(self, product_ref, branch):
        """Return the id of the matching InventoryItem, or ``None``."""
        raise NotImplementedError


class IdentityStrategy(ResolverStrategy):
    name = "identity"

    def resolve(self, product_ref, branch):
        item_id = _as_uuid(product_ref)
        if item_id is None:
            return None
        return InventoryItem.objects.filter(pk=item_id, branch=branch).values_list("pk", flat=True).first()


class ProductIdStrategy(ResolverStrategy):
    name = "product_id"

    def resolve(self, product_ref, branch):
        return InventoryItem.objects.filter(product_id=product_ref, branch=branch).values_list("pk", flat=True).first()


class ProductCodeStrategy(ResolverStrategy):
    name = "product_code"

    def resolve(self, product_ref, branch):
        return InventoryItem.objects.filter(product_code=product_ref, branch=branch).values_list("pk", flat=True).first()


class CatalogProductStrategy(ResolverStrategy):
    name = "catalog_product"

    def resolve(self, product_ref, branch):
        product_id = _as_uuid(product_ref)
        if product_id is None:
            return None
        product = Product.objects.filter(pk=product_id).first()
        if product is None or not product.inventory_identifier:
            return None
        # Same precedence as the direct lookups: product_id before product_code.
        identifier = product.inventory_identifier
        for lookup in (ProductIdStrategy(), ProductCodeStrategy()):
            item_id = lookup.resolve(identifier, branch)
            if item_id is not None:
                return item_id
        return None


DEFAULT_STRATEGIES = (
    IdentityStrategy(),
    ProductIdStrategy(),
    ProductCodeStrategy(),
    CatalogProductStrategy(),
)


def resolve_inventory_item(product_ref, branch, strategies=DEFAULT_STRATEGIES):
    """Run the strategy chain; returns ``(item_id, attempted_strategy_names)``."""
    attempted = []
    for strategy in strategies:
        attempted.append(strategy.name)
        item_id = strategy.resolve(product_ref, branch)
        if item_id is not None:
            return item_id, tuple(attempted)
    return None, tuple(attempted)


def _is_applicable(product_ref, quantity):
    ref = str(product_ref or "").strip()
    if not ref or ref.upper() == NOT_APPLICABLE:
        return False
    return quantity is not None and Decimal(quantity) > 0


def _apply_delta(item_id, delta, *, movement_type, reference_type, reference_id, note, actor):
    with transaction.atomic():
        item = InventoryItem.objects.select_for_update().get(pk=item_id)
        item.quantity = quantize(item.quantity + delta)
        item.save(update_fields=["quantity", "updated_at"])
        InventoryMovement.objects.create(
            item=item,
            movement_type=movement_type,
            quantity_delta=delta,
            quantity_after=item.quantity,
            reference_type=reference_type,
            reference_id=str(reference_id),
            note=note,
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
        )
    return item


def _move_stock(product_ref, quantity, branch, *, sign, movement_type, reference_type, reference_id, note, actor):
    if not _is_applicable(product_ref, quantity):
        return None, None

    ref = str(product_ref).strip()
    item_id, attempted = resolve_inventory_item(ref, branch)
    if item_id is None:
        miss = ResolutionMiss(product_ref=ref, branch=getattr(branch, "name", str(branch)), attempted=attempted)
        logger.warning(
            "No inventory item matched product_ref=%s in branch=%s (tried: %s)",
            miss.product_ref,
            miss.branch,
            ", ".join(attempted),
        )
        return None, miss

    delta = quantize(Decimal(quantity)) * sign
    item = _apply_delta(
        item_id,
        delta,
        movement_type=movement_type,
        reference_type=reference_type,
        reference_id=reference_id,
        note=note,
        actor=actor,
    )
    logger.debug("Inventory %s %s -> %s (%s)", item.product_id, delta, item.quantity, item.status)
    return item, None


def release_inventory(product_ref, quantity, branch, *, reference_type, reference_id, note="", actor=None):
    """Take ``quantity`` units out of the branch stock matching ``product_ref``.

    Returns ``(item, miss)``; both are ``None`` for a no-op (empty or "N/A"
    reference, non-positive quantity).
    """
    return _move_stock(
        product_ref,
        quantity,
        branch,
        sign=-1,
        movement_type=MovementType.OUTBOUND,
        reference_type=reference_type,
        reference_id=reference_id,
        note=note or "Released on settlement",
        actor=actor,
    )


def restore_inventory(product_ref, quantity, branch, *, reference_type, reference_id, note="", actor=None):
    return _move_stock(
        product_ref,
        quantity,
        branch,
        sign=1,
        movement_type=MovementType.INBOUND,
        reference_type=reference_type,
        reference_id=reference_id,
        note=note or "Restored after reversal",
        actor=actor,
    )


def adjust_inventory(item, delta, *, reference_id, note="", actor=None):
    delta = quantize(delta)
    if delta == 0:
        raise InvalidArgument("quantity_delta cannot be zero.")
    return _apply_delta(
        item.pk,
        delta,
        movement_type=MovementType.ADJUSTMENT,
        reference_type="manual_adjustment",
        reference_id=reference_id,
        note=note,
        actor=actor,
    )
