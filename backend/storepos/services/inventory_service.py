# Overview: Inventory Ledger primitive; atomic, never-negative stock adjustments.

"""
Inventory Ledger Invariants (authoritative)

- On-hand quantity lives on products.stock_quantity, or on
  product_variants.stock_quantity when a variant is given.
- On-hand quantity may never go negative. The guard is part of the UPDATE
  itself (stock + delta >= 0), never a read-then-write in the caller, so two
  concurrent sales cannot both take the last unit.
- Only the sale recorder (negative deltas) and the refund processor
  (positive deltas) call adjust().
- Each applied adjustment appends an InventoryMovement in the same
  transaction. adjust() never commits; the caller's transaction decides.
"""

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Product, ProductVariant, InventoryMovement
from ..errors import NotFoundError, ValidationError
from storepos.time_utils import utcnow
from .concurrency import conditional_update


MOVEMENT_SALE = "sale"
MOVEMENT_REFUND = "refund"


def _stock_table(variant_id: int | None):
    return ProductVariant.__table__ if variant_id is not None else Product.__table__


def adjust(
    product_id: int,
    delta: int,
    variant_id: int | None = None,
    *,
    reason: str,
    reference: str | None = None,
    actor_id: int | None = None,
) -> InventoryMovement:
    """
    Apply delta to the on-hand count as one guarded UPDATE.

    Raises:
        ValidationError: delta would drive the count below zero, or delta is 0
        NotFoundError: product/variant does not exist
    """
    if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
        raise ValidationError("Inventory delta must be a non-zero integer", details={"delta": delta})

    table = _stock_table(variant_id)
    row_id = variant_id if variant_id is not None else product_id

    identity = [table.c.id == row_id]
    if variant_id is not None:
        identity.append(table.c.product_id == product_id)

    stmt = (
        update(table)
        .where(*identity, table.c.stock_quantity + delta >= 0)
        .values(stock_quantity=table.c.stock_quantity + delta)
    )

    if not conditional_update(stmt):
        current = db.session.query(table.c.stock_quantity).filter(*identity).scalar()
        if current is None:
            raise NotFoundError(
                "Inventory item not found",
                details={"product_id": product_id, "variant_id": variant_id},
            )
        raise ValidationError(
            "Insufficient stock",
            details={
                "product_id": product_id,
                "variant_id": variant_id,
                "requested_quantity": -delta,
                "on_hand": int(current),
            },
        )

    quantity_after = db.session.query(table.c.stock_quantity).filter(table.c.id == row_id).scalar()

    movement = InventoryMovement(
        product_id=product_id,
        variant_id=variant_id,
        quantity_delta=delta,
        quantity_after=int(quantity_after),
        reason=reason,
        reference=reference,
        actor_id=actor_id,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    return movement


def decrement(product_id: int, quantity: int, variant_id: int | None = None, **kwargs) -> InventoryMovement:
    """Take quantity units out of stock (sale)."""
    return adjust(product_id, -quantity, variant_id, reason=MOVEMENT_SALE, **kwargs)


def increment(product_id: int, quantity: int, variant_id: int | None = None, **kwargs) -> InventoryMovement:
    """Put quantity units back into stock (restock after refund)."""
    return adjust(product_id, quantity, variant_id, reason=MOVEMENT_REFUND, **kwargs)


def get_movements(product_id: int, variant_id: int | None = None) -> list[InventoryMovement]:
    """Movement history for a product (or one of its variants), oldest first."""
    query = db.session.query(InventoryMovement).filter_by(product_id=product_id)
    if variant_id is not None:
        query = query.filter_by(variant_id=variant_id)
    return query.order_by(InventoryMovement.occurred_at, InventoryMovement.id).all()
