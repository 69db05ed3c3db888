# Overview: Parked (on-hold) carts at the till.

"""
Parked Orders

A cashier can park a cart (optionally tagged with the customer's name and
phone), serve the next customer, and restore it later. Parking reserves
nothing: no stock moves and no price is frozen. A restored cart goes through
record_sale like any other.

LIFECYCLE:
1. park_order(...): validate the cart, store it with an expiry
2. list_parked_orders() / get_parked_order(id): only unexpired carts
3. restore_parked_order(id): hand the cart back and delete it
   (or delete_parked_order(id) to discard it)
4. purge_expired(): housekeeping for carts nobody came back for
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import ParkedOrder
from ..errors import NotFoundError, ValidationError
from storepos.time_utils import utcnow, hours_from_now
from . import catalog_service, side_effects
from .sales_service import SaleLineInput, normalize_lines


def _clean(value: str | None, *, limit: int, field_name: str) -> str | None:
    text = (value or "").strip()
    if not text:
        return None
    if len(text) > limit:
        raise ValidationError(f"{field_name} must be at most {limit} characters", details={"field": field_name})
    return text


def cart_lines(order: ParkedOrder) -> list[SaleLineInput]:
    """The parked cart as sale line inputs, ready for record_sale."""
    return [
        SaleLineInput(
            product_id=line["product_id"],
            variant_id=line.get("variant_id"),
            quantity=line["quantity"],
            discount_cents=line.get("discount_cents", 0),
        )
        for line in order.cart_data
    ]


def park_order(
    *,
    staff_id: int,
    lines: list[SaleLineInput],
    customer_name: str | None = None,
    customer_phone: str | None = None,
    notes: str | None = None,
) -> ParkedOrder:
    """
    Put a cart on hold for PARKED_ORDER_TTL_HOURS.

    Raises:
        ValidationError: empty cart, bad quantity or discount, oversized name/phone
        NotFoundError: unknown or inactive product/variant
    """
    normalized = normalize_lines(lines)
    for line in normalized:
        catalog_service.get_unit_price_cents(line.product_id, line.variant_id)

    now = utcnow()
    order = ParkedOrder(
        staff_id=staff_id,
        customer_name=_clean(customer_name, limit=128, field_name="customer_name"),
        customer_phone=_clean(customer_phone, limit=32, field_name="customer_phone"),
        cart_data=[
            {
                "product_id": line.product_id,
                "variant_id": line.variant_id,
                "quantity": line.quantity,
                "discount_cents": line.discount_cents,
            }
            for line in normalized
        ],
        notes=(notes or "").strip() or None,
        created_at=now,
        expires_at=hours_from_now(current_app.config.get("PARKED_ORDER_TTL_HOURS", 24), start=now),
    )
    db.session.add(order)
    db.session.commit()

    side_effects.audit("park", "parked_order", order.id, actor_id=staff_id, new_value=order.to_dict())
    return order


def list_parked_orders(*, staff_id: int | None = None, now: datetime | None = None) -> list[ParkedOrder]:
    """Unexpired parked carts, newest first."""
    query = db.session.query(ParkedOrder).filter(ParkedOrder.expires_at > (now or utcnow()))
    if staff_id is not None:
        query = query.filter(ParkedOrder.staff_id == staff_id)
    return query.order_by(ParkedOrder.created_at.desc(), ParkedOrder.id.desc()).all()


def get_parked_order(order_id: int, *, now: datetime | None = None) -> ParkedOrder:
    order = db.session.get(ParkedOrder, order_id)
    if order is None or order.expires_at <= (now or utcnow()):
        raise NotFoundError("Parked order not found", details={"parked_order_id": order_id})
    return order


def delete_parked_order(order_id: int, *, actor_id: int | None = None) -> None:
    """Discard a parked cart. Expired carts can still be deleted."""
    order = db.session.get(ParkedOrder, order_id)
    if order is None:
        raise NotFoundError("Parked order not found", details={"parked_order_id": order_id})
    snapshot = order.to_dict()
    db.session.delete(order)
    db.session.commit()

    side_effects.audit("delete", "parked_order", order_id, actor_id=actor_id, old_value=snapshot)


def restore_parked_order(order_id: int, *, actor_id: int | None = None) -> dict:
    """
    Take a cart off hold. The parked row is removed; the returned snapshot
    (see ParkedOrder.to_dict) is all that is left of it.
    """
    order = get_parked_order(order_id)
    snapshot = order.to_dict()
    db.session.delete(order)
    db.session.commit()

    side_effects.audit("restore", "parked_order", order_id, actor_id=actor_id, old_value=snapshot)
    return snapshot


def purge_expired(*, now: datetime | None = None) -> int:
    deleted = (
        db.session.query(ParkedOrder)
        .filter(ParkedOrder.expires_at <= (now or utcnow()))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    if deleted:
        current_app.logger.info("Purged %s expired parked orders", deleted)
    return deleted
