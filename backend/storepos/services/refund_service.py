"""
Refund Processor

The only writer of POS returns, and the only code besides the sale recorder
that moves stock after a sale.

DESIGN PRINCIPLES:
- Refunds are item-level and may be partial; each request becomes a new,
  immutable PosReturn linked to the original transaction.
- Refund amounts use the unit price frozen on the sale line, never the
  current catalog price, less the returned units' share of any line discount.
- Items name a product, optionally a variant. A product-level item draws
  from every line of that product on the sale, in line order.
- A request is all-or-nothing: every item is validated before anything is
  written, and the whole request runs in one database transaction.
- Over-refund protection: each sale line's refunded_quantity only moves
  through a conditional UPDATE (refunded_quantity + q <= quantity), so two
  concurrent refunds for the same receipt cannot jointly exceed what was sold.

LIFECYCLE:
1. lookup(receipt_number): show the sale with refundable quantities
2. process_refund(...): validate, insert return + items, restock, audit
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..models import PosTransaction, PosTransactionItem, PosReturn, PosReturnItem
from ..models.returns import VALID_CONDITIONS
from ..models.sales import TRANSACTION_STATUS_COMPLETED
from ..errors import ConflictError, NotFoundError, ValidationError
from ..money import format_currency
from storepos.time_utils import utcnow
from . import inventory_service, side_effects
from .concurrency import conditional_update, lock_for_update, run_with_retry
from .document_service import next_document_number, DOCUMENT_TYPE_RETURN


@dataclass(frozen=True)
class RefundItemInput:
    product_id: int
    quantity: int
    reason: str
    condition: str
    variant_id: Optional[int] = None


@dataclass
class LookupLine:
    transaction_item_id: int
    product_id: int
    variant_id: Optional[int]
    product_name: Optional[str]
    sku: Optional[str]
    quantity_sold: int
    quantity_refunded: int
    unit_price_cents: int
    subtotal_cents: int
    discount_cents: int = 0

    @property
    def quantity_refundable(self) -> int:
        return max(self.quantity_sold - self.quantity_refunded, 0)

    def to_dict(self) -> dict:
        return {
            "transaction_item_id": self.transaction_item_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "quantity_sold": self.quantity_sold,
            "quantity_refunded": self.quantity_refunded,
            "quantity_refundable": self.quantity_refundable,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
        }


@dataclass
class TransactionLookup:
    transaction: PosTransaction
    lines: list[LookupLine] = field(default_factory=list)

    @property
    def is_fully_refunded(self) -> bool:
        return all(line.quantity_refundable == 0 for line in self.lines)

    def to_dict(self) -> dict:
        return {
            "transaction": self.transaction.to_dict(include_items=False),
            "payments": [payment.to_dict() for payment in self.transaction.payments],
            "lines": [line.to_dict() for line in self.lines],
            "is_fully_refunded": self.is_fully_refunded,
        }


@dataclass
class RefundResult:
    pos_return: PosReturn

    @property
    def return_number(self) -> str:
        return self.pos_return.return_number

    @property
    def refund_amount_cents(self) -> int:
        return self.pos_return.refund_amount_cents

    def to_dict(self) -> dict:
        return {
            "return_number": self.return_number,
            "refund_amount_cents": self.refund_amount_cents,
            "return": self.pos_return.to_dict(),
        }


# =============================================================================
# LOOKUP
# =============================================================================

def refunded_quantities(transaction_id: int) -> dict[int, int]:
    """Quantity refunded to date per sale line, summed from prior return items."""
    rows = (
        db.session.query(PosReturnItem.transaction_item_id, func.coalesce(func.sum(PosReturnItem.quantity), 0))
        .filter(PosReturnItem.transaction_id == transaction_id)
        .group_by(PosReturnItem.transaction_item_id)
        .all()
    )
    return {item_id: int(qty) for item_id, qty in rows}


def _find_by_receipt(receipt_number: str) -> PosTransaction | None:
    return db.session.query(PosTransaction).filter_by(receipt_number=receipt_number).first()


def lookup(receipt_number: str) -> TransactionLookup:
    """
    Find a transaction by receipt number with per-line refundable quantities.

    Raises:
        NotFoundError: no transaction carries this receipt number
    """
    receipt_number = (receipt_number or "").strip()
    if not receipt_number:
        raise ValidationError("Receipt number is required")

    txn = _find_by_receipt(receipt_number)
    if txn is None:
        raise NotFoundError(
            "Transaction not found. Check the receipt number and try again.",
            details={"receipt_number": receipt_number},
        )

    refunded = refunded_quantities(txn.id)
    lines = [
        LookupLine(
            transaction_item_id=item.id,
            product_id=item.product_id,
            variant_id=item.variant_id,
            product_name=item.product.name if item.product else None,
            sku=(item.variant.sku if item.variant else None) or (item.product.sku if item.product else None),
            quantity_sold=item.quantity,
            quantity_refunded=refunded.get(item.id, 0),
            unit_price_cents=item.unit_price_cents,
            subtotal_cents=item.subtotal_cents,
            discount_cents=item.discount_cents or 0,
        )
        for item in txn.items
    ]
    return TransactionLookup(transaction=txn, lines=lines)


# =============================================================================
# REFUND PROCESSING
# =============================================================================

def _validate_items(items: list[RefundItemInput]) -> None:
    """Reject the whole request if any single item is malformed."""
    if not items:
        raise ValidationError("Select at least one item to refund")

    min_reason = current_app.config.get("REFUND_REASON_MIN_LENGTH", 3)
    problems = []
    for index, item in enumerate(items):
        if not isinstance(item.quantity, int) or isinstance(item.quantity, bool) or item.quantity <= 0:
            problems.append({"index": index, "product_id": item.product_id, "error": "quantity must be a positive integer"})
        if len((item.reason or "").strip()) < min_reason:
            problems.append({
                "index": index,
                "product_id": item.product_id,
                "error": f"reason must be at least {min_reason} characters",
            })
        if item.condition not in VALID_CONDITIONS:
            problems.append({
                "index": index,
                "product_id": item.product_id,
                "error": f"condition must be one of {list(VALID_CONDITIONS)}",
            })

    if problems:
        raise ValidationError("All selected items require a valid quantity, condition and reason", details={"items": problems})


def _candidate_lines(txn: PosTransaction, item: RefundItemInput) -> list[PosTransactionItem]:
    """
    Sale lines an item may draw from.

    Without a variant_id the item refers to the product as a whole, so every
    line of that product (base and variants) is a candidate.
    """
    lines = [
        line for line in txn.items
        if line.product_id == item.product_id
        and (item.variant_id is None or line.variant_id == item.variant_id)
    ]
    if not lines:
        raise ValidationError(
            "Product not found in this transaction",
            details={"product_id": item.product_id, "variant_id": item.variant_id},
        )
    return lines


@dataclass
class _Allocation:
    position: int
    item: RefundItemInput
    line: PosTransactionItem
    quantity: int


def _allocate(
    txn: PosTransaction,
    items: list[RefundItemInput],
    refunded_before: dict[int, int],
) -> tuple[list[_Allocation], dict[int, int]]:
    """
    Spread each requested quantity over its candidate lines, in line order.

    Variant-specific items claim their lines first; product-level items then
    take whatever is left across all of that product's lines. Repeated items
    share the same remaining counts, so the limit applies to the request as
    a whole.

    Raises:
        ConflictError: some item asks for more than its lines still hold
    """
    remaining = {line.id: line.quantity - refunded_before.get(line.id, 0) for line in txn.items}
    ordered = sorted(enumerate(items), key=lambda pair: pair[1].variant_id is None)

    allocations: list[_Allocation] = []
    requested: dict[tuple[int, int | None], int] = {}
    short: dict[tuple[int, int | None], list[PosTransactionItem]] = {}

    for position, item in ordered:
        lines = _candidate_lines(txn, item)
        key = (item.product_id, item.variant_id)
        requested[key] = requested.get(key, 0) + item.quantity

        left = item.quantity
        for line in lines:
            take = min(left, remaining[line.id])
            if take <= 0:
                continue
            allocations.append(_Allocation(position=position, item=item, line=line, quantity=take))
            remaining[line.id] -= take
            left -= take
            if not left:
                break
        if left:
            short[key] = lines

    if short:
        over = []
        for (product_id, variant_id), lines in short.items():
            sold = sum(line.quantity for line in lines)
            refunded = sum(refunded_before.get(line.id, 0) for line in lines)
            over.append({
                "product_id": product_id,
                "variant_id": variant_id,
                "requested_quantity": requested[(product_id, variant_id)],
                "quantity_sold": sold,
                "quantity_refunded": refunded,
                "quantity_refundable": sold - refunded,
            })
        raise ConflictError("Refund quantity exceeds the remaining refundable quantity", details={"items": over})

    allocations.sort(key=lambda a: (a.position, a.line.line_number))
    per_line: dict[int, int] = {}
    for allocation in allocations:
        per_line[allocation.line.id] = per_line.get(allocation.line.id, 0) + allocation.quantity
    return allocations, per_line


def _discount_share(line: PosTransactionItem, already: int, quantity: int) -> int:
    """Line discount given back with `quantity` more units; all refunds of a line together return exactly its discount."""
    if not line.discount_cents:
        return 0
    before = line.discount_cents * already // line.quantity
    after = line.discount_cents * (already + quantity) // line.quantity
    return after - before


def process_refund(
    *,
    transaction_id: int,
    items: list[RefundItemInput],
    actor_id: int | None = None,
    notes: str | None = None,
) -> RefundResult:
    """
    Refund part or all of a prior transaction and restock the returned goods.

    Side effects, in order: insert the return header and items, bump each
    sale line's refunded_quantity, increment stock for each item. An audit
    entry with before/after refunded quantities is dispatched after commit.

    Raises:
        NotFoundError: transaction does not exist
        ValidationError: empty request, short reason, bad quantity/condition,
            product not on the transaction
        ConflictError: transaction voided or fully refunded, or a quantity
            exceeds what is still refundable
    """
    _validate_items(items)
    notes = (notes or "").strip() or None

    def _op() -> tuple[PosReturn, dict, dict]:
        txn = lock_for_update(db.session.query(PosTransaction).filter_by(id=transaction_id)).first()
        if not txn:
            raise NotFoundError("Transaction not found.", details={"transaction_id": transaction_id})

        if txn.status != TRANSACTION_STATUS_COMPLETED:
            raise ConflictError(
                f"Cannot refund a {txn.status} transaction",
                details={"transaction_id": transaction_id, "status": txn.status},
            )

        refunded_before = refunded_quantities(txn.id)
        if all(refunded_before.get(line.id, 0) >= line.quantity for line in txn.items):
            raise ConflictError(
                "This transaction has already been fully refunded.",
                details={"transaction_id": transaction_id},
            )

        allocations, requested = _allocate(txn, items, refunded_before)

        return_number = next_document_number(
            document_type=DOCUMENT_TYPE_RETURN,
            prefix=current_app.config.get("RETURN_PREFIX", "RET"),
        )

        return_rows = []
        taken = dict(refunded_before)
        for allocation in allocations:
            line = allocation.line
            discount = _discount_share(line, taken.get(line.id, 0), allocation.quantity)
            taken[line.id] = taken.get(line.id, 0) + allocation.quantity
            return_rows.append(PosReturnItem(
                transaction_id=txn.id,
                transaction_item_id=line.id,
                product_id=line.product_id,
                variant_id=line.variant_id,
                quantity=allocation.quantity,
                unit_price_cents=line.unit_price_cents,
                discount_cents=discount,
                refund_cents=line.unit_price_cents * allocation.quantity - discount,
                condition=allocation.item.condition,
                reason=allocation.item.reason.strip(),
            ))

        pos_return = PosReturn(
            return_number=return_number,
            transaction_id=txn.id,
            refund_amount_cents=sum(row.refund_cents for row in return_rows),
            notes=notes,
            processed_by_staff_id=actor_id,
            created_at=utcnow(),
        )
        db.session.add(pos_return)
        db.session.flush()

        for row in return_rows:
            row.return_id = pos_return.id
            db.session.add(row)

        # Serialization point: a concurrent refund that already took these
        # units makes the guard fail and the whole request roll back.
        table = PosTransactionItem.__table__
        for line_id, qty in requested.items():
            applied = conditional_update(
                update(table)
                .where(table.c.id == line_id, table.c.refunded_quantity + qty <= table.c.quantity)
                .values(refunded_quantity=table.c.refunded_quantity + qty)
            )
            if not applied:
                raise ConflictError(
                    "Refund quantity exceeds the remaining refundable quantity",
                    details={"transaction_item_id": line_id, "requested_quantity": qty},
                )

        for allocation in allocations:
            inventory_service.increment(
                allocation.line.product_id,
                allocation.quantity,
                allocation.line.variant_id,
                reference=return_number,
                actor_id=actor_id,
            )

        refunded_after = dict(refunded_before)
        for line_id, qty in requested.items():
            refunded_after[line_id] = refunded_after.get(line_id, 0) + qty

        db.session.commit()
        return pos_return, refunded_before, refunded_after

    pos_return, before, after = run_with_retry(_op)

    side_effects.audit(
        "process_refund",
        "pos_return",
        pos_return.id,
        actor_id=actor_id,
        old_value={
            "receipt_number": pos_return.transaction.receipt_number,
            "refunded_quantities": {str(k): v for k, v in before.items()},
        },
        new_value={
            "return_number": pos_return.return_number,
            "receipt_number": pos_return.transaction.receipt_number,
            "refund_amount_cents": pos_return.refund_amount_cents,
            "refunded_quantities": {str(k): v for k, v in after.items()},
            "items": [item.to_dict() for item in pos_return.items],
            "notes": pos_return.notes,
        },
    )
    current_app.logger.info(
        "Refund %s processed against %s for %s",
        pos_return.return_number,
        pos_return.transaction.receipt_number,
        format_currency(pos_return.refund_amount_cents),
    )

    return RefundResult(pos_return=pos_return)


# =============================================================================
# QUERIES
# =============================================================================

def get_transaction_returns(transaction_id: int) -> list[PosReturn]:
    """All returns processed against a transaction, oldest first."""
    return (
        db.session.query(PosReturn)
        .filter_by(transaction_id=transaction_id)
        .order_by(PosReturn.created_at, PosReturn.id)
        .all()
    )


def get_return_by_number(return_number: str) -> PosReturn:
    pos_return = db.session.query(PosReturn).filter_by(return_number=(return_number or "").strip()).first()
    if not pos_return:
        raise NotFoundError("Return not found", details={"return_number": return_number})
    return pos_return
