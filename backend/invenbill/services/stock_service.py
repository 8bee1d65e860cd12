# Overview: Service-layer operations for the stock ledger; every stock change is a movement plus a product update.

"""
InvenBill Stock Ledger Invariants (authoritative)

Ledger model:
- StockMovement rows are append-only. Only the free-text `reason` may be
  edited after insert; quantities, snapshots and references are write-once.
- Product.stock is a cache of the ledger: it always equals the stock_after of
  the product's most recent movement (or 0 when there is none).

Business invariants:
- stock_after = stock_before + quantity_change, and quantity_change != 0.
- Stock may never go negative.
- A caller-supplied stock_before must match the product's current stock
  (lost-update protection); a mismatch is a ConflictError.

Transactions:
- The product row is locked for the duration of the movement.
- The movement insert and the product update commit together or not at all.
- commit=False composes the movement into the caller's unit of work
  (purchase order receiving, product opening stock).
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..extensions import db
from ..models import MOVEMENT_TYPES, Product, PurchaseOrder, StockMovement
from ..validation import MAX_QUANTITY, ConflictError, NotFoundError, ValidationError, require_choice
from invenbill.time_utils import utcnow, parse_iso_datetime
from .concurrency import atomic, lock_for_update, run_atomic

logger = logging.getLogger(__name__)

# Fields fixed at insert time. Only `reason` is editable afterwards.
IMMUTABLE_MOVEMENT_FIELDS = (
    "product_id",
    "product_name",
    "product_sku",
    "movement_type",
    "quantity_change",
    "stock_before",
    "stock_after",
    "reference_id",
    "reference_type",
    "movement_date",
    "created_by",
)


def _parse_movement_date(value) -> datetime:
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            dt = None
        if dt is None:
            raise ValidationError("movement_date must be an ISO-8601 datetime")
        return dt
    raise ValidationError("movement_date must be a datetime")


def _strict_int(value, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer")
    return value


def _get_locked_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _apply_movement(
    *,
    product_id: int,
    movement_type: str,
    quantity_change,
    stock_before=None,
    stock_after=None,
    product_name: str | None = None,
    product_sku: str | None = None,
    reason: str | None = None,
    reference_id: int | None = None,
    reference_type: str | None = None,
    movement_date=None,
    created_by: int | None = None,
) -> StockMovement:
    product_id = _strict_int(product_id, "product_id")
    require_choice(movement_type, MOVEMENT_TYPES, "movement_type")
    quantity_change = _strict_int(quantity_change, "quantity_change")
    if quantity_change == 0:
        raise ValidationError("quantity_change cannot be zero")
    if abs(quantity_change) > MAX_QUANTITY:
        raise ValidationError("quantity_change is too large")

    product = _get_locked_product(product_id)
    current = product.stock

    if stock_before is not None:
        stock_before = _strict_int(stock_before, "stock_before")
        if stock_before != current:
            raise ConflictError(
                f"Stock for product {product_id} changed (expected {stock_before}, found {current})"
            )

    computed_after = current + quantity_change
    if stock_after is not None:
        stock_after = _strict_int(stock_after, "stock_after")
        if stock_after != computed_after:
            raise ValidationError("stock_after must equal stock_before + quantity_change")

    if computed_after < 0:
        raise ValidationError(
            f"Insufficient stock for product {product_id}: on hand {current}, change {quantity_change}"
        )
    if computed_after > MAX_QUANTITY:
        raise ValidationError(f"Stock for product {product_id} would exceed {MAX_QUANTITY}")

    if reference_id is not None:
        reference_id = _strict_int(reference_id, "reference_id")

    moved_at = _parse_movement_date(movement_date)

    movement = StockMovement(
        product_id=product.id,
        product_name=(product_name or product.name),
        product_sku=(product_sku if product_sku is not None else product.sku),
        movement_type=movement_type,
        quantity_change=quantity_change,
        stock_before=current,
        stock_after=computed_after,
        reason=reason,
        reference_id=reference_id,
        reference_type=reference_type,
        movement_date=moved_at,
        created_by=created_by,
    )
    db.session.add(movement)

    product.stock = computed_after
    if movement_type == "purchase" and quantity_change > 0:
        product.last_restocked_at = moved_at

    # Status follows stock, except for products taken out of the catalog
    if product.status != "inactive":
        product.status = "out_of_stock" if computed_after == 0 else "active"

    db.session.flush()
    logger.debug(
        "Stock movement %s on product %s: %s -> %s",
        movement_type, product.id, current, computed_after,
    )
    return movement


def record_stock_movement(
    *,
    product_id: int,
    movement_type: str,
    quantity_change: int,
    stock_before: int | None = None,
    stock_after: int | None = None,
    product_name: str | None = None,
    product_sku: str | None = None,
    reason: str | None = None,
    reference_id: int | None = None,
    reference_type: str | None = None,
    movement_date=None,
    created_by: int | None = None,
    commit: bool = True,
) -> StockMovement:
    """
    Record a movement and apply it to Product.stock.

    With commit=True this is its own transaction (retried on lock and
    stale-data failures). With commit=False the caller owns the transaction.
    """
    def _op() -> StockMovement:
        return _apply_movement(
            product_id=product_id,
            movement_type=movement_type,
            quantity_change=quantity_change,
            stock_before=stock_before,
            stock_after=stock_after,
            product_name=product_name,
            product_sku=product_sku,
            reason=reason,
            reference_id=reference_id,
            reference_type=reference_type,
            movement_date=movement_date,
            created_by=created_by,
        )

    if not commit:
        return _op()
    return run_atomic(_op)


def adjust_stock(
    *,
    product_id: int,
    new_stock: int,
    reason: str | None = None,
    current_stock: int | None = None,
    created_by: int | None = None,
    commit: bool = True,
) -> StockMovement:
    """
    Set a product's stock to an absolute value via an 'adjustment' movement.

    current_stock, when given, is the caller's view of the stock and must
    still be accurate (see record_stock_movement's stock_before).
    """
    product_id = _strict_int(product_id, "product_id")
    new_stock = _strict_int(new_stock, "new_stock")
    if new_stock < 0:
        raise ValidationError("new_stock must be >= 0")

    def _op() -> StockMovement:
        product = _get_locked_product(product_id)
        if current_stock is not None:
            base = _strict_int(current_stock, "current_stock")
        else:
            base = product.stock
        change = new_stock - base
        if change == 0:
            raise ValidationError("new_stock equals current stock; nothing to adjust")
        return _apply_movement(
            product_id=product_id,
            movement_type="adjustment",
            quantity_change=change,
            stock_before=base,
            stock_after=new_stock,
            reason=reason,
            created_by=created_by,
        )

    if not commit:
        return _op()
    return run_atomic(_op)


def get_stock_movement(movement_id: int) -> StockMovement:
    movement = db.session.get(StockMovement, movement_id)
    if movement is None:
        raise NotFoundError(f"Stock movement {movement_id} not found")
    return movement


def list_stock_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    limit: int = 200,
) -> list[StockMovement]:
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type is not None:
        require_choice(movement_type, MOVEMENT_TYPES, "movement_type")
        q = q.filter(StockMovement.movement_type == movement_type)
    return (
        q.order_by(StockMovement.movement_date.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def update_stock_movement_reason(movement_id: int, payload: dict) -> StockMovement:
    """
    Edit the free-text reason of a movement.

    WHY: The ledger is the audit trail for Product.stock. Rewriting a
    quantity after the fact would make stock_after disagree with the product
    and with every later movement, so only `reason` is accepted here.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    blocked = sorted(k for k in payload if k in IMMUTABLE_MOVEMENT_FIELDS)
    if blocked:
        raise ValidationError(f"Stock movements are immutable; cannot change: {', '.join(blocked)}")
    unknown = sorted(k for k in payload if k != "reason")
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    reason = payload.get("reason")
    if reason is not None:
        reason = str(reason).strip() or None
        if reason is not None and len(reason) > 255:
            raise ValidationError("reason exceeds max length 255")

    def _op() -> StockMovement:
        movement = get_stock_movement(movement_id)
        movement.reason = reason
        db.session.flush()
        return movement

    return atomic(_op)


def receive_purchase_order(purchase_order: PurchaseOrder, *, created_by: int | None = None) -> list[StockMovement]:
    """
    Post one 'purchase' movement per line of a purchase order.

    Runs inside the caller's transaction (the status change to 'received').
    Lines without a product reference are skipped.
    """
    if purchase_order.received_at is not None:
        raise ConflictError(f"Purchase order {purchase_order.po_number} was already received")

    movements = []
    for item in purchase_order.items:
        if item.product_id is None:
            continue
        movements.append(
            _apply_movement(
                product_id=item.product_id,
                movement_type="purchase",
                quantity_change=item.quantity,
                product_name=item.product_name,
                product_sku=item.product_sku,
                reason=f"Received {purchase_order.po_number}",
                reference_id=purchase_order.id,
                reference_type="purchase_order",
                created_by=created_by,
            )
        )
    purchase_order.received_at = utcnow()
    logger.info(
        "Received purchase order %s (%d stock movements)",
        purchase_order.po_number, len(movements),
    )
    return movements
