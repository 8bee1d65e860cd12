# Overview: Document numbering, totals computation and line-item handling shared by every document family.

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from ..extensions import db
from ..models import DocumentSequence, Invoice, Payment, Product, PurchaseOrder, SalesOrder
from ..money import MAX_AMOUNT_CENTS, parse_money, round_half_up
from ..validation import NotFoundError, PersistenceError, ValidationError, require_positive_int, require_quantity

logger = logging.getLogger(__name__)


class DocumentSequenceError(PersistenceError):
    """Raised when a document number could not be allocated. No document was created."""


@dataclass(frozen=True)
class DocumentFamily:
    prefix: str
    width: int
    model: type
    number_attr: str


FAMILIES: dict[str, DocumentFamily] = {
    "invoice": DocumentFamily("INV", 3, Invoice, "invoice_number"),
    "sales_order": DocumentFamily("ORD", 3, SalesOrder, "order_number"),
    "payment": DocumentFamily("PAY", 3, Payment, "payment_number"),
    "purchase_order": DocumentFamily("PO", 6, PurchaseOrder, "po_number"),
}


def _get_family(family: str) -> DocumentFamily:
    try:
        return FAMILIES[family]
    except KeyError:
        raise ValidationError(f"Unknown document family: {family}")


def format_document_number(family: str, number: int) -> str:
    """INV + 4 -> "INV-004". Wider numbers are kept whole ("INV-1000")."""
    fam = _get_family(family)
    return f"{fam.prefix}-{number:0{fam.width}d}"


def _max_conforming_number(fam: DocumentFamily) -> int:
    """
    Highest numeric suffix among persisted identifiers of the family.

    Only identifiers of the exact form PREFIX-<digits> count; legacy or
    hand-entered values such as "INV-BAD" are ignored.
    """
    pattern = re.compile(rf"^{re.escape(fam.prefix)}-(\d+)$")
    column = getattr(fam.model, fam.number_attr)
    rows = db.session.execute(select(column).where(column.like(f"{fam.prefix}-%"))).scalars()
    best = 0
    for value in rows:
        match = pattern.match(value or "")
        if match:
            best = max(best, int(match.group(1)))
    return best


def _read_counter(document_type: str) -> int | None:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )


def _reserve_counter(document_type: str) -> int:
    """
    Atomically take the counter's current value and advance it by one.

    The UPDATE holds the counter row lock until the caller's transaction ends,
    so concurrent allocations for the same family are serialised.
    """
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _read_counter(document_type) - 1

    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(document_type=document_type, next_number=2))
        return 1
    except IntegrityError:
        # Another transaction created the row first; take the update path.
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _read_counter(document_type) - 1


def next_document_number(family: str) -> str:
    """
    Allocate the next identifier for a document family.

    Runs inside the caller's transaction: if the document insert fails and
    rolls back, the reservation is rolled back with it. The result is always
    greater than every conforming persisted identifier and every number
    reserved before, so deleted numbers are never reissued.
    """
    fam = _get_family(family)
    try:
        floor = _max_conforming_number(fam) + 1
        number = _reserve_counter(family)
        if number < floor:
            number = floor
            db.session.execute(
                update(DocumentSequence)
                .where(DocumentSequence.document_type == family)
                .values(next_number=number + 1)
            )
    except OperationalError:
        # Lock contention; the caller's retry loop handles it.
        raise
    except SQLAlchemyError as exc:
        logger.warning("Could not allocate %s number: %s", family, exc)
        raise DocumentSequenceError(
            f"Could not allocate a {family} number; no document was created",
            details={"family": family},
        ) from exc

    allocated = format_document_number(family, number)
    logger.info("Allocated %s", allocated)
    return allocated


def peek_next_document_number(family: str) -> str:
    """The identifier next_document_number would return now, without reserving it."""
    fam = _get_family(family)
    counter = _read_counter(family) or 1
    return format_document_number(family, max(counter, _max_conforming_number(fam) + 1))


def list_sequences() -> list[dict]:
    rows = {s.document_type: s for s in db.session.query(DocumentSequence).all()}
    out = []
    for family in FAMILIES:
        seq = rows.get(family)
        out.append({
            "family": family,
            "prefix": FAMILIES[family].prefix,
            "counter": seq.next_number if seq else 1,
            "next_number": peek_next_document_number(family),
        })
    return out


# =============================================================================
# Totals
# =============================================================================

@dataclass(frozen=True)
class Totals:
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int


def _bounded(cents: int, label: str) -> int:
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{label} is too large")
    return cents


def compute_line_total(quantity: int, unit_price_cents: int) -> int:
    """quantity x unit price; exact in integer cents."""
    return _bounded(quantity * unit_price_cents, "line total")


def compute_tax_cents(subtotal_cents: int, tax_rate) -> int:
    """subtotal x rate / 100, rounded half-up to the cent."""
    rate = Decimal(str(tax_rate or 0))
    return round_half_up(Decimal(subtotal_cents) * rate / Decimal(100))


def compute_document_totals(items, tax_rate, discount_cents: int = 0) -> Totals:
    """
    Document totals from (quantity, unit_price_cents) pairs.

    >>> compute_document_totals([(2, 1000), (1, 500)], 8)
    Totals(subtotal_cents=2500, tax_cents=200, discount_cents=0, total_cents=2700)
    """
    subtotal = _bounded(sum(compute_line_total(q, p) for q, p in items), "subtotal")
    tax = compute_tax_cents(subtotal, tax_rate)
    discount = discount_cents or 0
    if discount < 0:
        raise ValidationError("discount must be >= 0")
    if discount > subtotal + tax:
        raise ValidationError("discount cannot exceed subtotal plus tax")
    return Totals(
        subtotal_cents=subtotal,
        tax_cents=tax,
        discount_cents=discount,
        total_cents=_bounded(subtotal + tax - discount, "total"),
    )


def apply_totals(doc, *, use_discount: bool = False) -> Totals:
    """Recompute and store a document's totals from its current items."""
    pairs = [(item.quantity, _line_unit_cents(item)) for item in doc.items]
    totals = compute_document_totals(
        pairs,
        doc.tax_rate,
        doc.discount_cents if use_discount else 0,
    )
    doc.subtotal_cents = totals.subtotal_cents
    doc.tax_cents = totals.tax_cents
    doc.total_cents = totals.total_cents
    return totals


def _line_unit_cents(item) -> int:
    if hasattr(item, "unit_cost_cents"):
        return item.unit_cost_cents
    return item.unit_price_cents


# =============================================================================
# Line items
# =============================================================================

def build_line_items(item_model, raw_items, *, price_key: str = "unit_price") -> list:
    """
    Validate item payloads and build unsaved item rows in submitted order.

    Each payload: product_id (optional), product_name (required without a
    product), quantity (integer >= 1), and the unit amount under price_key
    (defaults to the product's price or cost). Name and SKU are snapshotted
    from the product at write time.
    """
    if raw_items is None:
        raw_items = []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    cents_attr = f"{price_key}_cents"
    rows = []
    for position, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{position}] must be an object")
        allowed = {"product_id", "product_name", "product_sku", "quantity", price_key}
        extra = sorted(set(raw) - allowed)
        if extra:
            raise ValidationError(f"items[{position}]: field not allowed: {extra[0]}")

        quantity = require_quantity(raw.get("quantity"), f"items[{position}].quantity")

        product = None
        product_id = raw.get("product_id")
        if product_id is not None:
            product_id = require_positive_int(product_id, f"items[{position}].product_id")
            product = db.session.get(Product, product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")

        name = (raw.get("product_name") or "").strip() or (product.name if product else "")
        if not name:
            raise ValidationError(f"items[{position}].product_name is required")
        sku = raw.get("product_sku") or (product.sku if product else None)

        if raw.get(price_key) is not None:
            unit_cents = parse_money(raw[price_key], f"items[{position}].{price_key}")
        elif product is not None:
            default = product.cost_cents if price_key == "unit_cost" else product.price_cents
            unit_cents = default or 0
        else:
            raise ValidationError(f"items[{position}].{price_key} is required")

        rows.append(item_model(**{
            "position": position,
            "product_id": product.id if product else None,
            "product_name": name,
            "product_sku": sku,
            "quantity": quantity,
            cents_attr: unit_cents,
            "total_cents": compute_line_total(quantity, unit_cents),
        }))
    return rows


def replace_line_items(doc, new_items: list) -> None:
    """
    Full replacement: every existing item is deleted and the new set inserted.

    The old rows are flushed out before the new ones go in so the document
    never holds a mix of old and new lines.
    """
    doc.items.clear()
    db.session.flush()
    for item in new_items:
        doc.items.append(item)
    db.session.flush()


MISSING = object()


def split_document_payload(payload) -> tuple[dict, object]:
    """Separate the `items` list from header fields. Items are MISSING when omitted."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    header = dict(payload)
    items = header.pop("items", MISSING)
    return header, items
