# Overview: Service-layer operations for purchase orders; receiving posts purchase stock movements.

"""
Purchase Order Service

Lifecycle:
- draft -> sent -> received, or cancelled at any point before receipt.
- Entering 'received' posts one 'purchase' stock movement per line, in the
  same transaction as the status change. A received order is final: its
  status and items can no longer change, otherwise the stock already posted
  would disagree with the document.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import PURCHASE_ORDER_STATUSES, PurchaseOrder, PurchaseOrderItem, Vendor
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, ValidationError, require_choice, validate_payload
from invenbill.time_utils import today
from .concurrency import run_atomic
from .document_service import (
    MISSING,
    apply_totals,
    build_line_items,
    next_document_number,
    replace_line_items,
    split_document_payload,
)
from .stock_service import receive_purchase_order

logger = logging.getLogger(__name__)

PURCHASE_ORDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "vendor_id",
        "vendor_name",
        "order_date",
        "expected_delivery_date",
        "tax_rate",
        "status",
        "notes",
    },
)


def _resolve_vendor(order: PurchaseOrder, patch: dict) -> None:
    """A vendor reference wins over a free-text vendor_name."""
    vendor_id = patch.get("vendor_id", order.vendor_id)
    if vendor_id is not None:
        vendor = db.session.get(Vendor, vendor_id)
        if vendor is None:
            raise NotFoundError(f"Vendor {vendor_id} not found")
        order.vendor_id = vendor.id
        order.vendor_name = vendor.name
    elif not order.vendor_name:
        raise ValidationError("vendor_id or vendor_name is required")


def get_purchase_order(po_id: int) -> PurchaseOrder:
    order = db.session.get(PurchaseOrder, po_id)
    if order is None:
        raise NotFoundError(f"Purchase order {po_id} not found")
    return order


def list_purchase_orders(*, status: str | None = None, vendor_id: int | None = None) -> list[PurchaseOrder]:
    q = db.session.query(PurchaseOrder)
    if status is not None:
        require_choice(status, PURCHASE_ORDER_STATUSES, "status")
        q = q.filter(PurchaseOrder.status == status)
    if vendor_id is not None:
        q = q.filter(PurchaseOrder.vendor_id == vendor_id)
    return q.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()


def _transition(order: PurchaseOrder, status: str, *, created_by: int | None) -> None:
    if order.status == "received" and status != "received":
        raise ConflictError(f"Purchase order {order.po_number} was received and cannot change status")
    if status == "received" and order.received_at is None:
        receive_purchase_order(order, created_by=created_by)
    order.status = status


def create_purchase_order(payload: dict, *, created_by: int | None = None) -> PurchaseOrder:
    header, raw_items = split_document_payload(payload)
    patch = validate_payload(model=PurchaseOrder, payload=header, policy=PURCHASE_ORDER_POLICY, partial=False)
    status = patch.pop("status", "draft")
    require_choice(status, PURCHASE_ORDER_STATUSES, "status")

    def _op() -> PurchaseOrder:
        items = build_line_items(
            PurchaseOrderItem,
            None if raw_items is MISSING else raw_items,
            price_key="unit_cost",
        )

        order = PurchaseOrder(**patch)
        _resolve_vendor(order, patch)
        if order.order_date is None:
            order.order_date = today()
        if order.tax_rate is None:
            order.tax_rate = 0
        order.status = "draft"
        order.created_by = created_by

        order.items = items
        apply_totals(order)
        order.po_number = next_document_number("purchase_order")

        db.session.add(order)
        db.session.flush()
        if status != "draft":
            _transition(order, status, created_by=created_by)
            db.session.flush()
        return order

    order = run_atomic(_op)
    logger.info("Created purchase order %s", order.po_number)
    return order


def update_purchase_order(po_id: int, payload: dict, *, updated_by: int | None = None) -> PurchaseOrder:
    header, raw_items = split_document_payload(payload)
    patch = validate_payload(model=PurchaseOrder, payload=header, policy=PURCHASE_ORDER_POLICY, partial=True)
    status = patch.pop("status", None)
    if status is not None:
        require_choice(status, PURCHASE_ORDER_STATUSES, "status")

    def _op() -> PurchaseOrder:
        order = get_purchase_order(po_id)
        if order.status == "received" and raw_items is not MISSING:
            raise ConflictError(f"Purchase order {order.po_number} was received; its items are final")

        for k, v in patch.items():
            if k == "tax_rate" and v is None:
                v = 0
            setattr(order, k, v)
        if "vendor_id" in patch or "vendor_name" in patch:
            _resolve_vendor(order, patch)

        if raw_items is not MISSING:
            replace_line_items(order, build_line_items(PurchaseOrderItem, raw_items, price_key="unit_cost"))
            apply_totals(order)
        elif "tax_rate" in patch:
            apply_totals(order)

        if status is not None:
            _transition(order, status, created_by=updated_by)

        db.session.flush()
        return order

    return run_atomic(_op)


def set_purchase_order_status(po_id: int, status: str, *, updated_by: int | None = None) -> PurchaseOrder:
    require_choice(status, PURCHASE_ORDER_STATUSES, "status")

    def _op() -> PurchaseOrder:
        order = get_purchase_order(po_id)
        _transition(order, status, created_by=updated_by)
        db.session.flush()
        return order

    return run_atomic(_op)


def delete_purchase_order(po_id: int) -> None:
    """Deleting a received order keeps its stock movements (the ledger is append-only)."""
    def _op() -> None:
        order = get_purchase_order(po_id)
        db.session.delete(order)
        db.session.flush()

    run_atomic(_op)
