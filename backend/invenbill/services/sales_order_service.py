# Overview: Service-layer operations for sales orders.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import ORDER_STATUSES, Customer, SalesOrder, SalesOrderItem
from ..validation import ModelValidationPolicy, NotFoundError, require_choice, validate_payload
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

logger = logging.getLogger(__name__)

SALES_ORDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id",
        "order_date",
        "expected_delivery_date",
        "tax_rate",
        "status",
        "shipping_address",
        "notes",
    },
    required_on_create={"customer_id"},
)


def _get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def get_sales_order(order_id: int) -> SalesOrder:
    order = db.session.get(SalesOrder, order_id)
    if order is None:
        raise NotFoundError(f"Sales order {order_id} not found")
    return order


def list_sales_orders(*, status: str | None = None, customer_id: int | None = None) -> list[SalesOrder]:
    q = db.session.query(SalesOrder)
    if status is not None:
        require_choice(status, ORDER_STATUSES, "status")
        q = q.filter(SalesOrder.status == status)
    if customer_id is not None:
        q = q.filter(SalesOrder.customer_id == customer_id)
    return q.order_by(SalesOrder.created_at.desc(), SalesOrder.id.desc()).all()


def create_sales_order(payload: dict, *, created_by: int | None = None) -> SalesOrder:
    header, raw_items = split_document_payload(payload)
    patch = validate_payload(model=SalesOrder, payload=header, policy=SALES_ORDER_POLICY, partial=False)
    if "status" in patch:
        require_choice(patch["status"], ORDER_STATUSES, "status")

    def _op() -> SalesOrder:
        customer = _get_customer(patch["customer_id"])
        items = build_line_items(SalesOrderItem, None if raw_items is MISSING else raw_items)

        order = SalesOrder(**patch)
        order.customer_name = customer.name
        if order.order_date is None:
            order.order_date = today()
        if order.tax_rate is None:
            order.tax_rate = 0
        if not order.shipping_address:
            order.shipping_address = customer.address
        order.status = order.status or "draft"
        order.created_by = created_by

        order.items = items
        apply_totals(order)
        order.order_number = next_document_number("sales_order")

        db.session.add(order)
        db.session.flush()
        return order

    order = run_atomic(_op)
    logger.info("Created sales order %s", order.order_number)
    return order


def update_sales_order(order_id: int, payload: dict) -> SalesOrder:
    """Header patch; `items`, when present, replaces the whole item set."""
    header, raw_items = split_document_payload(payload)
    patch = validate_payload(model=SalesOrder, payload=header, policy=SALES_ORDER_POLICY, partial=True)
    if "status" in patch:
        require_choice(patch["status"], ORDER_STATUSES, "status")

    def _op() -> SalesOrder:
        order = get_sales_order(order_id)
        if "customer_id" in patch and patch["customer_id"] != order.customer_id:
            customer = _get_customer(patch["customer_id"])
            order.customer_name = customer.name

        for k, v in patch.items():
            if k == "tax_rate" and v is None:
                v = 0
            setattr(order, k, v)

        if raw_items is not MISSING:
            replace_line_items(order, build_line_items(SalesOrderItem, raw_items))
            apply_totals(order)
        elif "tax_rate" in patch:
            apply_totals(order)

        db.session.flush()
        return order

    return run_atomic(_op)


def set_sales_order_status(order_id: int, status: str) -> SalesOrder:
    require_choice(status, ORDER_STATUSES, "status")

    def _op() -> SalesOrder:
        order = get_sales_order(order_id)
        order.status = status
        db.session.flush()
        return order

    return run_atomic(_op)


def delete_sales_order(order_id: int) -> None:
    def _op() -> None:
        order = get_sales_order(order_id)
        db.session.delete(order)
        db.session.flush()

    run_atomic(_op)
