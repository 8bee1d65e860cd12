# Overview: Service-layer operations for customers; owns the invoice-derived customer aggregates.

"""
Customer Service

Aggregates (authoritative definition):
- total_orders      = number of the customer's invoices with status 'paid'
- total_spent_cents = sum of total_cents over those paid invoices
- last_order_date   = latest issue_date over ALL of the customer's invoices,
                      whatever their status (None when there are none)

WHY full recompute: incremental +/- updates drift whenever an invoice edit
is missed or applied twice. Reading the whole invoice set and writing the
result is idempotent, so running it again (e.g. the CLI self-heal) is safe.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Invoice
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, ValidationError, validate_payload
from .concurrency import run_atomic

logger = logging.getLogger(__name__)

CUSTOMER_STATUSES = ("active", "inactive")

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "company", "address", "status"},
    required_on_create={"name"},
)


def recompute_customer_totals(customer_id: int) -> Customer:
    """Recompute a customer's aggregates from the current invoice set (no commit)."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")

    # Pending inserts/deletes of the current transaction must be visible
    db.session.flush()

    paid_count, paid_total = (
        db.session.query(func.count(Invoice.id), func.coalesce(func.sum(Invoice.total_cents), 0))
        .filter(Invoice.customer_id == customer_id, Invoice.status == "paid")
        .one()
    )
    last_date = (
        db.session.query(func.max(Invoice.issue_date))
        .filter(Invoice.customer_id == customer_id)
        .scalar()
    )

    customer.total_orders = int(paid_count or 0)
    customer.total_spent_cents = int(paid_total or 0)
    customer.last_order_date = last_date
    db.session.flush()

    logger.debug(
        "Customer %s totals: orders=%s spent=%s last=%s",
        customer_id, customer.total_orders, customer.total_spent_cents, customer.last_order_date,
    )
    return customer


def recompute_customers(*customer_ids) -> None:
    """Recompute each distinct, non-null customer id once."""
    seen = set()
    for cid in customer_ids:
        if cid is None or cid in seen:
            continue
        seen.add(cid)
        recompute_customer_totals(cid)


def recompute_all_customer_totals() -> int:
    """Self-heal every customer's aggregates. Returns the number of customers processed."""
    def _op() -> int:
        ids = [cid for (cid,) in db.session.query(Customer.id).order_by(Customer.id).all()]
        for cid in ids:
            recompute_customer_totals(cid)
        return len(ids)

    count = run_atomic(_op)
    logger.info("Recomputed totals for %d customers", count)
    return count


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers(*, search: str | None = None, status: str | None = None) -> list[Customer]:
    q = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(
            db.or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.company.ilike(like))
        )
    if status:
        q = q.filter(Customer.status == status)
    return q.order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def _check_status(patch: dict) -> None:
    if "status" in patch and patch["status"] not in CUSTOMER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(CUSTOMER_STATUSES)}")


def create_customer(payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    _check_status(patch)

    def _op() -> Customer:
        customer = Customer(**patch)
        db.session.add(customer)
        db.session.flush()
        return customer

    return run_atomic(_op)


def update_customer(customer_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    _check_status(patch)

    def _op() -> Customer:
        customer = get_customer(customer_id)
        for k, v in patch.items():
            setattr(customer, k, v)
        db.session.flush()
        return customer

    return run_atomic(_op)


def delete_customer(customer_id: int) -> None:
    """Customers with documents or payments cannot be deleted."""
    def _op() -> None:
        customer = get_customer(customer_id)
        if customer.invoices or customer.sales_orders or customer.payments:
            raise ConflictError("Customer has documents and cannot be deleted")
        db.session.delete(customer)
        db.session.flush()

    run_atomic(_op)


def run_recompute(customer_id: int) -> Customer:
    """recompute_customer_totals as its own committed transaction."""
    return run_atomic(lambda: recompute_customer_totals(customer_id))
