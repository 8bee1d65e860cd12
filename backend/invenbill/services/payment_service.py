# Overview: Service-layer operations for customer payments; keeps Invoice.paid_cents in step.

"""
Payment Service

Invariants:
- A payment belongs to exactly one customer and optionally to one invoice of
  that same customer.
- Invoice.paid_cents = sum(amount_cents) of the invoice's 'completed'
  payments. It is recomputed in the transaction of every payment write that
  touches the invoice (old and new invoice when a payment is moved).
- Payment status does not change the invoice status; marking an invoice
  'paid' is an explicit user action.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..models import PAYMENT_STATUSES, Customer, Invoice, Payment
from ..validation import ModelValidationPolicy, NotFoundError, ValidationError, require_choice, validate_payload
from invenbill.time_utils import today
from .concurrency import run_atomic
from .document_service import next_document_number

logger = logging.getLogger(__name__)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "invoice_id",
        "customer_id",
        "amount",
        "payment_method",
        "payment_date",
        "status",
        "transaction_id",
        "notes",
    },
    required_on_create={"customer_id", "amount"},
    money_fields={"amount": "amount_cents"},
)


def recompute_invoice_paid(invoice: Invoice) -> int:
    db.session.flush()
    paid = (
        db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0))
        .filter(Payment.invoice_id == invoice.id, Payment.status == "completed")
        .scalar()
    )
    invoice.paid_cents = int(paid or 0)
    return invoice.paid_cents


def _refresh_invoices(*invoice_ids) -> None:
    for invoice_id in {i for i in invoice_ids if i is not None}:
        invoice = db.session.get(Invoice, invoice_id)
        if invoice is not None:
            recompute_invoice_paid(invoice)


def _check_links(payment: Payment) -> None:
    customer = db.session.get(Customer, payment.customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {payment.customer_id} not found")
    if payment.invoice_id is not None:
        invoice = db.session.get(Invoice, payment.invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {payment.invoice_id} not found")
        if invoice.customer_id != payment.customer_id:
            raise ValidationError("Payment customer does not match the invoice's customer")
    if payment.amount_cents is None or payment.amount_cents <= 0:
        raise ValidationError("amount must be > 0")


def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def list_payments(
    *,
    status: str | None = None,
    customer_id: int | None = None,
    invoice_id: int | None = None,
) -> list[Payment]:
    q = db.session.query(Payment)
    if status is not None:
        require_choice(status, PAYMENT_STATUSES, "status")
        q = q.filter(Payment.status == status)
    if customer_id is not None:
        q = q.filter(Payment.customer_id == customer_id)
    if invoice_id is not None:
        q = q.filter(Payment.invoice_id == invoice_id)
    return q.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()


def create_payment(payload: dict, *, created_by: int | None = None) -> Payment:
    patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=False)
    if "status" in patch:
        require_choice(patch["status"], PAYMENT_STATUSES, "status")

    def _op() -> Payment:
        payment = Payment(**patch)
        if payment.payment_date is None:
            payment.payment_date = today()
        payment.status = payment.status or "pending"
        payment.created_by = created_by
        _check_links(payment)

        payment.payment_number = next_document_number("payment")
        db.session.add(payment)
        db.session.flush()
        _refresh_invoices(payment.invoice_id)
        return payment

    payment = run_atomic(_op)
    logger.info("Recorded payment %s (%s cents)", payment.payment_number, payment.amount_cents)
    return payment


def update_payment(payment_id: int, payload: dict) -> Payment:
    patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=True)
    if "status" in patch:
        require_choice(patch["status"], PAYMENT_STATUSES, "status")

    def _op() -> Payment:
        payment = get_payment(payment_id)
        previous_invoice_id = payment.invoice_id
        for k, v in patch.items():
            setattr(payment, k, v)
        _check_links(payment)
        db.session.flush()
        _refresh_invoices(previous_invoice_id, payment.invoice_id)
        return payment

    return run_atomic(_op)


def delete_payment(payment_id: int) -> None:
    def _op() -> None:
        payment = get_payment(payment_id)
        invoice_id = payment.invoice_id
        db.session.delete(payment)
        db.session.flush()
        _refresh_invoices(invoice_id)

    run_atomic(_op)
