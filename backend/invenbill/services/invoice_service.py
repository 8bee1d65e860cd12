# Overview: Service-layer operations for invoices; header, items, totals and customer rollup in one transaction.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import INVOICE_STATUSES, Customer, Invoice, InvoiceItem
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, ValidationError, require_choice, validate_payload
from invenbill.time_utils import today
from .concurrency import run_atomic
from .customer_service import recompute_customers
from .document_service import (
    MISSING,
    apply_totals,
    build_line_items,
    next_document_number,
    replace_line_items,
    split_document_payload,
)

logger = logging.getLogger(__name__)

INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id",
        "issue_date",
        "due_date",
        "tax_rate",
        "discount",
        "status",
        "notes",
        "terms",
    },
    required_on_create={"customer_id"},
    money_fields={"discount": "discount_cents"},
)

# Header fields whose change requires totals to be recomputed
_TOTALS_FIELDS = {"tax_rate", "discount_cents"}


def _get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def _snapshot_customer(invoice: Invoice, customer: Customer) -> None:
    invoice.customer_id = customer.id
    invoice.customer_name = customer.name
    invoice.customer_email = customer.email
    invoice.customer_address = customer.address


def _check_dates(invoice: Invoice) -> None:
    if invoice.due_date is not None and invoice.issue_date is not None:
        if invoice.due_date < invoice.issue_date:
            raise ValidationError("due_date cannot be before issue_date")


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(
    *,
    status: str | None = None,
    customer_id: int | None = None,
    limit: int | None = None,
) -> list[Invoice]:
    q = db.session.query(Invoice)
    if status is not None:
        require_choice(status, INVOICE_STATUSES, "status")
        q = q.filter(Invoice.status == status)
    if customer_id is not None:
        q = q.filter(Invoice.customer_id == customer_id)
    q = q.order_by(Invoice.created_at.desc(), Invoice.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def create_invoice(payload: dict, *, created_by: int | None = None) -> Invoice:
    """
    Create an invoice with its items.

    Number allocation, item insert, totals and the customer rollup share one
    transaction; any failure leaves nothing behind.
    """
    header, raw_items = split_document_payload(payload)
    patch = validate_payload(model=Invoice, payload=header, policy=INVOICE_POLICY, partial=False)
    if "status" in patch:
        require_choice(patch["status"], INVOICE_STATUSES, "status")

    def _op() -> Invoice:
        customer = _get_customer(patch["customer_id"])
        items = build_line_items(InvoiceItem, None if raw_items is MISSING else raw_items)

        invoice = Invoice(**patch)
        _snapshot_customer(invoice, customer)
        if invoice.issue_date is None:
            invoice.issue_date = today()
        if invoice.tax_rate is None:
            invoice.tax_rate = 0
        if invoice.discount_cents is None:
            invoice.discount_cents = 0
        invoice.status = invoice.status or "draft"
        invoice.paid_cents = 0
        invoice.created_by = created_by
        _check_dates(invoice)

        invoice.items = items
        apply_totals(invoice, use_discount=True)
        invoice.invoice_number = next_document_number("invoice")

        db.session.add(invoice)
        db.session.flush()
        recompute_customers(invoice.customer_id)
        return invoice

    invoice = run_atomic(_op)
    logger.info("Created invoice %s for customer %s", invoice.invoice_number, invoice.customer_id)
    return invoice


def update_invoice(invoice_id: int, payload: dict) -> Invoice:
    """
    Patch header fields and optionally replace the whole item set.

    items omitted: existing items and totals stay, unless tax_rate or
    discount changed (then totals are recomputed from the existing items).
    items given: full replacement, totals recomputed.
    """
    header, raw_items = split_document_payload(payload)
    patch = validate_payload(model=Invoice, payload=header, policy=INVOICE_POLICY, partial=True)
    if "status" in patch:
        require_choice(patch["status"], INVOICE_STATUSES, "status")

    def _op() -> Invoice:
        invoice = get_invoice(invoice_id)
        previous_customer_id = invoice.customer_id

        if "customer_id" in patch and patch["customer_id"] != invoice.customer_id:
            if invoice.payments:
                raise ConflictError("Invoice has payments; its customer cannot be changed")
            _snapshot_customer(invoice, _get_customer(patch["customer_id"]))

        for k, v in patch.items():
            if k == "customer_id":
                continue
            if k in ("tax_rate", "discount_cents") and v is None:
                v = 0
            setattr(invoice, k, v)
        _check_dates(invoice)

        if raw_items is not MISSING:
            replace_line_items(invoice, build_line_items(InvoiceItem, raw_items))
            apply_totals(invoice, use_discount=True)
        elif _TOTALS_FIELDS & patch.keys():
            apply_totals(invoice, use_discount=True)

        db.session.flush()
        recompute_customers(previous_customer_id, invoice.customer_id)
        return invoice

    return run_atomic(_op)


def set_invoice_status(invoice_id: int, status: str) -> Invoice:
    require_choice(status, INVOICE_STATUSES, "status")

    def _op() -> Invoice:
        invoice = get_invoice(invoice_id)
        invoice.status = status
        db.session.flush()
        recompute_customers(invoice.customer_id)
        return invoice

    return run_atomic(_op)


def delete_invoice(invoice_id: int) -> None:
    """
    Delete an invoice and its items.

    Payments applied to it are kept and detached (invoice_id set to NULL);
    the customer's aggregates are recomputed over the remaining invoices.
    """
    def _op() -> None:
        invoice = get_invoice(invoice_id)
        customer_id = invoice.customer_id
        number = invoice.invoice_number
        db.session.delete(invoice)
        db.session.flush()
        recompute_customers(customer_id)
        logger.info("Deleted invoice %s", number)

    run_atomic(_op)

