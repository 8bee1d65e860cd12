from datetime import date

import pytest

from invenbill.extensions import db
from invenbill.models import DocumentSequence, Invoice
from invenbill.services import document_service, invoice_service
from invenbill.validation import ValidationError


def _legacy_invoice(customer, number):
    """Insert an invoice with a hand-picked number (imported/legacy data)."""
    inv = Invoice(
        invoice_number=number,
        customer_id=customer.id,
        customer_name=customer.name,
        issue_date=date(2024, 1, 1),
    )
    db.session.add(inv)
    db.session.commit()
    return inv


def test_first_number_per_family(db_session):
    assert document_service.next_document_number("invoice") == "INV-001"
    assert document_service.next_document_number("sales_order") == "ORD-001"
    assert document_service.next_document_number("payment") == "PAY-001"
    assert document_service.next_document_number("purchase_order") == "PO-000001"
    db_session.commit()


def test_numbers_are_sequential(db_session):
    first = document_service.next_document_number("invoice")
    second = document_service.next_document_number("invoice")
    db_session.commit()
    assert (first, second) == ("INV-001", "INV-002")


def test_skips_past_existing_and_ignores_non_conforming(db_session, make_customer):
    customer = make_customer()
    for number in ("INV-001", "INV-003", "INV-BAD"):
        _legacy_invoice(customer, number)

    assert document_service.peek_next_document_number("invoice") == "INV-004"
    assert document_service.next_document_number("invoice") == "INV-004"
    db_session.commit()


def test_deleted_numbers_are_not_reissued(db_session, make_customer):
    customer = make_customer()
    inv = invoice_service.create_invoice({"customer_id": customer.id, "items": []})
    assert inv.invoice_number == "INV-001"

    invoice_service.delete_invoice(inv.id)

    again = invoice_service.create_invoice({"customer_id": customer.id, "items": []})
    assert again.invoice_number == "INV-002"


def test_wide_numbers_are_not_truncated(db_session):
    db_session.add(DocumentSequence(document_type="invoice", next_number=1000))
    db_session.commit()
    assert document_service.next_document_number("invoice") == "INV-1000"
    db_session.commit()


def test_rollback_releases_reservation(db_session):
    document_service.next_document_number("payment")
    db_session.rollback()
    assert document_service.next_document_number("payment") == "PAY-001"
    db_session.commit()


def test_peek_does_not_reserve(db_session):
    assert document_service.peek_next_document_number("sales_order") == "ORD-001"
    assert document_service.peek_next_document_number("sales_order") == "ORD-001"
    assert document_service.next_document_number("sales_order") == "ORD-001"
    db_session.commit()


def test_unknown_family_is_rejected(db_session):
    with pytest.raises(ValidationError):
        document_service.next_document_number("credit_note")
