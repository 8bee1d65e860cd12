import pytest

from invenbill.extensions import db
from invenbill.models import Invoice, Payment
from invenbill.services import invoice_service, payment_service
from invenbill.validation import ConflictError, ValidationError


@pytest.fixture
def invoice(db_session, make_customer):
    customer = make_customer()
    return invoice_service.create_invoice({
        "customer_id": customer.id,
        "status": "sent",
        "items": [{"product_name": "Service", "quantity": 1, "unit_price": "100.00"}],
    })


def test_completed_payments_update_paid_amount(invoice):
    first = payment_service.create_payment({
        "customer_id": invoice.customer_id,
        "invoice_id": invoice.id,
        "amount": "60.00",
        "status": "completed",
    })
    payment_service.create_payment({
        "customer_id": invoice.customer_id,
        "invoice_id": invoice.id,
        "amount": "40.00",
    })

    assert first.payment_number == "PAY-001"
    refreshed = db.session.get(Invoice, invoice.id)
    # the second payment is still pending
    assert refreshed.paid_cents == 6000
    # payment status never changes invoice status
    assert refreshed.status == "sent"


def test_status_update_and_delete_refresh_invoice(invoice):
    payment = payment_service.create_payment({
        "customer_id": invoice.customer_id,
        "invoice_id": invoice.id,
        "amount": "25.00",
    })
    payment_service.update_payment(payment.id, {"status": "completed"})
    assert db.session.get(Invoice, invoice.id).paid_cents == 2500

    payment_service.delete_payment(payment.id)
    assert db.session.get(Invoice, invoice.id).paid_cents == 0


def test_payment_must_match_invoice_customer(invoice, make_customer):
    other = make_customer(name="Other", email="other@example.test")
    with pytest.raises(ValidationError):
        payment_service.create_payment({
            "customer_id": other.id,
            "invoice_id": invoice.id,
            "amount": "5.00",
        })


@pytest.mark.parametrize("amount", ["0", "0.00"])
def test_amount_must_be_positive(invoice, amount):
    with pytest.raises(ValidationError):
        payment_service.create_payment({"customer_id": invoice.customer_id, "amount": amount})


def test_deleting_invoice_keeps_payment(invoice):
    payment = payment_service.create_payment({
        "customer_id": invoice.customer_id,
        "invoice_id": invoice.id,
        "amount": "10.00",
        "status": "completed",
    })
    invoice_service.delete_invoice(invoice.id)

    kept = db.session.get(Payment, payment.id)
    assert kept is not None
    assert kept.invoice_id is None


def test_invoice_with_payments_keeps_its_customer(invoice, make_customer):
    payment_service.create_payment({
        "customer_id": invoice.customer_id,
        "invoice_id": invoice.id,
        "amount": "10.00",
    })
    other = make_customer(name="Other", email="other@example.test")
    with pytest.raises(ConflictError):
        invoice_service.update_invoice(invoice.id, {"customer_id": other.id})
