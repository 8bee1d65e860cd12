from decimal import Decimal

import pytest

from invenbill.money import MAX_AMOUNT_CENTS, format_cents, parse_money, parse_rate
from invenbill.services.document_service import (
    compute_document_totals,
    compute_line_total,
    compute_tax_cents,
)
from invenbill.validation import ValidationError


def test_line_total_is_quantity_times_unit_price():
    assert compute_line_total(3, parse_money("12.50")) == 3750
    assert format_cents(compute_line_total(3, 1250)) == "37.50"


def test_document_totals_example():
    totals = compute_document_totals([(2, 1000), (1, 500)], Decimal("8"))
    assert totals.subtotal_cents == 2500
    assert totals.tax_cents == 200
    assert totals.total_cents == 2700
    assert format_cents(totals.total_cents) == "27.00"


def test_empty_document_has_zero_totals():
    totals = compute_document_totals([], Decimal("8.25"))
    assert (totals.subtotal_cents, totals.tax_cents, totals.total_cents) == (0, 0, 0)


def test_tax_rounds_half_up_to_the_cent():
    # 1.25 * 10% = 0.125 -> 0.13
    assert compute_tax_cents(125, Decimal("10")) == 13
    # 0.05 * 8.25% = 0.004125 -> 0.00
    assert compute_tax_cents(5, Decimal("8.25")) == 0


def test_discount_reduces_total():
    totals = compute_document_totals([(1, 10000)], Decimal("10"), discount_cents=500)
    assert totals.total_cents == 10500


def test_discount_cannot_exceed_gross():
    with pytest.raises(ValidationError):
        compute_document_totals([(1, 100)], Decimal("0"), discount_cents=101)


def test_many_small_lines_do_not_drift():
    totals = compute_document_totals([(1, 10)] * 1000, Decimal("0"))
    assert format_cents(totals.subtotal_cents) == "100.00"


def test_line_total_over_the_cap_is_rejected():
    assert compute_line_total(1, MAX_AMOUNT_CENTS) == MAX_AMOUNT_CENTS
    with pytest.raises(ValidationError):
        compute_line_total(10**15, 9_999_999)


def test_document_totals_over_the_cap_are_rejected():
    # each line fits; the sum does not
    with pytest.raises(ValidationError):
        compute_document_totals([(1, MAX_AMOUNT_CENTS), (1, 1)], Decimal("0"))
    # subtotal fits; subtotal plus 100% tax does not
    with pytest.raises(ValidationError):
        compute_document_totals([(1, MAX_AMOUNT_CENTS)], Decimal("100"))


@pytest.mark.parametrize("raw,cents", [("12.50", 1250), (12.5, 1250), ("3", 300), (0, 0), ("0.10", 10)])
def test_parse_money_accepts_two_places(raw, cents):
    assert parse_money(raw) == cents


@pytest.mark.parametrize("raw", ["12.505", "abc", "", True, "NaN", -1, "1e30", "-1e30", "1e999999999"])
def test_parse_money_rejects_bad_values(raw):
    with pytest.raises(ValidationError):
        parse_money(raw)


def test_parse_rate_bounds():
    assert parse_rate("8.25") == Decimal("8.25")
    with pytest.raises(ValidationError):
        parse_rate("100.01")
    with pytest.raises(ValidationError):
        parse_rate(-1)
    with pytest.raises(ValidationError):
        parse_rate("1e30")
