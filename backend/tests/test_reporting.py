from datetime import date

import pytest

from invenbill.services import invoice_service, purchase_order_service, reporting_service
from invenbill.validation import ValidationError


def _paid_invoice(customer, amount, issue_date):
    return invoice_service.create_invoice({
        "customer_id": customer.id,
        "status": "paid",
        "issue_date": issue_date,
        "items": [{"product_name": "Service", "quantity": 1, "unit_price": amount}],
    })


def test_low_stock_ordered_by_ratio(db_session, make_product):
    make_product(name="Half", stock=5, low_stock_threshold=10)
    make_product(name="Empty", stock=0, low_stock_threshold=4)
    make_product(name="Plenty", stock=50, low_stock_threshold=10)
    make_product(name="Untracked", stock=0, low_stock_threshold=0)
    make_product(name="Quarter", stock=1, low_stock_threshold=4)

    names = [p.name for p in reporting_service.low_stock_products()]
    assert names == ["Empty", "Quarter", "Half", "Untracked"]


def test_low_stock_limit(db_session, make_product):
    for _ in range(3):
        make_product(stock=1, low_stock_threshold=5)
    assert len(reporting_service.low_stock_products(limit=2)) == 2


def test_inventory_summary(db_session, make_product):
    make_product(price_cents=250, stock=4, low_stock_threshold=10)
    make_product(price_cents=100, stock=0, low_stock_threshold=10)
    make_product(price_cents=100, stock=30, low_stock_threshold=10)
    make_product(price_cents=999, stock=9, status="inactive")

    summary = reporting_service.inventory_summary()
    assert summary["total_products"] == 3
    assert summary["total_stock_value"] == "40.00"
    assert summary["low_stock_count"] == 1
    assert summary["out_of_stock_count"] == 1


def test_dashboard_growth(db_session, make_customer):
    customer = make_customer()
    _paid_invoice(customer, "150.00", "2026-06-20")
    _paid_invoice(customer, "100.00", "2026-05-10")
    invoice_service.create_invoice({"customer_id": customer.id, "issue_date": "2026-06-25"})

    summary = reporting_service.dashboard_summary(today=date(2026, 7, 1))
    assert summary["total_revenue"] == "250.00"
    assert summary["total_orders"] == 2
    assert summary["total_customers"] == 1
    assert summary["revenue_growth"] == 50.0
    assert len(summary["recent_invoices"]) == 3


def test_dashboard_growth_without_history_is_zero(db_session, make_customer):
    customer = make_customer()
    _paid_invoice(customer, "10.00", "2026-06-20")
    assert reporting_service.dashboard_summary(today=date(2026, 7, 1))["revenue_growth"] == 0.0


def test_financial_summary(db_session, make_customer, vendor, make_product):
    customer = make_customer()
    _paid_invoice(customer, "500.00", "2026-03-01")
    _paid_invoice(customer, "50.00", "2026-04-15")
    product = make_product()
    order = purchase_order_service.create_purchase_order({
        "vendor_id": vendor.id,
        "order_date": "2026-03-10",
        "items": [{"product_id": product.id, "quantity": 10, "unit_cost": "12.00"}],
    })
    purchase_order_service.set_purchase_order_status(order.id, "received")

    summary = reporting_service.financial_summary("2026-03-01", "2026-03-31")
    assert summary["revenue"] == "500.00"
    assert summary["expenses"] == "120.00"
    assert summary["net_profit"] == "380.00"
    assert summary["net_profit_cents"] == 38000


@pytest.mark.parametrize("start,end", [(None, "2026-01-01"), ("2026-02-01", "2026-01-01"), ("bad", "2026-01-01")])
def test_financial_summary_rejects_bad_ranges(db_session, start, end):
    with pytest.raises(ValidationError):
        reporting_service.financial_summary(start, end)


def _taxed_invoice(customer, amount, tax_rate, status, issue_date):
    return invoice_service.create_invoice({
        "customer_id": customer.id,
        "status": status,
        "issue_date": issue_date,
        "tax_rate": tax_rate,
        "items": [{"product_name": "Service", "quantity": 1, "unit_price": amount}],
    })


def test_tax_summary(db_session, make_customer):
    customer = make_customer()
    _taxed_invoice(customer, "100.00", "10", "paid", "2026-03-01")
    _taxed_invoice(customer, "200.00", "5", "paid", "2026-03-31")
    _taxed_invoice(customer, "1000.00", "10", "sent", "2026-03-15")
    _taxed_invoice(customer, "50.00", "10", "paid", "2026-04-01")

    summary = reporting_service.tax_summary("2026-03-01", "2026-03-31")
    assert summary["taxable_income"] == "300.00"
    assert summary["tax_collected"] == "20.00"
    assert summary["tax_collected_cents"] == 2000
    assert summary["paid_invoice_count"] == 2


def test_tax_summary_of_empty_range(db_session):
    summary = reporting_service.tax_summary("2026-01-01", "2026-01-31")
    assert (summary["taxable_income"], summary["tax_collected"], summary["paid_invoice_count"]) == ("0.00", "0.00", 0)

    with pytest.raises(ValidationError):
        reporting_service.tax_summary("2026-02-01", "2026-01-01")
