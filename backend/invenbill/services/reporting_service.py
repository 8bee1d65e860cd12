# Overview: Read-only reports: low stock, inventory summary, dashboard and financial summary.

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from fractions import Fraction

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Invoice, Product, PurchaseOrder
from ..money import format_cents
from ..validation import ValidationError
from invenbill.time_utils import parse_iso_date, today as utc_today


def _low_stock_key(product: Product):
    """
    Order by stock / threshold ascending.

    A threshold of 0 has no ratio; those products (stock is 0 as well) sort
    after every positive-threshold product. Ties: stock, then name.
    """
    if product.low_stock_threshold > 0:
        return (0, Fraction(product.stock, product.low_stock_threshold), product.stock, product.name)
    return (1, Fraction(0), product.stock, product.name)


def low_stock_products(*, limit: int | None = None) -> list[Product]:
    rows = (
        db.session.query(Product)
        .filter(Product.stock <= Product.low_stock_threshold)
        .all()
    )
    rows.sort(key=_low_stock_key)
    if limit:
        rows = rows[:limit]
    return rows


def low_stock_row(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "sku": p.sku,
        "stock": p.stock,
        "low_stock_threshold": p.low_stock_threshold,
        "status": p.status,
    }


def inventory_summary() -> dict:
    """Totals over active products (status other than 'inactive')."""
    active = Product.status != "inactive"
    value_cents = (
        db.session.query(func.coalesce(func.sum(Product.stock * Product.price_cents), 0))
        .filter(active)
        .scalar()
    )
    low_count = (
        db.session.query(func.count(Product.id))
        .filter(active, Product.stock > 0, Product.stock <= Product.low_stock_threshold)
        .scalar()
    )
    out_count = (
        db.session.query(func.count(Product.id))
        .filter(active, Product.stock == 0)
        .scalar()
    )
    total_products = db.session.query(func.count(Product.id)).filter(active).scalar()
    return {
        "total_products": int(total_products or 0),
        "total_stock_value": format_cents(int(value_cents or 0)),
        "total_stock_value_cents": int(value_cents or 0),
        "low_stock_count": int(low_count or 0),
        "out_of_stock_count": int(out_count or 0),
    }


def _paid_revenue_cents(start: date | None = None, end: date | None = None) -> int:
    """Sum of paid invoice totals; start exclusive, end inclusive (by issue_date)."""
    q = db.session.query(func.coalesce(func.sum(Invoice.total_cents), 0)).filter(Invoice.status == "paid")
    if start is not None:
        q = q.filter(Invoice.issue_date > start)
    if end is not None:
        q = q.filter(Invoice.issue_date <= end)
    return int(q.scalar() or 0)


def _growth_percent(current: int, previous: int) -> float:
    if previous <= 0:
        return 0.0
    pct = (Decimal(current - previous) / Decimal(previous)) * 100
    return float(pct.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def dashboard_summary(*, today: date | None = None) -> dict:
    """
    Headline numbers for the dashboard.

    Growth compares paid revenue in the last 30 days with the 30 days
    before that, both by invoice issue_date.
    """
    today = today or utc_today()
    thirty = today - timedelta(days=30)
    sixty = today - timedelta(days=60)

    paid_count, paid_total = (
        db.session.query(func.count(Invoice.id), func.coalesce(func.sum(Invoice.total_cents), 0))
        .filter(Invoice.status == "paid")
        .one()
    )
    recent = _paid_revenue_cents(thirty, today)
    previous = _paid_revenue_cents(sixty, thirty)

    recent_invoices = (
        db.session.query(Invoice)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .limit(5)
        .all()
    )

    return {
        "total_revenue": format_cents(int(paid_total or 0)),
        "total_revenue_cents": int(paid_total or 0),
        "total_orders": int(paid_count or 0),
        "total_customers": db.session.query(func.count(Customer.id)).scalar() or 0,
        "total_products": db.session.query(func.count(Product.id)).scalar() or 0,
        "revenue_growth": _growth_percent(recent, previous),
        "recent_invoices": [inv.to_dict() for inv in recent_invoices],
        "low_stock_products": [low_stock_row(p) for p in low_stock_products(limit=10)],
    }


def _parse_range(start_date, end_date) -> tuple[date, date]:
    try:
        start = parse_iso_date(start_date)
        end = parse_iso_date(end_date)
    except ValueError:
        raise ValidationError("start_date and end_date must be ISO-8601 dates")
    if start is None or end is None:
        raise ValidationError("start_date and end_date are required")
    if end < start:
        raise ValidationError("end_date cannot be before start_date")
    return start, end


def financial_summary(start_date, end_date) -> dict:
    """
    Revenue, expenses and net profit for an inclusive date range.

    revenue  = paid invoice totals by issue_date
    expenses = received purchase order totals by order_date
    """
    start, end = _parse_range(start_date, end_date)

    revenue, invoice_count = (
        db.session.query(func.coalesce(func.sum(Invoice.total_cents), 0), func.count(Invoice.id))
        .filter(Invoice.status == "paid", Invoice.issue_date >= start, Invoice.issue_date <= end)
        .one()
    )
    expenses, po_count = (
        db.session.query(func.coalesce(func.sum(PurchaseOrder.total_cents), 0), func.count(PurchaseOrder.id))
        .filter(
            PurchaseOrder.status == "received",
            PurchaseOrder.order_date >= start,
            PurchaseOrder.order_date <= end,
        )
        .one()
    )
    revenue = int(revenue or 0)
    expenses = int(expenses or 0)
    return {
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "revenue": format_cents(revenue),
        "revenue_cents": revenue,
        "paid_invoice_count": int(invoice_count or 0),
        "expenses": format_cents(expenses),
        "expenses_cents": expenses,
        "received_purchase_order_count": int(po_count or 0),
        "net_profit": format_cents(revenue - expenses),
        "net_profit_cents": revenue - expenses,
    }


def tax_summary(start_date, end_date) -> dict:
    """
    Tax collected on paid invoices issued in an inclusive date range.

    taxable_income = sum(total - tax), tax_collected = sum(tax)
    """
    start, end = _parse_range(start_date, end_date)

    total, tax, invoice_count = (
        db.session.query(
            func.coalesce(func.sum(Invoice.total_cents), 0),
            func.coalesce(func.sum(Invoice.tax_cents), 0),
            func.count(Invoice.id),
        )
        .filter(Invoice.status == "paid", Invoice.issue_date >= start, Invoice.issue_date <= end)
        .one()
    )
    taxable = int(total or 0) - int(tax or 0)
    tax = int(tax or 0)
    return {
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "taxable_income": format_cents(taxable),
        "taxable_income_cents": taxable,
        "tax_collected": format_cents(tax),
        "tax_collected_cents": tax,
        "paid_invoice_count": int(invoice_count or 0),
    }
