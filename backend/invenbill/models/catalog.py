from __future__ import annotations

from ..extensions import db
from ..money import format_cents
from invenbill.time_utils import to_utc_z, to_iso_date

PRODUCT_STATUSES = ("active", "inactive", "out_of_stock")


class Product(db.Model):
    """
    Product master data.

    STOCK DESIGN DECISION:
    Product.stock is a cached on-hand quantity that is written ONLY by the
    stock ledger (services/stock_service.py). Every change to it has a
    matching StockMovement whose stock_after equals the new value.
    Product create/update never accept a stock value directly.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint(
            "status IN ('active', 'inactive', 'out_of_stock')",
            name="ck_products_status",
        ),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    barcode = db.Column(db.String(64), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.BigInteger, nullable=False, default=0)
    cost_cents = db.Column(db.BigInteger, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)
    status = db.Column(db.String(16), nullable=False, default="active")
    last_restocked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "barcode": self.barcode,
            "price": format_cents(self.price_cents),
            "price_cents": self.price_cents,
            "cost": format_cents(self.cost_cents),
            "cost_cents": self.cost_cents,
            "stock": self.stock,
            "low_stock_threshold": self.low_stock_threshold,
            "status": self.status,
            "last_restocked_at": to_utc_z(self.last_restocked_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Customer(db.Model):
    """
    Customer master data.

    Denormalized aggregates (total_orders, total_spent_cents, last_order_date)
    are a cache over the customer's invoices and are recomputed in full by
    services/customer_service.recompute_customer_totals on every invoice
    write. They are never set from client input.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        db.Index("ix_customers_email", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    company = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")

    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent_cents = db.Column(db.BigInteger, nullable=False, default=0)
    last_order_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "address": self.address,
            "status": self.status,
            "total_orders": self.total_orders,
            "total_spent": format_cents(self.total_spent_cents),
            "total_spent_cents": self.total_spent_cents,
            "last_order_date": to_iso_date(self.last_order_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Vendor(db.Model):
    __tablename__ = "vendors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    contact_person = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "contact_person": self.contact_person,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
