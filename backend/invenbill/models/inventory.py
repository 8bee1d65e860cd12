from __future__ import annotations

from ..extensions import db
from invenbill.time_utils import to_utc_z

MOVEMENT_TYPES = ("purchase", "sale", "adjustment", "return", "transfer")


class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    INVARIANTS:
    - stock_after = stock_before + quantity_change (CHECK constraint)
    - stock_after is the product's stock immediately after this movement
    - Only `reason` may change after insert; numeric and reference fields
      are write-once (enforced in services/stock_service.py)
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint(
            "movement_type IN ('purchase', 'sale', 'adjustment', 'return', 'transfer')",
            name="ck_stock_movements_type",
        ),
        db.CheckConstraint(
            "stock_after = stock_before + quantity_change",
            name="ck_stock_movements_balance",
        ),
        db.CheckConstraint("quantity_change <> 0", name="ck_stock_movements_non_zero"),
        db.CheckConstraint("stock_after >= 0", name="ck_stock_movements_non_negative"),
        db.Index("ix_stock_movements_product_date", "product_id", "movement_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    # Snapshot of the product at the time of the movement
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)
    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)

    # Polymorphic pointer to the originating document (e.g. purchase_order / 12)
    reference_id = db.Column(db.Integer, nullable=True)
    reference_type = db.Column(db.String(32), nullable=True)

    movement_date = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    created_by = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "movement_type": self.movement_type,
            "quantity_change": self.quantity_change,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "reason": self.reason,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "movement_date": to_utc_z(self.movement_date),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
