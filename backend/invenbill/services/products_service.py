# backend/invenbill/services/products_service.py
"""
Products Service

STOCK: Product.stock is owned by the stock ledger. Create accepts an opening
stock, which is posted as an 'adjustment' movement in the same transaction;
update never touches stock (use stock_service.adjust_stock).
"""
from __future__ import annotations

from flask import current_app, has_app_context

from ..extensions import db
from ..models import InvoiceItem, Product, PurchaseOrderItem, SalesOrderItem, StockMovement
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import run_atomic
from .stock_service import record_stock_movement

PRODUCT_MUTABLE_FIELDS = {
    "sku",
    "name",
    "description",
    "barcode",
    "price_cents",
    "cost_cents",
    "low_stock_threshold",
    "status",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _default_threshold() -> int:
    if has_app_context():
        return int(current_app.config.get("LOW_STOCK_DEFAULT", 10))
    return 10


def _sku_taken(sku: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    return q.first() is not None


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def list_products(
    *,
    search: str | None = None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Product listing with optional search and pagination."""
    base_query = db.session.query(Product)
    if search:
        like = f"%{search.strip()}%"
        base_query = base_query.filter(db.or_(Product.name.ilike(like), Product.sku.ilike(like)))
    if status:
        base_query = base_query.filter(Product.status == status)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(*, patch: dict, initial_stock: int = 0, created_by: int | None = None) -> Product:
    """
    Create a product from a validated patch dict.

    Raises:
        ConflictError: If the SKU already exists
        ValidationError: If initial_stock is negative
    """
    if isinstance(initial_stock, bool) or not isinstance(initial_stock, int):
        raise ValidationError("stock must be an integer")
    if initial_stock < 0:
        raise ValidationError("stock must be >= 0")

    def _op() -> Product:
        if _sku_taken(patch["sku"]):
            raise ConflictError(f"SKU {patch['sku']!r} already exists")

        product = Product()
        apply_product_patch(product, patch)
        if product.low_stock_threshold is None:
            product.low_stock_threshold = _default_threshold()
        if product.price_cents is None:
            product.price_cents = 0
        product.stock = 0
        if not product.status:
            product.status = "active"
        db.session.add(product)
        db.session.flush()

        if initial_stock:
            record_stock_movement(
                product_id=product.id,
                movement_type="adjustment",
                quantity_change=initial_stock,
                reason="Opening stock",
                created_by=created_by,
                commit=False,
            )
        return product

    return run_atomic(_op)


def update_product(product_id: int, patch: dict) -> Product:
    def _op() -> Product:
        product = get_product(product_id)
        if "sku" in patch and _sku_taken(patch["sku"], exclude_id=product.id):
            raise ConflictError(f"SKU {patch['sku']!r} already exists")
        apply_product_patch(product, patch)
        db.session.flush()
        return product

    return run_atomic(_op)


def delete_product(product_id: int) -> None:
    """
    Delete a product that nothing references.

    WHY: Document lines and ledger entries keep a product_id. Deleting the
    product would leave them pointing at nothing; set status='inactive'
    instead.
    """
    def _op() -> None:
        product = get_product(product_id)
        for model in (InvoiceItem, SalesOrderItem, PurchaseOrderItem, StockMovement):
            if db.session.query(model.id).filter(model.product_id == product.id).first():
                raise ConflictError("Product is referenced by documents or stock movements; mark it inactive instead")
        db.session.delete(product)
        db.session.flush()

    run_atomic(_op)
