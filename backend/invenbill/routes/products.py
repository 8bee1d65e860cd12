# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/invenbill/routes/products.py
"""
Product management routes.

SECURITY: All routes require an authenticated caller.

STOCK: `stock` is accepted on create only (posted as an opening adjustment).
Later changes go through /api/products/<id>/adjust-stock or the stock
movement endpoints.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..services import products_service, stock_service
from ..models import Product
from ..validation import ModelValidationPolicy, ValidationError, enforce_rules_product, validate_payload
from ..decorators import require_auth
from .common import DOMAIN_ERRORS, error_response, json_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "description",
        "barcode",
        "price",
        "cost",
        "low_stock_threshold",
        "status",
    },
    required_on_create={"sku", "name"},
    money_fields={"price": "price_cents", "cost": "cost_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products with optional pagination.

    Query params:
    - search: str (optional) - matches name or SKU
    - status: str (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return products_service.list_products(
        search=request.args.get("search"),
        status=request.args.get("status"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product(product_id).to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@products_bp.post("")
@require_auth
def create_product_route():
    """Create a product; optional `stock` becomes the opening stock."""
    try:
        payload = dict(json_payload())
        initial_stock = payload.pop("stock", 0)
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(
            patch=patch,
            initial_stock=initial_stock,
            created_by=g.current_user.id,
        )
        return jsonify(created.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    try:
        patch = validate_payload(model=Product, payload=json_payload(), policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id, patch)
        return jsonify(updated.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/adjust-stock")
@require_auth
def adjust_stock_route(product_id: int):
    """
    Set stock to an absolute value.

    Body: new_stock (int, required), reason (str), current_stock (int,
    the stock the caller saw; 409 if it has changed since).
    """
    try:
        payload = json_payload()
        if "new_stock" not in payload:
            raise ValidationError("Missing required fields: new_stock")
        movement = stock_service.adjust_stock(
            product_id=product_id,
            new_stock=payload["new_stock"],
            reason=payload.get("reason"),
            current_stock=payload.get("current_stock"),
            created_by=g.current_user.id,
        )
        product = products_service.get_product(product_id)
        return jsonify({"movement": movement.to_dict(), "product": product.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
