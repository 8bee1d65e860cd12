# Overview: Flask API routes for the stock ledger; movements are append-only.

from flask import Blueprint, current_app, g, jsonify, request

from ..services import stock_service
from ..validation import ValidationError
from ..decorators import require_auth
from .common import DOMAIN_ERRORS, error_response, json_payload

stock_movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")

_RECORD_FIELDS = {
    "product_id",
    "product_name",
    "product_sku",
    "movement_type",
    "quantity_change",
    "stock_before",
    "stock_after",
    "reason",
    "reference_id",
    "reference_type",
    "movement_date",
}


@stock_movements_bp.get("")
@require_auth
def list_movements():
    """
    Query params:
    - product_id: int (optional)
    - movement_type: str (optional)
    - limit: int (optional, default 200, max 1000)
    """
    try:
        limit = min(request.args.get("limit", default=200, type=int) or 200, 1000)
        movements = stock_service.list_stock_movements(
            product_id=request.args.get("product_id", type=int),
            movement_type=request.args.get("movement_type"),
            limit=limit,
        )
        return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@stock_movements_bp.get("/<int:movement_id>")
@require_auth
def get_movement(movement_id: int):
    try:
        return jsonify(stock_service.get_stock_movement(movement_id).to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@stock_movements_bp.post("")
@require_auth
def record_movement():
    try:
        payload = json_payload()
        extra = sorted(set(payload) - _RECORD_FIELDS)
        if extra:
            raise ValidationError(f"Field not allowed: {extra[0]}")
        for key in ("product_id", "movement_type", "quantity_change"):
            if key not in payload:
                raise ValidationError(f"Missing required fields: {key}")
        movement = stock_service.record_stock_movement(created_by=g.current_user.id, **payload)
        return jsonify(movement.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "Internal server error"}), 500


@stock_movements_bp.patch("/<int:movement_id>")
@require_auth
def update_movement_reason(movement_id: int):
    """Only `reason` is editable."""
    try:
        movement = stock_service.update_stock_movement_reason(movement_id, json_payload())
        return jsonify(movement.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update stock movement")
        return jsonify({"error": "Internal server error"}), 500
