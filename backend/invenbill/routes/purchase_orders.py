# Overview: Flask API routes for purchase orders; receiving posts stock movements.

from flask import Blueprint, current_app, g, jsonify, request

from ..services import purchase_order_service
from ..decorators import require_auth
from .common import DOMAIN_ERRORS, error_response, include_items_arg, json_payload

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.get("")
@require_auth
def list_purchase_orders():
    try:
        orders = purchase_order_service.list_purchase_orders(
            status=request.args.get("status"),
            vendor_id=request.args.get("vendor_id", type=int),
        )
        with_items = include_items_arg()
        return jsonify({
            "items": [o.to_dict(include_items=with_items) for o in orders],
            "count": len(orders),
        }), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@purchase_orders_bp.get("/<int:po_id>")
@require_auth
def get_purchase_order(po_id: int):
    try:
        return jsonify(purchase_order_service.get_purchase_order(po_id).to_dict(include_items=True)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@purchase_orders_bp.post("")
@require_auth
def create_purchase_order():
    try:
        order = purchase_order_service.create_purchase_order(json_payload(), created_by=g.current_user.id)
        return jsonify(order.to_dict(include_items=True)), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.put("/<int:po_id>")
@require_auth
def update_purchase_order(po_id: int):
    try:
        order = purchase_order_service.update_purchase_order(
            po_id, json_payload(), updated_by=g.current_user.id
        )
        return jsonify(order.to_dict(include_items=True)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/status")
@require_auth
def set_purchase_order_status(po_id: int):
    """Setting 'received' posts a purchase movement per line (once)."""
    try:
        order = purchase_order_service.set_purchase_order_status(
            po_id, json_payload().get("status"), updated_by=g.current_user.id
        )
        return jsonify(order.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change purchase order status")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.delete("/<int:po_id>")
@require_auth
def delete_purchase_order(po_id: int):
    try:
        purchase_order_service.delete_purchase_order(po_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete purchase order")
        return jsonify({"error": "Internal server error"}), 500
