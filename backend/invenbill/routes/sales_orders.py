# Overview: Flask API routes for sales orders.

from flask import Blueprint, current_app, g, jsonify, request

from ..services import sales_order_service
from ..decorators import require_auth
from .common import DOMAIN_ERRORS, error_response, include_items_arg, json_payload

sales_orders_bp = Blueprint("sales_orders", __name__, url_prefix="/api/sales-orders")


@sales_orders_bp.get("")
@require_auth
def list_sales_orders():
    try:
        orders = sales_order_service.list_sales_orders(
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
        )
        with_items = include_items_arg()
        return jsonify({
            "items": [o.to_dict(include_items=with_items) for o in orders],
            "count": len(orders),
        }), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@sales_orders_bp.get("/<int:order_id>")
@require_auth
def get_sales_order(order_id: int):
    try:
        return jsonify(sales_order_service.get_sales_order(order_id).to_dict(include_items=True)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@sales_orders_bp.post("")
@require_auth
def create_sales_order():
    try:
        order = sales_order_service.create_sales_order(json_payload(), created_by=g.current_user.id)
        return jsonify(order.to_dict(include_items=True)), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sales order")
        return jsonify({"error": "Internal server error"}), 500


@sales_orders_bp.put("/<int:order_id>")
@require_auth
def update_sales_order(order_id: int):
    try:
        order = sales_order_service.update_sales_order(order_id, json_payload())
        return jsonify(order.to_dict(include_items=True)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sales order")
        return jsonify({"error": "Internal server error"}), 500


@sales_orders_bp.post("/<int:order_id>/status")
@require_auth
def set_sales_order_status(order_id: int):
    try:
        order = sales_order_service.set_sales_order_status(order_id, json_payload().get("status"))
        return jsonify(order.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change sales order status")
        return jsonify({"error": "Internal server error"}), 500


@sales_orders_bp.delete("/<int:order_id>")
@require_auth
def delete_sales_order(order_id: int):
    try:
        sales_order_service.delete_sales_order(order_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sales order")
        return jsonify({"error": "Internal server error"}), 500
