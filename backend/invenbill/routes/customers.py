# Overview: Flask API routes for customers; aggregates are read-only here.

from flask import Blueprint, current_app, jsonify, request

from ..services import customer_service, invoice_service
from ..decorators import require_auth
from .common import DOMAIN_ERRORS, error_response, json_payload

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers():
    customers = customer_service.list_customers(
        search=request.args.get("search"),
        status=request.args.get("status"),
    )
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer(customer_id: int):
    try:
        return jsonify(customer_service.get_customer(customer_id).to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@customers_bp.get("/<int:customer_id>/invoices")
@require_auth
def list_customer_invoices(customer_id: int):
    try:
        customer_service.get_customer(customer_id)
        invoices = invoice_service.list_invoices(customer_id=customer_id)
        return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@customers_bp.post("")
@require_auth
def create_customer():
    try:
        customer = customer_service.create_customer(json_payload())
        return jsonify(customer.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer(customer_id: int):
    try:
        customer = customer_service.update_customer(customer_id, json_payload())
        return jsonify(customer.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer(customer_id: int):
    try:
        customer_service.delete_customer(customer_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<int:customer_id>/recompute-totals")
@require_auth
def recompute_totals(customer_id: int):
    """Self-heal one customer's aggregates from the invoice history."""
    try:
        customer = customer_service.run_recompute(customer_id)
        return jsonify(customer.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to recompute customer totals")
        return jsonify({"error": "Internal server error"}), 500
