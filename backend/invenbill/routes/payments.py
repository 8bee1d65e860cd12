# Overview: Flask API routes for customer payments.

from flask import Blueprint, current_app, g, jsonify, request

from ..services import payment_service
from ..decorators import require_auth
from .common import DOMAIN_ERRORS, error_response, json_payload

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_auth
def list_payments():
    try:
        payments = payment_service.list_payments(
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
            invoice_id=request.args.get("invoice_id", type=int),
        )
        return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@payments_bp.get("/<int:payment_id>")
@require_auth
def get_payment(payment_id: int):
    try:
        return jsonify(payment_service.get_payment(payment_id).to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@payments_bp.post("")
@require_auth
def create_payment():
    try:
        payment = payment_service.create_payment(json_payload(), created_by=g.current_user.id)
        return jsonify(payment.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.put("/<int:payment_id>")
@require_auth
def update_payment(payment_id: int):
    try:
        payment = payment_service.update_payment(payment_id, json_payload())
        return jsonify(payment.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.delete("/<int:payment_id>")
@require_auth
def delete_payment(payment_id: int):
    try:
        payment_service.delete_payment(payment_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete payment")
        return jsonify({"error": "Internal server error"}), 500
