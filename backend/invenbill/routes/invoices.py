# Overview: Flask API routes for invoices; parses input and returns JSON responses.

"""
Invoice routes.

PUT replaces the whole item set when `items` is present and leaves the
items untouched when it is omitted.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..services import invoice_service
from ..decorators import require_auth
from .common import DOMAIN_ERRORS, error_response, include_items_arg, json_payload

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
def list_invoices():
    try:
        invoices = invoice_service.list_invoices(
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
        )
        with_items = include_items_arg()
        return jsonify({
            "items": [i.to_dict(include_items=with_items) for i in invoices],
            "count": len(invoices),
        }), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        return jsonify(invoice.to_dict(include_items=True)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@invoices_bp.post("")
@require_auth
def create_invoice():
    try:
        invoice = invoice_service.create_invoice(json_payload(), created_by=g.current_user.id)
        return jsonify(invoice.to_dict(include_items=True)), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.put("/<int:invoice_id>")
@require_auth
def update_invoice(invoice_id: int):
    try:
        invoice = invoice_service.update_invoice(invoice_id, json_payload())
        return jsonify(invoice.to_dict(include_items=True)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/status")
@require_auth
def set_invoice_status(invoice_id: int):
    try:
        payload = json_payload()
        invoice = invoice_service.set_invoice_status(invoice_id, payload.get("status"))
        return jsonify(invoice.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change invoice status")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
def delete_invoice(invoice_id: int):
    try:
        invoice_service.delete_invoice(invoice_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500
