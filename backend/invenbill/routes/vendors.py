# Overview: Flask API routes for vendors.

from flask import Blueprint, current_app, jsonify, request

from ..services import vendor_service
from ..decorators import require_auth
from .common import DOMAIN_ERRORS, error_response, json_payload

vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")


@vendors_bp.get("")
@require_auth
def list_vendors():
    vendors = vendor_service.list_vendors(search=request.args.get("search"))
    return jsonify({"items": [v.to_dict() for v in vendors], "count": len(vendors)}), 200


@vendors_bp.get("/<int:vendor_id>")
@require_auth
def get_vendor(vendor_id: int):
    try:
        return jsonify(vendor_service.get_vendor(vendor_id).to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@vendors_bp.post("")
@require_auth
def create_vendor():
    try:
        vendor = vendor_service.create_vendor(json_payload())
        return jsonify(vendor.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create vendor")
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.put("/<int:vendor_id>")
@require_auth
def update_vendor(vendor_id: int):
    try:
        vendor = vendor_service.update_vendor(vendor_id, json_payload())
        return jsonify(vendor.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update vendor")
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.delete("/<int:vendor_id>")
@require_auth
def delete_vendor(vendor_id: int):
    try:
        vendor_service.delete_vendor(vendor_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete vendor")
        return jsonify({"error": "Internal server error"}), 500
