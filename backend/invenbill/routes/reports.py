# Overview: Flask API routes for reports; manager and admin only.

from flask import Blueprint, current_app, jsonify, request

from ..services import reporting_service
from ..decorators import require_auth, require_role
from invenbill.time_utils import parse_iso_date
from ..validation import ValidationError
from .common import DOMAIN_ERRORS, error_response

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/low-stock")
@require_auth
@require_role("admin", "manager")
def low_stock():
    limit = request.args.get("limit", type=int)
    products = reporting_service.low_stock_products(limit=limit)
    rows = [reporting_service.low_stock_row(p) for p in products]
    return jsonify({"items": rows, "count": len(rows)}), 200


@reports_bp.get("/inventory-summary")
@require_auth
@require_role("admin", "manager")
def inventory_summary():
    return jsonify(reporting_service.inventory_summary()), 200


@reports_bp.get("/dashboard")
@require_auth
@require_role("admin", "manager")
def dashboard():
    """Query params: today (YYYY-MM-DD, optional) anchors the growth window."""
    try:
        try:
            as_of = parse_iso_date(request.args.get("today"))
        except ValueError:
            raise ValidationError("today must be an ISO-8601 date")
        return jsonify(reporting_service.dashboard_summary(today=as_of)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/financial-summary")
@require_auth
@require_role("admin", "manager")
def financial_summary():
    """Query params: start_date, end_date (YYYY-MM-DD, inclusive)."""
    try:
        summary = reporting_service.financial_summary(
            request.args.get("start_date"),
            request.args.get("end_date"),
        )
        return jsonify(summary), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build financial summary")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/tax-summary")
@require_auth
@require_role("admin", "manager")
def tax_summary():
    """Query params: start_date, end_date (YYYY-MM-DD, inclusive)."""
    try:
        summary = reporting_service.tax_summary(
            request.args.get("start_date"),
            request.args.get("end_date"),
        )
        return jsonify(summary), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build tax summary")
        return jsonify({"error": "Internal server error"}), 500
