# Overview: Flask API routes for document number previews.

from flask import Blueprint, jsonify

from ..services import document_service
from ..decorators import require_auth
from .common import DOMAIN_ERRORS, error_response

sequences_bp = Blueprint("sequences", __name__, url_prefix="/api/sequences")


@sequences_bp.get("")
@require_auth
def list_sequences():
    return jsonify({"items": document_service.list_sequences()}), 200


@sequences_bp.get("/<family>/next")
@require_auth
def peek_next(family: str):
    """
    Preview the next number for a family (invoice, sales_order, payment,
    purchase_order). Nothing is reserved; the number is allocated on create.
    """
    try:
        return jsonify({
            "family": family,
            "next_number": document_service.peek_next_document_number(family),
        }), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
