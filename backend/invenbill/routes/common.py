# Overview: Shared helpers for API routes: domain error mapping and query-arg parsing.

from flask import jsonify, request

from ..validation import ConflictError, NotFoundError, PersistenceError, ValidationError

# Domain errors every route maps to a client-facing status
DOMAIN_ERRORS = (ValidationError, NotFoundError, ConflictError, PersistenceError)


def error_response(exc: Exception):
    """
    Map a domain error to a JSON response.

    400 validation, 404 missing entity, 409 conflict, 503 storage failure
    (nothing was applied; the client may retry).
    """
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    body = {"error": str(exc), "committed": getattr(exc, "committed", False)}
    return jsonify(body), 503


def json_payload() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def include_items_arg() -> bool:
    return request.args.get("include_items", "").lower() in ("1", "true", "yes")
