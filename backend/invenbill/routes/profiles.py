# Overview: Flask API routes for caller profiles and roles.

"""
Profile routes.

SECURITY:
- Listing, creating and role changes require the admin role.
- Any caller may read /me and update their own name and phone.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..services import profile_service
from ..decorators import require_auth, require_role
from .common import DOMAIN_ERRORS, error_response, json_payload

profiles_bp = Blueprint("profiles", __name__, url_prefix="/api/profiles")


@profiles_bp.get("/me")
@require_auth
def get_me():
    return jsonify(g.current_user.to_dict()), 200


@profiles_bp.put("/me")
@require_auth
def update_me():
    try:
        profile = profile_service.update_profile(g.current_user.id, json_payload(), self_service=True)
        return jsonify(profile.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update own profile")
        return jsonify({"error": "Internal server error"}), 500


@profiles_bp.get("")
@require_auth
@require_role("admin")
def list_profiles():
    try:
        profiles = profile_service.list_profiles(role=request.args.get("role"))
        return jsonify({"items": [p.to_dict() for p in profiles], "count": len(profiles)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@profiles_bp.get("/<int:profile_id>")
@require_auth
def get_profile(profile_id: int):
    if g.current_user.role != "admin" and g.current_user.id != profile_id:
        return jsonify({"error": "Permission denied"}), 403
    try:
        return jsonify(profile_service.get_profile(profile_id).to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@profiles_bp.post("")
@require_auth
@require_role("admin")
def create_profile():
    try:
        profile = profile_service.create_profile(json_payload())
        return jsonify(profile.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create profile")
        return jsonify({"error": "Internal server error"}), 500


@profiles_bp.put("/<int:profile_id>")
@require_auth
@require_role("admin")
def update_profile(profile_id: int):
    try:
        profile = profile_service.update_profile(profile_id, json_payload())
        return jsonify(profile.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500
