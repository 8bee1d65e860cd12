# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import profile_service

# Header carrying the caller's profile id, set by the upstream auth layer
USER_ID_HEADER = "X-User-Id"


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a known, active caller.

    Sets g.current_user to the caller's Profile.

    SECURITY: Returns 401 if:
    - No X-User-Id header
    - The id does not resolve to a profile
    - The profile is deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = request.headers.get(USER_ID_HEADER)

        if not user_id:
            return jsonify({"error": "Authentication required"}), 401

        profile = profile_service.get_active_profile(user_id)
        if profile is None:
            return jsonify({"error": "Unknown or inactive user"}), 401

        g.current_user = profile
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require the caller's role to be one of `roles`.

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                    "message": f"Requires one of: {', '.join(roles)}"
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
