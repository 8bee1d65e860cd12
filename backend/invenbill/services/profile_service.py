# Overview: Service-layer operations for caller profiles and roles.

"""
Profile Service

WHY: Identity is established upstream; this service only records which
known caller has which role. Deactivating a profile (is_active=False) is
how access is withdrawn; rows are kept so created_by references stay valid.
"""

from __future__ import annotations

from ..extensions import db
from ..models import USER_ROLES, Profile
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, ValidationError, require_choice, validate_payload
from .concurrency import run_atomic

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"email", "first_name", "last_name", "phone", "role", "is_active"},
    required_on_create={"email"},
)

# What a caller may change on their own profile
SELF_SERVICE_FIELDS = {"first_name", "last_name", "phone"}


def _normalize_email(patch: dict) -> None:
    if "email" in patch:
        email = patch["email"].lower()
        if "@" not in email:
            raise ValidationError("email must be a valid email address")
        patch["email"] = email


def _email_taken(email: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Profile.id).filter(Profile.email == email)
    if exclude_id is not None:
        q = q.filter(Profile.id != exclude_id)
    return q.first() is not None


def get_profile(profile_id: int) -> Profile:
    profile = db.session.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError(f"Profile {profile_id} not found")
    return profile


def get_active_profile(profile_id) -> Profile | None:
    """Resolve a caller id to an active profile, or None."""
    try:
        profile_id = int(profile_id)
    except (TypeError, ValueError):
        return None
    profile = db.session.get(Profile, profile_id)
    if profile is None or not profile.is_active:
        return None
    return profile


def list_profiles(*, role: str | None = None) -> list[Profile]:
    q = db.session.query(Profile)
    if role is not None:
        require_choice(role, USER_ROLES, "role")
        q = q.filter(Profile.role == role)
    return q.order_by(Profile.email.asc()).all()


def create_profile(payload: dict) -> Profile:
    patch = validate_payload(model=Profile, payload=payload, policy=PROFILE_POLICY, partial=False)
    _normalize_email(patch)
    patch.setdefault("role", "user")
    require_choice(patch["role"], USER_ROLES, "role")

    def _op() -> Profile:
        if _email_taken(patch["email"]):
            raise ConflictError(f"Profile with email {patch['email']!r} already exists")
        profile = Profile(**patch)
        db.session.add(profile)
        db.session.flush()
        return profile

    return run_atomic(_op)


def update_profile(profile_id: int, payload: dict, *, self_service: bool = False) -> Profile:
    """
    Patch a profile.

    self_service=True limits the patch to SELF_SERVICE_FIELDS (a caller
    editing their own profile cannot change their role or status).
    """
    if self_service and isinstance(payload, dict):
        blocked = sorted(k for k in payload if k not in SELF_SERVICE_FIELDS)
        if blocked:
            raise ValidationError(f"Field not allowed: {blocked[0]}")
    patch = validate_payload(model=Profile, payload=payload, policy=PROFILE_POLICY, partial=True)
    _normalize_email(patch)
    if "role" in patch:
        require_choice(patch["role"], USER_ROLES, "role")

    def _op() -> Profile:
        profile = get_profile(profile_id)
        if "email" in patch and _email_taken(patch["email"], exclude_id=profile.id):
            raise ConflictError(f"Profile with email {patch['email']!r} already exists")
        for k, v in patch.items():
            setattr(profile, k, v)
        db.session.flush()
        return profile

    return run_atomic(_op)
