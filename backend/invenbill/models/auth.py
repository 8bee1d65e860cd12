from __future__ import annotations

from ..extensions import db
from invenbill.time_utils import to_utc_z

USER_ROLES = ("admin", "manager", "user")


class Profile(db.Model):
    """
    Caller profile and role.

    Identity is established upstream (the authentication provider); this
    table only maps a known caller id to a role for access checks.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_profiles_email"),
        db.CheckConstraint("role IN ('admin', 'manager', 'user')", name="ck_profiles_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(128), nullable=True)
    last_name = db.Column(db.String(128), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    role = db.Column(db.String(16), nullable=False, default="user")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Profile id={self.id} email={self.email!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
