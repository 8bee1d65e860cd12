# Overview: Service-layer operations for vendors.

"""
Vendor Service

Vendors are the counterparty of purchase orders. A purchase order keeps a
vendor_name snapshot, so renaming a vendor does not rewrite past orders.
"""

from ..extensions import db
from ..models import PurchaseOrder, Vendor
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, validate_payload
from .concurrency import run_atomic

VENDOR_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "contact_person"},
    required_on_create={"name"},
)


def get_vendor(vendor_id: int) -> Vendor:
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None:
        raise NotFoundError(f"Vendor {vendor_id} not found")
    return vendor


def list_vendors(*, search: str | None = None) -> list[Vendor]:
    q = db.session.query(Vendor)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(db.or_(Vendor.name.ilike(like), Vendor.contact_person.ilike(like)))
    return q.order_by(Vendor.name.asc(), Vendor.id.asc()).all()


def create_vendor(payload: dict) -> Vendor:
    patch = validate_payload(model=Vendor, payload=payload, policy=VENDOR_POLICY, partial=False)

    def _op() -> Vendor:
        vendor = Vendor(**patch)
        db.session.add(vendor)
        db.session.flush()
        return vendor

    return run_atomic(_op)


def update_vendor(vendor_id: int, payload: dict) -> Vendor:
    patch = validate_payload(model=Vendor, payload=payload, policy=VENDOR_POLICY, partial=True)

    def _op() -> Vendor:
        vendor = get_vendor(vendor_id)
        for k, v in patch.items():
            setattr(vendor, k, v)
        db.session.flush()
        return vendor

    return run_atomic(_op)


def delete_vendor(vendor_id: int) -> None:
    def _op() -> None:
        vendor = get_vendor(vendor_id)
        in_use = db.session.query(PurchaseOrder.id).filter(PurchaseOrder.vendor_id == vendor.id).first()
        if in_use:
            raise ConflictError("Vendor has purchase orders and cannot be deleted")
        db.session.delete(vendor)
        db.session.flush()

    run_atomic(_op)
