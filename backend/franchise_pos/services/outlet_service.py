from __future__ import annotations

from ..extensions import db
from ..models import Outlet
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, validate_payload
from .concurrency import run_with_retry


OUTLET_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "phone"},
    required_on_create={"name"},
)


def get_outlet(outlet_id: int) -> Outlet:
    outlet = db.session.get(Outlet, outlet_id)
    if not outlet:
        raise NotFoundError(f"Outlet {outlet_id} not found")
    return outlet


def list_outlets(outlet_id: int | None = None) -> list[Outlet]:
    query = db.session.query(Outlet)
    if outlet_id is not None:
        query = query.filter(Outlet.id == outlet_id)
    return query.order_by(Outlet.name.asc()).all()


def create_outlet(payload: dict) -> Outlet:
    patch = validate_payload(model=Outlet, payload=payload, policy=OUTLET_POLICY, partial=False)

    def _op():
        if db.session.query(Outlet).filter(Outlet.name == patch["name"]).first():
            raise ConflictError(f"Outlet '{patch['name']}' already exists")
        outlet = Outlet(**patch)
        db.session.add(outlet)
        db.session.commit()
        return outlet

    return run_with_retry(_op)
