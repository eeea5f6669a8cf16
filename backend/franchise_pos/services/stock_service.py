# Overview: Service-layer operations for raw materials and their stock; encapsulates business logic and database work.

"""
Stock Ledger

Owns RawMaterial master data and the on-hand stock quantity.

STOCK INVARIANT: RawMaterial.stock >= 0 at all times.
adjust_stock applies a delta as one conditional UPDATE
(SET stock = stock + delta WHERE stock + delta >= 0), so two concurrent
decrements can never both read the same stale value. A decrement that
would go negative updates no row and raises InsufficientStockError;
the caller's transaction is then rolled back as a whole.

adjust_stock does NOT commit. It runs inside the caller's unit of work
(e.g. material order delivery) so stock and status commit together.

SOFT DELETE: Raw materials referenced by any material order item keep
their history; deletion sets deleted_at and default queries hide them.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import RawMaterial, MaterialOrderItem
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_raw_material,
    validate_payload,
)
from .concurrency import run_with_retry
from franchise_pos.time_utils import utcnow


RAW_MATERIAL_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit", "description", "price", "purchase_price", "stock", "is_active"},
    required_on_create={"name", "unit", "price", "purchase_price", "stock"},
)


class InsufficientStockError(Exception):
    """Raised when a stock decrement would drive a raw material below zero."""

    def __init__(self, *, raw_material_id: int, name: str, requested: int, available: int):
        self.raw_material_id = raw_material_id
        self.name = name
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock for {name}: requested {requested}, "
            f"available {available} (short by {self.shortfall})"
        )

    def to_dict(self) -> dict:
        return {
            "raw_material_id": self.raw_material_id,
            "name": self.name,
            "requested": self.requested,
            "available": self.available,
            "shortfall": self.shortfall,
        }


def raw_material_query(include_deleted: bool = False):
    """Base query; tombstoned rows are hidden unless include_deleted is set."""
    query = db.session.query(RawMaterial)
    if not include_deleted:
        query = query.filter(RawMaterial.deleted_at.is_(None))
    return query


def get_raw_material(raw_material_id: int, include_deleted: bool = False) -> RawMaterial:
    material = raw_material_query(include_deleted).filter(RawMaterial.id == raw_material_id).first()
    if not material:
        raise NotFoundError(f"Raw material {raw_material_id} not found")
    return material


def list_raw_materials(
    *,
    name: str | None = None,
    active_only: bool = False,
    include_deleted: bool = False,
) -> list[RawMaterial]:
    query = raw_material_query(include_deleted)
    if name:
        query = query.filter(RawMaterial.name.ilike(f"%{name}%"))
    if active_only:
        query = query.filter(RawMaterial.is_active.is_(True))
    return query.order_by(RawMaterial.name.asc(), RawMaterial.id.asc()).all()


def create_raw_material(payload: dict) -> RawMaterial:
    patch = validate_payload(model=RawMaterial, payload=payload, policy=RAW_MATERIAL_POLICY, partial=False)
    enforce_rules_raw_material(patch)

    def _op():
        material = RawMaterial(**patch)
        db.session.add(material)
        db.session.commit()
        return material

    return run_with_retry(_op)


def update_raw_material(raw_material_id: int, payload: dict) -> RawMaterial:
    """
    Update master data. Setting stock here overwrites the count (stock take);
    deliveries go through adjust_stock instead.
    """
    patch = validate_payload(model=RawMaterial, payload=payload, policy=RAW_MATERIAL_POLICY, partial=True)
    enforce_rules_raw_material(patch)

    def _op():
        material = get_raw_material(raw_material_id)
        for key, value in patch.items():
            setattr(material, key, value)
        db.session.commit()
        return material

    return run_with_retry(_op)


def adjust_stock(raw_material_id: int, delta: int) -> RawMaterial:
    """
    Atomically apply delta to a raw material's stock.

    Does not commit. Raises InsufficientStockError when the result would be
    negative and NotFoundError when the material does not exist.
    """
    updated = (
        db.session.query(RawMaterial)
        .filter(
            RawMaterial.id == raw_material_id,
            RawMaterial.stock + delta >= 0,
        )
        .update({RawMaterial.stock: RawMaterial.stock + delta}, synchronize_session=False)
    )

    # Re-read so the identity map reflects the value the UPDATE produced
    material = (
        db.session.query(RawMaterial)
        .populate_existing()
        .filter(RawMaterial.id == raw_material_id)
        .first()
    )
    if material is None:
        raise NotFoundError(f"Raw material {raw_material_id} not found")

    if updated != 1:
        raise InsufficientStockError(
            raw_material_id=material.id,
            name=material.name,
            requested=-delta,
            available=material.stock,
        )

    return material


def decrement_stock(raw_material_id: int, quantity: int) -> RawMaterial:
    if quantity < 1:
        raise ValidationError("quantity must be at least 1", "quantity")
    return adjust_stock(raw_material_id, -quantity)


def restock_raw_material(raw_material_id: int, delta: int) -> RawMaterial:
    """Manual stock correction (positive or negative) committed on its own."""
    if delta == 0:
        raise ValidationError("delta must be non-zero", "delta")

    def _op():
        get_raw_material(raw_material_id)
        material = adjust_stock(raw_material_id, delta)
        db.session.commit()
        current_app.logger.info("Raw material %s stock adjusted by %s", raw_material_id, delta)
        return material

    return run_with_retry(_op)


def _is_referenced(raw_material_id: int) -> bool:
    return db.session.query(MaterialOrderItem.id).filter(
        MaterialOrderItem.raw_material_id == raw_material_id
    ).first() is not None


def soft_delete_raw_material(raw_material_id: int) -> RawMaterial:
    def _op():
        material = get_raw_material(raw_material_id)
        if _is_referenced(material.id):
            raise ConflictError(f"{material.name} is used in material orders and cannot be deleted")
        material.deleted_at = utcnow()
        db.session.commit()
        current_app.logger.info("Raw material %s soft deleted", material.id)
        return material

    return run_with_retry(_op)


def soft_delete_all_raw_materials() -> int:
    """
    Tombstone every raw material.

    Refuses (ConflictError) when any material is referenced by a material
    order; returns the number of materials deleted (0 when none exist).
    """
    def _op():
        in_use = (
            raw_material_query()
            .filter(RawMaterial.material_order_items.any())
            .order_by(RawMaterial.id.asc())
            .all()
        )
        if in_use:
            info = ", ".join(f"{m.name} (ID: {m.id})" for m in in_use)
            raise ConflictError(
                f"Cannot delete all raw materials. The following are still used in orders: {info}"
            )

        count = (
            raw_material_query()
            .update({RawMaterial.deleted_at: utcnow()}, synchronize_session=False)
        )
        db.session.commit()
        current_app.logger.info("Soft deleted %s raw materials", count)
        return count

    return run_with_retry(_op)


def restore_raw_material(raw_material_id: int) -> RawMaterial:
    def _op():
        material = get_raw_material(raw_material_id, include_deleted=True)
        if material.deleted_at is None:
            raise ConflictError(f"{material.name} is not deleted")
        material.deleted_at = None
        db.session.commit()
        return material

    return run_with_retry(_op)
