from __future__ import annotations

from ..extensions import db
from franchise_pos.time_utils import to_utc_z, utcnow


class MaterialOrder(db.Model):
    """
    Procurement request for raw materials from an outlet.

    LIFECYCLE: pending -> approved -> delivered. A pending order may be
    cancelled, which deletes it. Stock is only deducted on delivery.

    IMMUTABLE: Items and header fields can only change while pending.

    version_id guards against two requests transitioning the same order
    concurrently (StaleDataError on the loser, which is then retried).
    """
    __tablename__ = "material_orders"
    __table_args__ = (
        db.Index("ix_material_orders_franchise_status", "franchise_id", "status"),
        db.Index("ix_material_orders_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    franchise_id = db.Column(db.Integer, db.ForeignKey("outlets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    payment_method = db.Column(db.String(32), nullable=False, default="cash")

    # Cached sum of item subtotals
    total_amount = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    franchise = db.relationship("Outlet", backref=db.backref("material_orders", lazy=True))
    user = db.relationship("User", backref=db.backref("material_orders", lazy=True))
    items = db.relationship(
        "MaterialOrderItem",
        back_populates="material_order",
        cascade="all, delete-orphan",
        order_by="MaterialOrderItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<MaterialOrder id={self.id} status={self.status!r} total_amount={self.total_amount}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "franchise_id": self.franchise_id,
            "franchise_name": self.franchise.name if self.franchise else None,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "status": self.status,
            "payment_method": self.payment_method,
            "total_amount": self.total_amount,
            "notes": self.notes,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "delivered_at": to_utc_z(self.delivered_at) if self.delivered_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class MaterialOrderItem(db.Model):
    """
    Material order line.

    price_per_unit is a snapshot of RawMaterial.price when the line was
    (re)created; later master-data price changes do not touch it.
    """
    __tablename__ = "material_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_material_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    material_order_id = db.Column(
        db.Integer,
        db.ForeignKey("material_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    raw_material_id = db.Column(db.Integer, db.ForeignKey("raw_materials.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_per_unit = db.Column(db.Integer, nullable=False)
    subtotal = db.Column(db.Integer, nullable=False)

    material_order = db.relationship("MaterialOrder", back_populates="items")
    raw_material = db.relationship("RawMaterial", backref=db.backref("material_order_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "material_order_id": self.material_order_id,
            "raw_material_id": self.raw_material_id,
            "raw_material_name": self.raw_material.name if self.raw_material else None,
            "unit": self.raw_material.unit if self.raw_material else None,
            "quantity": self.quantity,
            "price_per_unit": self.price_per_unit,
            "subtotal": self.subtotal,
        }
