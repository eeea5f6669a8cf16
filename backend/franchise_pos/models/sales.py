from __future__ import annotations

from ..extensions import db
from franchise_pos.time_utils import to_utc_z, utcnow

ORDER_TYPES = ("dine_in", "take_away")


class Order(db.Model):
    """
    Sales order pushed by the cashier app.

    Totals are computed client-side and stored as received; the summary
    report aggregates them per payment method.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_outlet_created", "outlet_id", "created_at"),
        db.Index("ix_orders_payment_method", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True, index=True)

    payment_amount = db.Column(db.Integer, nullable=False, default=0)
    sub_total = db.Column(db.Integer, nullable=False, default=0)
    tax = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Integer, nullable=False, default=0)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    service_charge = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(32), nullable=False)
    total_item = db.Column(db.Integer, nullable=False, default=0)

    cashier_id = db.Column(db.Integer, nullable=False)
    cashier_name = db.Column(db.String(255), nullable=False)
    transaction_time = db.Column(db.DateTime(timezone=True), nullable=False)
    order_type = db.Column(db.String(16), nullable=False, default="dine_in")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    outlet = db.relationship("Outlet", backref=db.backref("orders", lazy=True))
    items = db.relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "outlet": self.outlet.to_dict() if self.outlet else None,
            "payment_amount": self.payment_amount,
            "sub_total": self.sub_total,
            "tax": self.tax,
            "discount": self.discount,
            "discount_amount": self.discount_amount,
            "service_charge": self.service_charge,
            "total": self.total,
            "payment_method": self.payment_method,
            "total_item": self.total_item,
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier_name,
            "transaction_time": to_utc_z(self.transaction_time),
            "order_type": self.order_type,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    # Unit price at the time of sale
    price = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price": self.price,
        }
