from __future__ import annotations

from ..extensions import db
from franchise_pos.time_utils import to_utc_z


class DailyCash(db.Model):
    """
    Per-outlet, per-day cash ledger baseline.

    One row per (outlet_id, date). The cash summary computes
    closing = opening_balance + cash sales - expenses.
    """
    __tablename__ = "daily_cash"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "date", name="uq_daily_cash_outlet_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)

    opening_balance = db.Column(db.Integer, nullable=False, default=0)
    expenses = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    outlet = db.relationship("Outlet", backref=db.backref("daily_cash", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "date": self.date.isoformat() if self.date else None,
            "opening_balance": self.opening_balance,
            "expenses": self.expenses,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
