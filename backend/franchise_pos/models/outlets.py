from __future__ import annotations

from ..extensions import db
from franchise_pos.time_utils import to_utc_z


class Outlet(db.Model):
    """
    A franchise outlet (physical sales location).

    Orders, material orders, daily cash rows and non-owner users are scoped to an outlet.
    """
    __tablename__ = "outlets"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Outlet id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
        }
