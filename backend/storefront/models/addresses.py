from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class Address(db.Model):
    """Saved delivery address. Soft-deleted via is_deleted."""
    __tablename__ = "addresses"
    __table_args__ = (
        db.Index("ix_addresses_user_default", "user_id", "is_default"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    label = db.Column(db.String(32), nullable=False, default="Home")
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    address = db.Column(db.Text, nullable=False)
    landmark = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=False)
    state = db.Column(db.String(128), nullable=True)
    pincode = db.Column(db.String(16), nullable=False)

    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("addresses", lazy=True))

    def to_snapshot(self) -> dict:
        """Delivery address copy stored on an order."""
        return {
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "landmark": self.landmark,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "label": self.label,
            **self.to_snapshot(),
            "is_default": self.is_default,
            "created_at": to_utc_z(self.created_at),
        }
