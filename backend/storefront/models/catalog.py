from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product with its stock counters.

    STOCK: A product either carries a single scalar `stock_quantity`, or,
    when it is sold by weight, one ProductWeightOption per package size
    with its own price and quantity. Quantities never go below zero.

    Catalog CRUD lives outside this service; checkout reads name/price
    snapshots and decrements stock under a row lock.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active", "is_active", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True, index=True)

    # Authoritative storage in paise
    price_paise = db.Column(db.Integer, nullable=False, default=0)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    weight_options = db.relationship(
        "ProductWeightOption",
        backref="product",
        lazy=True,
        order_by="ProductWeightOption.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    @property
    def is_available(self) -> bool:
        return bool(self.is_active and not self.is_deleted)

    def find_weight_option(self, weight: str | None) -> "ProductWeightOption | None":
        if not weight:
            return None
        for option in self.weight_options:
            if option.weight == weight:
                return option
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price_paise": self.price_paise,
            "stock_quantity": self.stock_quantity,
            "weight_options": [o.to_dict() for o in self.weight_options],
            "is_active": self.is_active,
            "is_deleted": self.is_deleted,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductWeightOption(db.Model):
    """Weight variant of a product (e.g. "500g", "1kg"), independently priced and stocked."""
    __tablename__ = "product_weight_options"
    __table_args__ = (
        db.UniqueConstraint("product_id", "weight", name="uq_weight_options_product_weight"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    weight = db.Column(db.String(32), nullable=False)
    price_paise = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "weight": self.weight,
            "price_paise": self.price_paise,
            "quantity": self.quantity,
        }
