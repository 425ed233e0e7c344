from __future__ import annotations

from ..extensions import db
from stockpos.time_utils import to_utc_z

class Product(db.Model):
    """
    Product master data, owned by a single user.

    STOCK: stock_quantity is a mutable counter (not ledger-derived).
    It may never go negative: the CHECK constraint is the last line, the sale
    processor clamps before writing.

    CONCURRENCY: version_id is an optimistic lock. Two sessions decrementing
    the same row concurrently cannot both win; the loser gets StaleDataError
    and its transaction is retried.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("cost_price_cents >= 0", name="ck_products_cost_non_negative"),
        db.CheckConstraint("selling_price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_owner_name", "owner_id", "name"),
        db.Index("ix_products_owner_expiry", "owner_id", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(128), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    # Authoritative storage in cents (frontend may only format for display)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)
    expiry_date = db.Column(db.Date, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity} owner_id={self.owner_id!r}>"

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock_quantity == 0

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.stock_quantity <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "category": self.category,
            "stock_quantity": self.stock_quantity,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "low_stock_threshold": self.low_stock_threshold,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductDailySales(db.Model):
    """
    Units of a product sold per business day.

    Maintained by the sale processor inside the same DB transaction as the
    stock decrement, so the high-selling rule reads one row instead of
    scanning every sale.
    """
    __tablename__ = "product_daily_sales"
    __table_args__ = (
        db.UniqueConstraint("owner_id", "product_id", "sale_date", name="uq_product_daily_sales"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(128), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sale_date = db.Column(db.Date, nullable=False, index=True)
    quantity_sold = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "product_id": self.product_id,
            "sale_date": self.sale_date.isoformat(),
            "quantity_sold": self.quantity_sold,
        }
