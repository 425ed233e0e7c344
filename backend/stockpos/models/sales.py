from __future__ import annotations

from ..extensions import db
from stockpos.time_utils import to_utc_z

PAYMENT_CASH = "cash"
PAYMENT_TRANSFER = "transfer"
PAYMENT_POS = "pos"
PAYMENT_CREDIT = "credit"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_TRANSFER, PAYMENT_POS, PAYMENT_CREDIT)


class Sale(db.Model):
    """
    Completed sale: the append-only ledger entry for one checkout.

    Lines snapshot name, unit price and unit cost at time of sale so later
    product edits never change historical revenue or profit.

    IMMUTABLE: never updated; only removed by an explicit user delete.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("owner_id", "idempotency_key", name="uq_sales_owner_idempotency_key"),
        db.Index("ix_sales_owner_created", "owner_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(128), nullable=False, index=True)

    # Client-generated; a retried checkout with the same key returns the original sale
    idempotency_key = db.Column(db.String(64), nullable=True)

    payment_method = db.Column(db.String(16), nullable=False)  # cash, transfer, pos, credit

    total_cents = db.Column(db.Integer, nullable=False)
    total_profit_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    date_label = db.Column(db.String(40), nullable=False)

    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleLine.line_number",
    )
    debtor = db.relationship(
        "SaleDebtor",
        backref="sale",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "idempotency_key": self.idempotency_key,
            "payment_method": self.payment_method,
            "total_cents": self.total_cents,
            "total_profit_cents": self.total_profit_cents,
            "created_at": to_utc_z(self.created_at),
            "date": self.date_label,
            "debtor": self.debtor.to_dict() if self.debtor else None,
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """Individual line items on a sale, priced at time of sale."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    # Not a foreign key: the product may be deleted later, the sale must survive
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    line_profit_cents = db.Column(db.Integer, nullable=False)

    # Units sold that were no longer in stock when the decrement ran
    stock_shortfall = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "line_number": self.line_number,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
            "line_profit_cents": self.line_profit_cents,
            "stock_shortfall": self.stock_shortfall,
        }


class SaleDebtor(db.Model):
    """Customer who took goods on credit. Present only on credit sales."""
    __tablename__ = "sale_debtors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, unique=True)

    customer_name = db.Column(db.String(255), nullable=False)
    phone_number = db.Column(db.String(64), nullable=False)
    amount_owed_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "customer_name": self.customer_name,
            "phone_number": self.phone_number,
            "amount_owed_cents": self.amount_owed_cents,
            "notes": self.notes,
        }
