from __future__ import annotations

import enum

from ..extensions import db
from stockpos.time_utils import relative_time_label, to_utc_z


class NotificationType(str, enum.Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    HIGH_SELLING = "high_selling"
    ZERO_SALES = "zero_sales"
    DAILY_SUMMARY = "daily_summary"
    WEEKLY_SUMMARY = "weekly_summary"
    EXPENSE = "expense"
    EXPIRY = "expiry"
    BACKUP = "backup"
    APP_UPDATE = "app_update"
    PRODUCT_ADDED = "product_added"
    SALE = "sale"


# Fields each variant must carry; emission is rejected without them
REQUIRED_FIELDS: dict[NotificationType, frozenset[str]] = {
    NotificationType.LOW_STOCK: frozenset({"product_id"}),
    NotificationType.OUT_OF_STOCK: frozenset({"product_id"}),
    NotificationType.HIGH_SELLING: frozenset({"product_id"}),
    NotificationType.PRODUCT_ADDED: frozenset({"product_id"}),
    NotificationType.EXPIRY: frozenset({"product_id", "days_left"}),
}


class Notification(db.Model):
    """
    Business alert raised by the notification rules.

    OWNERSHIP: owner_id NULL means broadcast; every owner sees it.
    MUTABILITY: only is_read ever changes after creation.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_owner_date", "owner_id", "date_added_ms"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(128), nullable=True, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)

    # Label as computed at creation ("Just now")
    time_label = db.Column(db.String(32), nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    product_id = db.Column(db.Integer, nullable=True, index=True)
    days_left = db.Column(db.Integer, nullable=True)

    # Epoch milliseconds; used for ordering and Today/Yesterday grouping
    date_added_ms = db.Column(db.BigInteger, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    @property
    def notification_type(self) -> NotificationType:
        return NotificationType(self.type)

    def to_dict(self, now_ms: int | None = None) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "time": relative_time_label(self.date_added_ms, now_ms),
            "is_read": self.is_read,
            "product_id": self.product_id,
            "days_left": self.days_left,
            "date_added": self.date_added_ms,
            "created_at": to_utc_z(self.created_at),
        }
