# Overview: Notification rules and the append-only notification sink.

from __future__ import annotations

import math
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Notification, NotificationType, Product, ProductDailySales, Sale
from ..models.notifications import REQUIRED_FIELDS
from stockpos.time_utils import (
    business_date,
    business_day_bounds,
    relative_time_label,
    to_epoch_ms,
    utcnow,
)
"""
Notification rule invariants

- Rules are evaluated against the state passed in (or freshly read); they do
  not cache anything between calls.
- Emission is best-effort: a failed insert is logged and swallowed, never
  propagated into the sale or product write that triggered it.
- No de-duplication by default. NOTIFICATION_DEDUP_SECONDS > 0 suppresses an
  identical (owner, type, product, message) notification inside the window.
- "Today" is the business-local calendar day (BUSINESS_TIMEZONE).
"""

GROUP_TODAY = "Today"
GROUP_YESTERDAY = "Yesterday"
GROUP_THIS_WEEK = "This Week"


def format_amount(cents: int) -> str:
    symbol = current_app.config.get("CURRENCY_SYMBOL", "")
    if cents % 100 == 0:
        return f"{symbol}{cents // 100}"
    return f"{symbol}{cents / 100:.2f}"


def _missing_fields(ntype: NotificationType, fields: dict) -> list[str]:
    required = REQUIRED_FIELDS.get(ntype, frozenset())
    return sorted(name for name in required if fields.get(name) is None)


def _recently_emitted(owner_id, ntype: NotificationType, product_id, message: str, now_ms: int) -> bool:
    window = int(current_app.config.get("NOTIFICATION_DEDUP_SECONDS") or 0)
    if window <= 0:
        return False
    q = db.session.query(Notification.id).filter(
        Notification.type == ntype.value,
        Notification.message == message,
        Notification.date_added_ms >= now_ms - window * 1000,
    )
    q = q.filter(Notification.owner_id.is_(None) if owner_id is None else Notification.owner_id == owner_id)
    q = q.filter(Notification.product_id.is_(None) if product_id is None else Notification.product_id == product_id)
    return q.first() is not None


def create_notification(
    owner_id: str | None,
    ntype: NotificationType,
    title: str,
    message: str,
    *,
    product_id: int | None = None,
    days_left: int | None = None,
    now: datetime | None = None,
) -> Notification | None:
    """
    Append one notification.

    Raises ValueError when the variant's required fields are missing (a
    caller bug). Storage failures are logged and return None.
    """
    ntype = NotificationType(ntype)
    missing = _missing_fields(ntype, {"product_id": product_id, "days_left": days_left})
    if missing:
        raise ValueError(f"{ntype.value} notification requires: {', '.join(missing)}")

    created_at = now or utcnow()
    date_added_ms = to_epoch_ms(created_at)

    try:
        if _recently_emitted(owner_id, ntype, product_id, message, date_added_ms):
            current_app.logger.info("Suppressed repeated %s notification: %s", ntype.value, title)
            return None

        notification = Notification(
            owner_id=owner_id,
            type=ntype.value,
            title=title,
            message=message,
            time_label=relative_time_label(date_added_ms, date_added_ms),
            is_read=False,
            product_id=product_id,
            days_left=days_left,
            date_added_ms=date_added_ms,
            created_at=created_at,
        )
        db.session.add(notification)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error creating %s notification", ntype.value)
        return None

    current_app.logger.info("Notification created: %s", title)
    return notification


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def stock_level_type(stock: int, threshold: int) -> NotificationType | None:
    """Out of stock wins over low stock; the threshold is inclusive."""
    if stock == 0:
        return NotificationType.OUT_OF_STOCK
    if stock <= threshold:
        return NotificationType.LOW_STOCK
    return None


def check_stock_level(product: Product, new_stock: int | None = None, *, now: datetime | None = None) -> Notification | None:
    stock = product.stock_quantity if new_stock is None else new_stock
    ntype = stock_level_type(stock, product.low_stock_threshold)

    if ntype is NotificationType.OUT_OF_STOCK:
        return create_notification(
            product.owner_id,
            ntype,
            "Out of Stock Alert",
            f"{product.name} is out of stock!",
            product_id=product.id,
            now=now,
        )
    if ntype is NotificationType.LOW_STOCK:
        return create_notification(
            product.owner_id,
            ntype,
            "Low Stock Alert",
            f"{product.name} is low ({stock} left)",
            product_id=product.id,
            now=now,
        )
    return None


def sold_quantity_on(owner_id: str, product_id: int, day) -> int:
    row = (
        db.session.query(ProductDailySales.quantity_sold)
        .filter_by(owner_id=owner_id, product_id=product_id, sale_date=day)
        .first()
    )
    return int(row[0]) if row else 0


def check_high_selling(owner_id: str, product_id: int, product_name: str, *, now: datetime | None = None) -> Notification | None:
    """Emit high_selling when today's sold units reach HIGH_SELLING_THRESHOLD."""
    now = now or utcnow()
    threshold = current_app.config["HIGH_SELLING_THRESHOLD"]
    sold_today = sold_quantity_on(owner_id, product_id, business_date(now))

    if sold_today < threshold:
        return None

    return create_notification(
        owner_id,
        NotificationType.HIGH_SELLING,
        "High-Selling Item Alert",
        f"{product_name} sold {sold_today} units today!",
        product_id=product_id,
        now=now,
    )


def expiring_products(owner_id: str, window_days: int, now: datetime | None = None) -> list[tuple[Product, int]]:
    """
    Products expiring after `now` and no later than `now + window_days`.

    An expiry date means the start of that business day. Returns
    (product, days_left) pairs, days_left rounded up.
    """
    now = now or utcnow()
    today = business_date(now)
    last_day = today + timedelta(days=window_days)

    candidates = (
        db.session.query(Product)
        .filter(
            Product.owner_id == owner_id,
            Product.expiry_date.isnot(None),
            Product.expiry_date >= today,
            Product.expiry_date <= last_day,
        )
        .order_by(Product.expiry_date.asc(), Product.id.asc())
        .all()
    )

    horizon = now + timedelta(days=window_days)
    result = []
    for product in candidates:
        expires_at, _ = business_day_bounds(product.expiry_date)
        if now < expires_at <= horizon:
            days_left = math.ceil((expires_at - now).total_seconds() / 86400)
            result.append((product, days_left))
    return result


def check_expiring_products(owner_id: str, window_days: int | None = None, *, now: datetime | None = None) -> list[Notification]:
    if window_days is None:
        window_days = current_app.config["EXPIRY_ALERT_WINDOW_DAYS"]

    emitted = []
    for product, days_left in expiring_products(owner_id, window_days, now):
        notification = create_notification(
            owner_id,
            NotificationType.EXPIRY,
            "Stock Expiry Alert",
            f"{product.name} expires in {days_left} days!",
            product_id=product.id,
            days_left=days_left,
            now=now,
        )
        if notification is not None:
            emitted.append(notification)
    return emitted


def notify_product_added(owner_id: str, product_id: int, product_name: str, *, now: datetime | None = None) -> Notification | None:
    return create_notification(
        owner_id,
        NotificationType.PRODUCT_ADDED,
        "Product Added",
        f"{product_name} has been added to inventory",
        product_id=product_id,
        now=now,
    )


def notify_sale_completed(owner_id: str, total_cents: int, item_count: int, *, now: datetime | None = None) -> Notification | None:
    return create_notification(
        owner_id,
        NotificationType.SALE,
        "Sale Completed",
        f"Successfully sold {item_count} items for {format_amount(total_cents)}",
        now=now,
    )


def _sales_totals(owner_id: str, start: datetime, end: datetime) -> tuple[int, int, int]:
    """(transactions, revenue_cents, profit_cents) for sales in [start, end)."""
    row = (
        db.session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_cents), 0),
            func.coalesce(func.sum(Sale.total_profit_cents), 0),
        )
        .filter(
            Sale.owner_id == owner_id,
            Sale.created_at >= start,
            Sale.created_at < end,
        )
        .one()
    )
    return int(row[0]), int(row[1]), int(row[2])


def generate_daily_summary(owner_id: str, *, now: datetime | None = None) -> Notification | None:
    now = now or utcnow()
    start, end = business_day_bounds(business_date(now))
    transactions, _revenue, profit = _sales_totals(owner_id, start, end)

    if transactions > 0:
        return create_notification(
            owner_id,
            NotificationType.DAILY_SUMMARY,
            "Daily Summary Report",
            f"You made {format_amount(profit)} in profit today.",
            now=now,
        )
    return create_notification(
        owner_id,
        NotificationType.ZERO_SALES,
        "Zero Sales Alert",
        "No sales recorded today - check your stock and prices.",
        now=now,
    )


def generate_weekly_summary(owner_id: str, *, now: datetime | None = None) -> Notification | None:
    """Summary of the last 7 business days, today included. Silent without sales."""
    now = now or utcnow()
    today = business_date(now)
    start, _ = business_day_bounds(today - timedelta(days=6))
    _, end = business_day_bounds(today)
    transactions, revenue, profit = _sales_totals(owner_id, start, end)

    if transactions == 0:
        return None

    return create_notification(
        owner_id,
        NotificationType.WEEKLY_SUMMARY,
        "Weekly Summary Report",
        f"This week: {transactions} sales, {format_amount(revenue)} revenue, "
        f"{format_amount(profit)} profit.",
        now=now,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _visible_to(owner_id: str, include_broadcast: bool):
    if include_broadcast:
        return or_(Notification.owner_id == owner_id, Notification.owner_id.is_(None))
    return Notification.owner_id == owner_id


def list_notifications(owner_id: str, *, include_broadcast: bool = True, limit: int | None = None) -> list[Notification]:
    q = (
        db.session.query(Notification)
        .filter(_visible_to(owner_id, include_broadcast))
        .order_by(Notification.date_added_ms.desc(), Notification.id.desc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()


def unread_count(owner_id: str, *, include_broadcast: bool = True) -> int:
    return (
        db.session.query(func.count(Notification.id))
        .filter(_visible_to(owner_id, include_broadcast), Notification.is_read.is_(False))
        .scalar()
    ) or 0


def mark_read(notification_id: int, owner_id: str) -> Notification | None:
    notification = (
        db.session.query(Notification)
        .filter(Notification.id == notification_id, _visible_to(owner_id, True))
        .first()
    )
    if notification is None:
        return None
    if not notification.is_read:
        notification.is_read = True
        db.session.commit()
    return notification


def group_notifications_by_date(notifications: list[Notification], *, now: datetime | None = None) -> dict[str, list[Notification]]:
    """
    Bucket notifications into Today / Yesterday / This Week.

    Anything older than seven days falls in no bucket.
    """
    now = now or utcnow()
    today = business_date(now)
    yesterday = today - timedelta(days=1)
    week_ago_ms = to_epoch_ms(now - timedelta(days=7))

    groups: dict[str, list[Notification]] = {
        GROUP_TODAY: [],
        GROUP_YESTERDAY: [],
        GROUP_THIS_WEEK: [],
    }
    for notification in notifications:
        day = business_date(notification.created_at)
        if day == today:
            groups[GROUP_TODAY].append(notification)
        elif day == yesterday:
            groups[GROUP_YESTERDAY].append(notification)
        elif notification.date_added_ms > week_ago_ms:
            groups[GROUP_THIS_WEEK].append(notification)
    return groups
