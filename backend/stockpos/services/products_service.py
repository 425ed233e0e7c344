# backend/stockpos/services/products_service.py
"""
Product catalog service.

OWNERSHIP: every product belongs to one owner_id; reads and writes are
scoped to the caller's owner_id. Stock is only decremented by the sale
processor, never through product edits.
"""
from __future__ import annotations
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import Product
from ..validation import ProductNotFoundError
from . import notification_service
from stockpos.time_utils import business_date, business_day_bounds, utcnow

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "category",
    "cost_price_cents",
    "selling_price_cents",
    "low_stock_threshold",
    "expiry_date",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int, owner_id: str | None = None) -> Product | None:
    q = db.session.query(Product).filter_by(id=product_id)
    if owner_id is not None:
        q = q.filter_by(owner_id=owner_id)
    return q.first()


def require_product(product_id: int, owner_id: str | None = None) -> Product:
    product = get_product(product_id, owner_id)
    if product is None:
        raise ProductNotFoundError("Product not found", details={"product_id": product_id})
    return product


def list_products(owner_id: str, category: str | None = None) -> list[Product]:
    q = db.session.query(Product).filter_by(owner_id=owner_id)
    if category:
        q = q.filter_by(category=category)
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(owner_id: str, data: dict, *, now: datetime | None = None) -> Product:
    """
    Create a product and run the product-added rules.

    `data` is an already validated patch. After the insert commits the owner
    gets a product_added notification, a stock-level check for the new
    product and a sweep of their expiring products.
    """
    product = Product(
        owner_id=owner_id,
        name=data["name"],
        category=data.get("category"),
        stock_quantity=data.get("stock_quantity") or 0,
        cost_price_cents=data.get("cost_price_cents") or 0,
        selling_price_cents=data.get("selling_price_cents") or 0,
        low_stock_threshold=(
            data["low_stock_threshold"]
            if data.get("low_stock_threshold") is not None
            else current_app.config["DEFAULT_LOW_STOCK_THRESHOLD"]
        ),
        expiry_date=data.get("expiry_date"),
    )
    db.session.add(product)
    db.session.commit()

    try:
        notification_service.notify_product_added(owner_id, product.id, product.name, now=now)
        notification_service.check_stock_level(product, now=now)
        notification_service.check_expiring_products(owner_id, now=now)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Notification rules failed after product %s was created", product.id)
    return product


def update_product(product_id: int, owner_id: str, patch: dict) -> Product | None:
    """
    Edit descriptive fields and prices.

    Price edits never touch existing sales: lines carry their own snapshot.
    """
    product = get_product(product_id, owner_id)
    if product is None:
        return None
    apply_product_patch(product, patch)
    db.session.commit()
    return product


def inventory_status_counts(owner_id: str, *, now: datetime | None = None) -> dict:
    """
    Counts behind the inventory filter tabs.

    "expiring" uses EXPIRING_FILTER_DAYS, which is deliberately separate from
    the alert window used by check_expiring_products.
    """
    now = now or utcnow()
    window = current_app.config["EXPIRING_FILTER_DAYS"]
    horizon = now + timedelta(days=window)
    today = business_date(now)

    counts = {"all": 0, "in_stock": 0, "out_of_stock": 0, "low_stock": 0, "expiring": 0}
    for product in list_products(owner_id):
        counts["all"] += 1
        if product.stock_quantity > 0:
            counts["in_stock"] += 1
        else:
            counts["out_of_stock"] += 1
        if product.is_low_stock:
            counts["low_stock"] += 1
        if product.expiry_date and product.expiry_date >= today:
            expires_at, _ = business_day_bounds(product.expiry_date)
            if now < expires_at <= horizon:
                counts["expiring"] += 1
    return counts
