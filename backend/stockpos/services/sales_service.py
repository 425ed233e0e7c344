"""
Sale transaction processing

Turns a resolved cart into a recorded sale, decrements stock and runs the
stock / high-selling / sale-completed notification rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Sequence

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Product, ProductDailySales, Sale, SaleDebtor, SaleLine
from ..models.sales import PAYMENT_CREDIT, PAYMENT_METHODS
from . import notification_service
from .cart_service import ResolvedCartItem
from .concurrency import lock_for_update, run_with_retry
from stockpos.time_utils import business_date, to_utc_z, utcnow
"""
Sale invariants (authoritative)

- The sale row, its lines, every stock decrement and every daily sold-quantity
  counter bump commit in ONE database transaction. Either all of them are
  visible or none are.
- Stock is re-read under lock at commit time, never taken from the cart.
- Stock never goes negative. If a concurrent sale already took the units the
  decrement is clamped at zero and the missing units are recorded on the line
  as stock_shortfall; the sale itself still commits (revenue is not lost).
- A sale carrying an idempotency_key is recorded at most once per owner.
- Notifications run after the commit and can never undo or fail the sale.
"""


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleCommitFailed(SaleError):
    """Persisting the sale failed; nothing was committed and the caller may retry."""


@dataclass(frozen=True)
class DebtorDetails:
    customer_name: str
    phone_number: str
    amount_owed_cents: int
    notes: str | None = None


@dataclass
class StockOutcome:
    product_id: int
    product: Product | None
    previous_stock: int
    new_stock: int
    sold_today_before: int
    sold_today_after: int

    @property
    def depleted(self) -> bool:
        return self.product is not None and self.new_stock == 0


@dataclass
class SaleResult:
    sale: Sale
    outcomes: list[StockOutcome] = field(default_factory=list)
    replayed: bool = False

    @property
    def shortfall_product_ids(self) -> list[int]:
        return [line.product_id for line in self.sale.lines if line.stock_shortfall]


def line_totals(unit_price_cents: int, unit_cost_cents: int, quantity: int) -> tuple[int, int]:
    """(line_total, line_profit) for one line."""
    return unit_price_cents * quantity, (unit_price_cents - unit_cost_cents) * quantity


def find_by_idempotency_key(owner_id: str, idempotency_key: str) -> Sale | None:
    return (
        db.session.query(Sale)
        .filter_by(owner_id=owner_id, idempotency_key=idempotency_key)
        .first()
    )


def _build_sale(
    owner_id: str,
    lines: Sequence[ResolvedCartItem],
    payment_method: str,
    debtor: DebtorDetails | None,
    idempotency_key: str | None,
    now: datetime,
) -> Sale:
    sale = Sale(
        owner_id=owner_id,
        idempotency_key=idempotency_key,
        payment_method=payment_method,
        created_at=now,
        date_label=to_utc_z(now),
    )

    total = 0
    profit = 0
    for number, item in enumerate(lines, start=1):
        line_total, line_profit = line_totals(item.unit_price_cents, item.unit_cost_cents, item.quantity)
        total += line_total
        profit += line_profit
        sale.lines.append(
            SaleLine(
                line_number=number,
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                unit_cost_cents=item.unit_cost_cents,
                line_total_cents=line_total,
                line_profit_cents=line_profit,
                stock_shortfall=0,
            )
        )

    sale.total_cents = total
    sale.total_profit_cents = profit

    if payment_method == PAYMENT_CREDIT and debtor is not None:
        sale.debtor = SaleDebtor(
            customer_name=debtor.customer_name,
            phone_number=debtor.phone_number,
            amount_owed_cents=debtor.amount_owed_cents,
            notes=debtor.notes,
        )
    return sale


def _bump_daily_counter(owner_id: str, product_id: int, day: date, quantity: int) -> tuple[int, int]:
    counter = lock_for_update(
        db.session.query(ProductDailySales)
        .filter_by(owner_id=owner_id, product_id=product_id, sale_date=day)
        .populate_existing()
    ).first()
    if counter is None:
        counter = ProductDailySales(owner_id=owner_id, product_id=product_id, sale_date=day, quantity_sold=0)
        db.session.add(counter)
    before = counter.quantity_sold or 0
    counter.quantity_sold = before + quantity
    db.session.flush()
    return before, counter.quantity_sold


def _decrement_stock(owner_id: str, line: SaleLine, day: date) -> StockOutcome:
    product = lock_for_update(
        db.session.query(Product)
        .filter_by(id=line.product_id, owner_id=owner_id)
        .populate_existing()
    ).first()

    if product is None:
        line.stock_shortfall = line.quantity
        current_app.logger.warning(
            "Sold product %s no longer exists; recorded with full shortfall", line.product_id
        )
        return StockOutcome(line.product_id, None, 0, 0, 0, 0)

    previous = product.stock_quantity
    new_stock = max(previous - line.quantity, 0)
    line.stock_shortfall = line.quantity - (previous - new_stock)
    product.stock_quantity = new_stock

    if line.stock_shortfall:
        current_app.logger.warning(
            "Stock for product %s clamped at zero: requested %d, available %d",
            product.id, line.quantity, previous,
        )

    before, after = _bump_daily_counter(owner_id, product.id, day, line.quantity)
    return StockOutcome(product.id, product, previous, new_stock, before, after)


def _run_sale_rules(owner_id: str, sale: Sale, outcomes: list[StockOutcome], now: datetime) -> None:
    threshold = current_app.config["HIGH_SELLING_THRESHOLD"]
    for outcome in outcomes:
        if outcome.product is None:
            continue
        notification_service.check_stock_level(outcome.product, outcome.new_stock, now=now)
        if outcome.sold_today_before < threshold <= outcome.sold_today_after:
            notification_service.check_high_selling(
                owner_id, outcome.product_id, outcome.product.name, now=now
            )
    notification_service.notify_sale_completed(owner_id, sale.total_cents, sale.line_count, now=now)


def process_sale(
    owner_id: str,
    lines: Sequence[ResolvedCartItem],
    payment_method: str,
    *,
    debtor: DebtorDetails | None = None,
    idempotency_key: str | None = None,
    now: datetime | None = None,
) -> SaleResult:
    """
    Record a sale and apply its stock effects.

    Lines are processed in order; a later line for the same product sees the
    earlier line's decrement. Raises SaleCommitFailed if the transaction could
    not be committed (nothing is persisted in that case).
    """
    if not lines:
        raise SaleError("Cannot record a sale with no lines")
    if payment_method not in PAYMENT_METHODS:
        raise SaleError(f"Unknown payment method: {payment_method}")
    if payment_method == PAYMENT_CREDIT and debtor is None:
        raise SaleError("Credit sales require debtor details")

    if idempotency_key:
        existing = find_by_idempotency_key(owner_id, idempotency_key)
        if existing is not None:
            current_app.logger.info("Sale %s replayed for idempotency key %s", existing.id, idempotency_key)
            return SaleResult(existing, replayed=True)

    now = now or utcnow()
    day = business_date(now)

    def _op():
        sale = _build_sale(owner_id, lines, payment_method, debtor, idempotency_key, now)
        db.session.add(sale)
        db.session.flush()

        outcomes = [_decrement_stock(owner_id, line, day) for line in sale.lines]

        db.session.commit()
        return sale, outcomes

    try:
        sale, outcomes = run_with_retry(_op, attempts=current_app.config.get("SALE_COMMIT_ATTEMPTS", 3))
    except IntegrityError as exc:
        db.session.rollback()
        if idempotency_key:
            existing = find_by_idempotency_key(owner_id, idempotency_key)
            if existing is not None:
                return SaleResult(existing, replayed=True)
        current_app.logger.exception("Failed to commit sale")
        raise SaleCommitFailed("Failed to process sale. Please try again.") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to commit sale")
        raise SaleCommitFailed("Failed to process sale. Please try again.") from exc

    sale_id = sale.id
    current_app.logger.info(
        "Sale %s committed: %d lines, total %d cents via %s",
        sale_id, sale.line_count, sale.total_cents, sale.payment_method,
    )

    try:
        _run_sale_rules(owner_id, sale, outcomes, now)
    except Exception:
        # Sale is committed at this point; rule failures are only logged
        db.session.rollback()
        current_app.logger.exception("Notification rules failed after sale %s committed", sale_id)
    return SaleResult(sale, outcomes)


def get_sale(sale_id: int, owner_id: str) -> Sale | None:
    return db.session.query(Sale).filter_by(id=sale_id, owner_id=owner_id).first()


def list_sales(owner_id: str, limit: int | None = None) -> list[Sale]:
    q = (
        db.session.query(Sale)
        .filter_by(owner_id=owner_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()


def delete_sale(sale_id: int, owner_id: str) -> bool:
    """
    Permanently delete a sale. Irreversible; stock is not restored and the
    daily sold counters are left as they were.
    """
    sale = get_sale(sale_id, owner_id)
    if sale is None:
        return False
    db.session.delete(sale)
    db.session.commit()
    current_app.logger.info("Sale %s deleted by owner %s", sale_id, owner_id)
    return True
