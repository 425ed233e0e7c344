from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from stockpos.models import Notification, Product, ProductDailySales, Sale, SaleLine
from stockpos.services import notification_service, sales_service
from stockpos.services.cart_service import CartStore, ResolvedCartItem
from stockpos.services.sales_service import (
    DebtorDetails,
    SaleCommitFailed,
    SaleError,
    process_sale,
)

from conftest import NOW, OWNER_A, OWNER_B


def _line(product, quantity, **overrides):
    fields = dict(
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        unit_price_cents=product.selling_price_cents,
        unit_cost_cents=product.cost_price_cents,
    )
    fields.update(overrides)
    return ResolvedCartItem(**fields)


def _notification_types(db_session, owner_id=OWNER_A):
    return [
        n.type
        for n in db_session.query(Notification)
        .filter_by(owner_id=owner_id)
        .order_by(Notification.id)
        .all()
    ]


def test_sale_to_threshold_emits_low_stock(make_product, db_session):
    product = make_product(name="Peak Milk", stock_quantity=5, low_stock_threshold=3)

    result = process_sale(OWNER_A, [_line(product, 2)], "cash", now=NOW)

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock_quantity == 3
    low = db_session.query(Notification).filter_by(type="low_stock").one()
    assert "3 left" in low.message
    assert result.outcomes[0].new_stock == 3
    assert _notification_types(db_session) == ["low_stock", "sale"]


def test_selling_last_unit_emits_out_of_stock_only(make_product, db_session):
    product = make_product(stock_quantity=1, low_stock_threshold=3)

    process_sale(OWNER_A, [_line(product, 1)], "cash", now=NOW)

    types = _notification_types(db_session)
    assert "out_of_stock" in types
    assert "low_stock" not in types


def test_sale_total_is_sum_of_line_totals(make_product, db_session):
    rice = make_product(name="Rice", selling_price_cents=100, cost_price_cents=60, stock_quantity=10)
    oil = make_product(name="Oil", selling_price_cents=200, cost_price_cents=150, stock_quantity=10)
    cart = CartStore(OWNER_A)
    cart.add_item(rice.id)
    cart.increment_quantity(rice.id)
    cart.add_item(oil.id)

    sale = process_sale(OWNER_A, cart.resolve(), "transfer", now=NOW).sale

    assert sale.total_cents == 400
    assert sale.total_cents == sum(line.line_total_cents for line in sale.lines)
    assert sale.total_profit_cents == (100 - 60) * 2 + (200 - 150)
    assert [line.line_number for line in sale.lines] == [1, 2]


def test_line_prices_are_immune_to_later_edits(make_product, db_session):
    product = make_product(selling_price_cents=1000, stock_quantity=10)
    sale = process_sale(OWNER_A, [_line(product, 3)], "cash", now=NOW).sale

    product.selling_price_cents = 5000
    db_session.commit()
    db_session.expire_all()

    stored = db_session.get(Sale, sale.id)
    assert stored.lines[0].unit_price_cents == 1000
    assert stored.lines[0].line_total_cents == 3000
    assert stored.total_cents == 3000


def test_oversell_clamps_stock_and_records_shortfall(make_product, db_session):
    product = make_product(stock_quantity=3)

    result = process_sale(OWNER_A, [_line(product, 5)], "cash", now=NOW)

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock_quantity == 0
    line = db_session.query(SaleLine).one()
    assert line.quantity == 5
    assert line.stock_shortfall == 2
    assert result.shortfall_product_ids == [product.id]
    assert "out_of_stock" in _notification_types(db_session)


def test_stock_never_goes_negative_across_sales(make_product, db_session):
    product = make_product(stock_quantity=4)

    for quantity in (3, 3, 2):
        process_sale(OWNER_A, [_line(product, quantity)], "cash", now=NOW)

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock_quantity == 0
    assert sum(line.stock_shortfall for line in db_session.query(SaleLine)) == 4


def test_repeated_lines_for_one_product_see_earlier_decrement(make_product, db_session):
    product = make_product(stock_quantity=5)

    result = process_sale(OWNER_A, [_line(product, 2), _line(product, 2)], "cash", now=NOW)

    assert [o.new_stock for o in result.outcomes] == [3, 1]


def test_sale_of_deleted_product_is_recorded_with_full_shortfall(make_product, db_session):
    product = make_product()
    line = _line(product, 2, product_id=987654)

    result = process_sale(OWNER_A, [line], "cash", now=NOW)

    assert result.sale.id is not None
    assert result.sale.lines[0].stock_shortfall == 2
    assert _notification_types(db_session) == ["sale"]


def test_other_owners_product_is_not_decremented(make_product, db_session):
    theirs = make_product(owner_id=OWNER_B, stock_quantity=5)

    process_sale(OWNER_A, [_line(theirs, 1)], "cash", now=NOW)

    db_session.expire_all()
    assert db_session.get(Product, theirs.id).stock_quantity == 5


def test_credit_sale_persists_debtor(make_product, db_session):
    product = make_product()
    debtor = DebtorDetails("Ada Obi", "08030000000", 8000, notes="Pays Friday")

    sale = process_sale(OWNER_A, [_line(product, 1)], "credit", debtor=debtor, now=NOW).sale

    data = sale.to_dict()
    assert data["payment_method"] == "credit"
    assert data["debtor"]["customer_name"] == "Ada Obi"
    assert data["debtor"]["amount_owed_cents"] == 8000


@pytest.mark.parametrize("lines,method,debtor", [
    ([], "cash", None),
    (None, "cash", None),
    ("line", "barter", None),
    ("line", "credit", None),
])
def test_invalid_sale_requests_are_rejected(make_product, db_session, lines, method, debtor):
    product = make_product()
    if lines == "line":
        lines = [_line(product, 1)]

    with pytest.raises(SaleError):
        process_sale(OWNER_A, lines, method, debtor=debtor, now=NOW)

    assert db_session.query(Sale).count() == 0


def test_idempotency_key_records_sale_once(make_product, db_session):
    product = make_product(stock_quantity=10)

    first = process_sale(OWNER_A, [_line(product, 2)], "cash", idempotency_key="k-1", now=NOW)
    second = process_sale(OWNER_A, [_line(product, 2)], "cash", idempotency_key="k-1", now=NOW)

    assert first.replayed is False
    assert second.replayed is True
    assert second.sale.id == first.sale.id
    assert db_session.query(Sale).count() == 1
    db_session.expire_all()
    assert db_session.get(Product, product.id).stock_quantity == 8


def test_same_idempotency_key_is_scoped_per_owner(make_product, db_session):
    mine = make_product(owner_id=OWNER_A)
    theirs = make_product(owner_id=OWNER_B)

    process_sale(OWNER_A, [_line(mine, 1)], "cash", idempotency_key="shared", now=NOW)
    result = process_sale(OWNER_B, [_line(theirs, 1)], "cash", idempotency_key="shared", now=NOW)

    assert result.replayed is False
    assert db_session.query(Sale).count() == 2


def test_commit_failure_persists_nothing(make_product, db_session, monkeypatch):
    product = make_product(stock_quantity=5)

    def broken(*args, **kwargs):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(sales_service, "_bump_daily_counter", broken)

    with pytest.raises(SaleCommitFailed):
        process_sale(OWNER_A, [_line(product, 2)], "cash", now=NOW)

    db_session.expire_all()
    assert db_session.query(Sale).count() == 0
    assert db_session.query(SaleLine).count() == 0
    assert db_session.get(Product, product.id).stock_quantity == 5
    assert db_session.query(Notification).count() == 0


def test_lock_conflict_is_retried(app, make_product, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "SALE_COMMIT_ATTEMPTS", 2)
    product = make_product(stock_quantity=5)
    original = sales_service._bump_daily_counter
    calls = []

    def flaky(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))
        return original(*args, **kwargs)

    monkeypatch.setattr(sales_service, "_bump_daily_counter", flaky)

    result = process_sale(OWNER_A, [_line(product, 2)], "cash", now=NOW)

    assert len(calls) == 2
    assert db_session.query(Sale).count() == 1
    assert result.outcomes[0].new_stock == 3


def test_notification_failure_does_not_fail_sale(make_product, db_session, monkeypatch):
    product = make_product(stock_quantity=1)

    def broken(*args, **kwargs):
        raise SQLAlchemyError("notifications store unavailable")

    monkeypatch.setattr(notification_service, "_recently_emitted", broken)

    result = process_sale(OWNER_A, [_line(product, 1)], "cash", now=NOW)

    assert db_session.query(Sale).count() == 1
    assert result.outcomes[0].new_stock == 0
    assert db_session.query(Notification).count() == 0


def test_daily_counter_accumulates_per_business_day(make_product, db_session):
    product = make_product(stock_quantity=50)

    process_sale(OWNER_A, [_line(product, 4)], "cash", now=NOW)
    process_sale(OWNER_A, [_line(product, 6)], "cash", now=NOW + timedelta(hours=2))
    process_sale(OWNER_A, [_line(product, 1)], "cash", now=NOW + timedelta(days=1))

    counters = {
        row.sale_date: row.quantity_sold
        for row in db_session.query(ProductDailySales).filter_by(product_id=product.id)
    }
    assert counters == {NOW.date(): 10, (NOW + timedelta(days=1)).date(): 1}


def test_high_selling_emitted_once_when_threshold_crossed(make_product, db_session):
    product = make_product(name="Coke", stock_quantity=100)

    process_sale(OWNER_A, [_line(product, 15)], "cash", now=NOW)
    process_sale(OWNER_A, [_line(product, 10)], "cash", now=NOW)
    process_sale(OWNER_A, [_line(product, 5)], "cash", now=NOW)

    high = db_session.query(Notification).filter_by(type="high_selling").all()
    assert len(high) == 1
    assert high[0].message == "Coke sold 25 units today!"


def test_sale_completed_notification_counts_lines(make_product, db_session):
    rice = make_product(name="Rice", selling_price_cents=100, stock_quantity=10)
    oil = make_product(name="Oil", selling_price_cents=250, stock_quantity=10)

    process_sale(OWNER_A, [_line(rice, 2), _line(oil, 1)], "pos", now=NOW)

    sale_note = db_session.query(Notification).filter_by(type="sale").one()
    assert sale_note.message == "Successfully sold 2 items for ₦4.50"


def test_delete_sale_does_not_restore_stock(make_product, db_session):
    product = make_product(stock_quantity=5)
    sale = process_sale(OWNER_A, [_line(product, 2)], "cash", now=NOW).sale

    assert sales_service.delete_sale(sale.id, OWNER_B) is False
    assert sales_service.delete_sale(sale.id, OWNER_A) is True

    db_session.expire_all()
    assert db_session.query(Sale).count() == 0
    assert db_session.query(SaleLine).count() == 0
    assert db_session.get(Product, product.id).stock_quantity == 3


def test_list_sales_newest_first(make_product, db_session):
    product = make_product(stock_quantity=10)
    older = process_sale(OWNER_A, [_line(product, 1)], "cash", now=NOW - timedelta(hours=1)).sale
    newer = process_sale(OWNER_A, [_line(product, 1)], "cash", now=NOW).sale

    assert [s.id for s in sales_service.list_sales(OWNER_A)] == [newer.id, older.id]
    assert sales_service.list_sales(OWNER_B) == []


def test_rule_crash_after_commit_still_returns_sale(make_product, db_session, monkeypatch, caplog):
    product = make_product(stock_quantity=5)

    def crashing(*args, **kwargs):
        raise RuntimeError("rule engine crashed")

    monkeypatch.setattr(notification_service, "check_stock_level", crashing)

    result = process_sale(OWNER_A, [_line(product, 2)], "cash", now=NOW)

    assert result.sale.id is not None
    assert result.outcomes[0].new_stock == 3
    assert db_session.query(Sale).count() == 1
    assert "Notification rules failed after sale" in caplog.text
