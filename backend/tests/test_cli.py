from datetime import timedelta

from stockpos.models import Notification
from stockpos.time_utils import business_date, utcnow

from conftest import OWNER_A, OWNER_B


def test_daily_summary_without_sales_emits_zero_sales(app, make_product, db_session):
    make_product(owner_id=OWNER_A)
    make_product(owner_id=OWNER_B)

    result = app.test_cli_runner().invoke(args=["alerts", "daily-summary"])

    assert result.exit_code == 0
    assert f"PASS {OWNER_A}: zero_sales" in result.output
    assert f"PASS {OWNER_B}: zero_sales" in result.output
    assert db_session.query(Notification).filter_by(type="zero_sales").count() == 2


def test_weekly_summary_skips_owner_without_sales(app, db_session):
    result = app.test_cli_runner().invoke(args=["alerts", "weekly-summary", "--owner-id", OWNER_A])

    assert result.exit_code == 0
    assert f"SKIP {OWNER_A}" in result.output


def test_expiry_command_uses_days_option(app, make_product, db_session):
    today = business_date(utcnow())
    make_product(name="Bread", expiry_date=today + timedelta(days=2))
    make_product(name="Butter", expiry_date=today + timedelta(days=6))

    default = app.test_cli_runner().invoke(args=["alerts", "expiry", "--owner-id", OWNER_A])
    wide = app.test_cli_runner().invoke(
        args=["alerts", "expiry", "--owner-id", OWNER_A, "--days", "10"]
    )

    assert "1 expiry notification(s)" in default.output
    assert "2 expiry notification(s)" in wide.output
    assert db_session.query(Notification).filter_by(type="expiry").count() == 3
