# Overview: Flask CLI command groups for bootstrap and scheduled alert rules.

# backend/stockpos/cli.py
# Commands (from the backend directory, with FLASK_APP=wsgi.py):
#
# Schema:
# - flask system init-db
#   Create any missing tables. Production databases use `flask db upgrade`.
# - flask system reset-db --yes
#   Local development only: drops every table and recreates the schema.
#
# Alert rules (meant for a daily cron / scheduler):
# - flask alerts daily-summary [--owner-id <uid>]
#   Emit today's daily_summary (or zero_sales) notification.
# - flask alerts weekly-summary [--owner-id <uid>]
#   Emit a weekly_summary notification for the last 7 days.
# - flask alerts expiry [--owner-id <uid>] [--days 3]
#   Emit expiry notifications for products expiring inside the window.
# Without --owner-id the alert commands run for every owner that has products.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import notification_service


@click.group('system')
def system_group():
    """Schema setup commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table. All sales, products and notifications are lost."""
    if not yes:
        click.confirm("WARN Every table will be dropped. Continue?", abort=True)

    db.drop_all()
    db.create_all()
    click.echo("PASS Schema recreated")

def _owner_ids(owner_id):
    if owner_id:
        return [owner_id]
    rows = db.session.query(Product.owner_id).distinct().order_by(Product.owner_id).all()
    return [r[0] for r in rows]


@click.group('alerts')
def alerts_group():
    """Run notification rules that are not triggered by a sale."""


@alerts_group.command('daily-summary')
@click.option('--owner-id', default=None, help='Owner to summarize (default: all owners)')
@with_appcontext
def daily_summary(owner_id):
    for oid in _owner_ids(owner_id):
        notification = notification_service.generate_daily_summary(oid)
        if notification is None:
            click.echo(f"FAIL {oid}: notification not stored")
        else:
            click.echo(f"PASS {oid}: {notification.type} - {notification.message}")


@alerts_group.command('weekly-summary')
@click.option('--owner-id', default=None, help='Owner to summarize (default: all owners)')
@with_appcontext
def weekly_summary(owner_id):
    for oid in _owner_ids(owner_id):
        notification = notification_service.generate_weekly_summary(oid)
        if notification is None:
            click.echo(f"SKIP {oid}: no sales in the last 7 days")
        else:
            click.echo(f"PASS {oid}: {notification.message}")


@alerts_group.command('expiry')
@click.option('--owner-id', default=None, help='Owner to check (default: all owners)')
@click.option('--days', type=int, default=None, help='Window in days (default: EXPIRY_ALERT_WINDOW_DAYS)')
@with_appcontext
def expiry(owner_id, days):
    for oid in _owner_ids(owner_id):
        emitted = notification_service.check_expiring_products(oid, days)
        click.echo(f"PASS {oid}: {len(emitted)} expiry notification(s)")


def register_commands(app):
    """Attach the command groups to app.cli."""
    app.cli.add_command(system_group)
    app.cli.add_command(alerts_group)
