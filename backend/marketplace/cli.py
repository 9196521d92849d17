# Overview: Flask CLI command group for bootstrap, settings and session reports.

# backend/marketplace/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask marketplace <command> [options]
#
# - python -m flask marketplace init-db
#   Create any missing tables (idempotent).
# - python -m flask marketplace reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask marketplace settings show
#   Print the tax rates currently in effect.
# - python -m flask marketplace settings set --pst 0.07 --gst 0.05
#   Change one or both tax rates.
# - python -m flask marketplace report 3
#   Print the financial summary of sale session 3.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import reporting_service, settings_service
from .validation import NotFoundError, ValidationError


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('marketplace')
def marketplace_group():
    """Marketplace bootstrap, settings and reporting commands."""


@marketplace_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables ready.")


@marketplace_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@marketplace_group.group('settings')
def settings_group():
    """Inspect or change POS tax settings."""


@settings_group.command('show')
@with_appcontext
def settings_show():
    settings = settings_service.get_sales_settings()
    click.echo(f"PST: {settings.pst_rate}")
    click.echo(f"GST: {settings.gst_rate}")


@settings_group.command('set')
@click.option('--pst', default=None, help='Provincial sales tax as a fraction, e.g. 0.07')
@click.option('--gst', default=None, help='Goods and services tax as a fraction, e.g. 0.05')
@with_appcontext
def settings_set(pst, gst):
    try:
        settings = settings_service.update_sales_settings(pst_rate=pst, gst_rate=gst)
    except ValidationError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"PASS PST={settings.pst_rate} GST={settings.gst_rate}")


@marketplace_group.command('report')
@click.argument('session_id', type=int)
@with_appcontext
def report(session_id):
    """Print a session's revenue, COGS and best sellers."""
    try:
        data = reporting_service.build_report(session_id)
    except NotFoundError as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Session: {data['session']['name']} (ID: {session_id})")
    click.echo("=" * 60)
    click.echo(f"Expected revenue:  {_money(data['expected_revenue_cents'])}")
    click.echo(f"Actual revenue:    {_money(data['actual_revenue_cents'])}")
    click.echo(f"COGS:              {_money(data['cogs_cents'])}")
    click.echo(f"Promotional cost:  {_money(data['promotional_cost_cents'])}")
    click.echo(f"Net profit:        {_money(data['net_profit_cents'])}")
    click.echo(f"Taxes collected:   {_money(data['taxes_collected_cents'])}")
    click.echo(f"Transactions:      {data['transaction_count']} ({data['void_count']} voids)")
    click.echo(f"Vouchers redeemed: {data['vouchers_redeemed']}")
    if data["best_sellers"]:
        click.echo("Best sellers:")
        for rank, entry in enumerate(data["best_sellers"][:10], start=1):
            click.echo(f"  {rank:>2}. {entry['item_name']} x{entry['quantity']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(marketplace_group)
