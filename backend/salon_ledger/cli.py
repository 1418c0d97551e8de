# Overview: Flask CLI command groups for bootstrap, reconciliation and reporting.

# backend/salon_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (use Flask-Migrate `db upgrade` for managed databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Legacy data:
# - python -m flask ledger migrate-categories [--dry-run]
#   Assign expense categories and typed commission breakdowns to legacy expenses.
# - python -m flask ledger events --limit 20
#   Show the most recent reconciliation events.
#
# Cash:
# - python -m flask cash live [--location-id 1] [--as-of 2024-01-10T18:00:00Z]
#   Print live cash on hand.
#
# Finance:
# - python -m flask finance report --year 2024 --month 1 [--location-id 1]
#   Print the monthly report (override values shown when present).

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import ReconciliationEvent
from .services import cash_service, migration_service, reporting_service
from .store import get_store
from .time_utils import parse_iso_datetime, to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
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


@click.group('ledger')
def ledger_group():
    """Reconciliation ledger maintenance."""


@ledger_group.command('migrate-categories')
@click.option('--dry-run', is_flag=True, help='Report what would change without writing')
@with_appcontext
def migrate_categories(dry_run):
    """Classify legacy expenses and fill typed commission breakdowns."""
    result = migration_service.migrate_expense_categories(get_store(), dry_run=dry_run)
    prefix = "DRY RUN " if dry_run else ""
    click.echo(f"{prefix}Scanned {result.scanned} expenses")
    for category, count in sorted(result.reclassified.items()):
        click.echo(f"  {category}: {count} reclassified")
    click.echo(f"  breakdowns filled: {result.breakdowns_filled}")


@ledger_group.command('events')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_events(limit):
    """Show the most recent reconciliation events."""
    events = (
        db.session.query(ReconciliationEvent)
        .order_by(ReconciliationEvent.occurred_at.desc(), ReconciliationEvent.id.desc())
        .limit(limit)
        .all()
    )
    if not events:
        click.echo("No events.")
        return
    for ev in events:
        click.echo(f"{to_utc_z(ev.occurred_at)}  {ev.event_type:<28} {ev.entity_type}:{ev.entity_id}  {ev.note or ''}")


@click.group('cash')
def cash_group():
    """Cash on hand."""


@cash_group.command('live')
@click.option('--location-id', type=int, help='Location ID (all locations if omitted)')
@click.option('--as-of', help='ISO-8601 point in time')
@with_appcontext
def live(location_id, as_of):
    """Print live cash on hand."""
    try:
        as_of_dt = parse_iso_datetime(as_of)
    except ValueError:
        raise click.BadParameter("must be an ISO-8601 datetime", param_hint="--as-of")
    result = cash_service.live_cash(get_store(), location_id, as_of=as_of_dt)
    click.echo(json.dumps(result.to_dict(), indent=2))


@click.group('finance')
def finance_group():
    """Monthly finance reports."""


@finance_group.command('report')
@click.option('--year', type=int, required=True)
@click.option('--month', type=int, required=True)
@click.option('--location-id', type=int, help='Location ID (all locations if omitted)')
@with_appcontext
def report(year, month, location_id):
    """Print the monthly report."""
    try:
        result = reporting_service.monthly_report(get_store(), month, year, location_id=location_id)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps(result.to_dict(), indent=2))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(cash_group)
    app.cli.add_command(finance_group)
