# Overview: Flask CLI command groups for bootstrap, locations, and billing.

# backend/warehouse_tracker/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to warehouse_tracker (PowerShell: $env:FLASK_APP="warehouse_tracker").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Locations:
# - python -m flask locations seed [--aisles ABC --racks 4 --levels 3]
#   Create the storage grid (idempotent).
# - python -m flask locations list [--occupied]
#
# Billing:
# - python -m flask billing set-rate "Acme" --rate 12.50 --flat 25 --per-pallet 3
# - python -m flask billing preview "Acme" --start 2026-01-05 --end 2026-01-11
# - python -m flask billing generate "Acme" --week-start 2026-01-05

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import billing_service, location_service
from .validation import LedgerError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the activity log billing relies on.
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask locations seed' next.")


@click.group('locations')
def locations_group():
    """Storage grid commands."""


@locations_group.command('seed')
@click.option('--aisles', default=None, help='Aisle letters, e.g. ABCDEFGHIJ')
@click.option('--racks', type=int, default=None)
@click.option('--levels', type=int, default=None)
@with_appcontext
def seed_locations_cli(aisles, racks, levels):
    created = location_service.seed_locations(aisles=aisles, racks=racks, levels=levels)
    total = location_service.count_locations()
    click.echo(f"PASS Created {created} locations ({total} total).")


@locations_group.command('list')
@click.option('--occupied', is_flag=True, help='Only occupied locations')
@with_appcontext
def list_locations_cli(occupied):
    rows = location_service.list_locations(occupied=True if occupied else None)
    if not rows:
        click.echo("No locations found.")
        return
    for row in rows:
        flag = "OCCUPIED" if row.is_occupied else "free"
        click.echo(f"{row.id:<10} {flag}")


@click.group('billing')
def billing_group():
    """Customer rates and invoices."""


@billing_group.command('set-rate')
@click.argument('customer')
@click.option('--rate', 'rate', required=True, help='Rate per pallet-week')
@click.option('--flat', default=None, help='Flat handling fee per invoice')
@click.option('--per-pallet', 'per_pallet', default=None, help='Handling fee per received pallet')
@click.option('--currency', default=None)
@with_appcontext
def set_rate_cli(customer, rate, flat, per_pallet, currency):
    try:
        row = billing_service.upsert_customer_rate(
            customer,
            rate_per_pallet_week=rate,
            handling_fee_flat=flat,
            handling_fee_per_pallet=per_pallet,
            currency=currency,
        )
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS {row.customer_name}: {row.rate_per_pallet_week} {row.currency}/pallet-week")


@billing_group.command('preview')
@click.argument('customer')
@click.option('--start', 'start_date', required=True)
@click.option('--end', 'end_date', required=True)
@with_appcontext
def preview_invoice_cli(customer, start_date, end_date):
    try:
        preview = billing_service.preview_invoice(customer, start_date, end_date)
    except LedgerError as e:
        raise click.ClickException(str(e))

    click.echo(f"Customer:        {preview['customer']}")
    click.echo(f"Period:          {preview['start_date']} .. {preview['end_date']} ({preview['days_in_range']} days)")
    click.echo(f"Pallet-days:     {preview['pallet_days']}")
    click.echo(f"Pallet-weeks:    {preview['pallet_weeks']:.4f}")
    click.echo(f"Handled pallets: {preview['handled_pallets']}")
    click.echo(f"Storage:         {preview['base_total']} {preview['currency']}")
    click.echo(f"Handling:        {preview['handling_total']} {preview['currency']}")
    click.echo(f"Total:           {preview['total']} {preview['currency']}")


@billing_group.command('generate')
@click.argument('customer')
@click.option('--week-start', default=None, help='Bill the 7 days starting here')
@click.option('--start', 'start_date', default=None)
@click.option('--end', 'end_date', default=None)
@with_appcontext
def generate_invoice_cli(customer, week_start, start_date, end_date):
    try:
        invoice = billing_service.generate_invoice(
            customer,
            start_date=start_date,
            end_date=end_date,
            week_start=week_start,
        )
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Invoice {invoice.id} ({invoice.status}) total {invoice.total} {invoice.currency}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(locations_group)
    app.cli.add_command(billing_group)
