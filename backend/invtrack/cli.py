# Overview: Flask CLI command groups for bootstrap, stock corrections and ledger checks.

# backend/invtrack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory:
# - python -m flask inventory seed-opening --product-id 1 --quantity 100 --actor admin
#   Record a product's one-time opening stock.
# - python -m flask inventory set-quantity --product-id 1 --quantity 42 --actor admin --note "Recount"
#   Manual stock edit (decrease -> consumption, increase -> adjustment).
# - python -m flask inventory verify [--product-id 1]
#   Check ledger arithmetic, continuity and snapshot freshness. Exits 1 on violations.
#
# Reports:
# - python -m flask reports snapshots --product-id 1 [--from 2026-01-01] [--to 2026-01-07]
#   Print daily snapshots for a product.


import click
from flask.cli import with_appcontext

from .extensions import db
from .services import inventory_service, reporting_service
from .validation import ValidationError, NotFoundError, ConflictError, ConcurrencyConflict


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (idempotent)."""
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


@click.group('inventory')
def inventory_group():
    """Stock corrections and ledger checks."""


@inventory_group.command('seed-opening')
@click.option('--product-id', type=int, required=True)
@click.option('--quantity', type=str, required=True, help='Opening quantity (up to 3 decimals)')
@click.option('--actor', required=True, help='User id recorded as created_by')
@click.option('--note', default=None)
@with_appcontext
def seed_opening_cli(product_id, quantity, actor, note):
    """Record a product's one-time opening stock."""
    try:
        result = inventory_service.seed_opening_stock(product_id, quantity, actor=actor, note=note)
    except (ValidationError, NotFoundError, ConflictError, ConcurrencyConflict) as e:
        raise click.ClickException(str(e))

    summary = inventory_service.get_inventory_summary(product_id)
    if not result.changed:
        click.echo(f"SKIP {summary['sku']} already at {result.previous_quantity}; nothing recorded")
        return
    click.echo(
        f"PASS Opening stock for {summary['sku']}: "
        f"{result.previous_quantity} -> {result.entry.quantity_after}"
    )


@inventory_group.command('set-quantity')
@click.option('--product-id', type=int, required=True)
@click.option('--quantity', type=str, required=True, help='New on-hand quantity')
@click.option('--actor', required=True, help='User id recorded as created_by')
@click.option('--note', default=None)
@with_appcontext
def set_quantity_cli(product_id, quantity, actor, note):
    """Manual stock edit; the classifier picks consumption or adjustment."""
    try:
        result = inventory_service.record_manual_edit(product_id, quantity, actor=actor, note=note)
    except (ValidationError, NotFoundError, ConcurrencyConflict) as e:
        raise click.ClickException(str(e))

    summary = inventory_service.get_inventory_summary(product_id)
    if not result.changed:
        click.echo(f"SKIP {summary['sku']} already at {result.previous_quantity}; nothing recorded")
        return
    click.echo(f"PASS {summary['sku']}: {result.previous_quantity} -> {result.entry.quantity_after}")


@inventory_group.command('verify')
@click.option('--product-id', type=int, default=None, help='Limit the check to one product')
@with_appcontext
def verify_cli(product_id):
    """Check ledger invariants against stored data."""
    try:
        violations = reporting_service.verify_ledger(product_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    if not violations:
        click.echo("PASS Ledger consistent.")
        return

    click.echo(f"FAIL {len(violations)} violation(s):")
    click.echo(f"{'Product':<10} {'History':<10} {'Check':<20} Detail")
    click.echo("-" * 80)
    for v in violations:
        history_id = v["history_id"] if v["history_id"] is not None else "-"
        click.echo(f"{v['product_id']:<10} {history_id!s:<10} {v['check']:<20} {v['detail']}")
    raise SystemExit(1)


@click.group('reports')
def reports_group():
    """Read-only inventory reports."""


@reports_group.command('snapshots')
@click.option('--product-id', type=int, required=True)
@click.option('--from', 'start', default=None, help='YYYY-MM-DD (default: 7 days before --to)')
@click.option('--to', 'end', default=None, help='YYYY-MM-DD (default: today)')
@with_appcontext
def snapshots_cli(product_id, start, end):
    """Print daily snapshots for a product, newest first."""
    try:
        rows = reporting_service.list_snapshots(product_id, start, end)
    except (NotFoundError, reporting_service.ReportError) as e:
        raise click.ClickException(str(e))

    if not rows:
        click.echo("No snapshots in range.")
        return

    click.echo(
        f"{'Date':<12} {'Opening':>12} {'Purchases':>12} {'Sales':>12} "
        f"{'Adjust':>12} {'Closing':>12} {'Max':>12}"
    )
    click.echo("-" * 90)
    for s in rows:
        click.echo(
            f"{s.snapshot_date.isoformat():<12} {s.opening_stock!s:>12} {s.purchases!s:>12} "
            f"{s.sales!s:>12} {s.adjustments!s:>12} {s.closing_stock!s:>12} {s.max_stock!s:>12}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(reports_group)
