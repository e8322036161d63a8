# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/bazpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to bazpos (PowerShell: $env:FLASK_APP="bazpos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--password "secret"]
#   Idempotent bootstrap: creates tables and the app_config/main document.
# - python -m flask system set-password
#   Set the shared admin password (prompts if omitted).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stock inspection:
# - python -m flask stock show <product_id>
#   Print per-variant quantities of one product.
#
# Shift inspection:
# - python -m flask shifts list --limit 10
#   List recently closed shifts with their reconciliation.
# - python -m flask shifts preview
#   Show what the open shift would close with (writes nothing).

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import auth_service, ledger_store, shift_service, stock_service
from .validation import NotFoundError, ValidationError


DEFAULT_CONFIG = {
    "categories": [],
    "salaries": {},
    "salariesPaidStatus": {},
    "expenses": {"rent": {"amount": 0, "paidStatus": {}}},
}


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--password', default=None, help='Admin password to set when none exists yet')
@with_appcontext
def init_system(password):
    """
    Initialize the store: tables plus the shared config document.

    Existing config keys are never overwritten, so running this twice is safe.
    """
    click.echo("START Initializing Baz POS...")

    db.create_all()
    click.echo("PASS Tables ready")

    config = ledger_store.get_config()
    missing = {key: value for key, value in DEFAULT_CONFIG.items() if key not in config}

    def _op():
        return ledger_store.merge_config(missing)

    ledger_store.transaction(_op)
    if missing:
        click.echo(f"PASS Added config keys: {', '.join(sorted(missing))}")
    else:
        click.echo("PASS Config already complete")

    if password:
        if config.get(auth_service.HASH_FIELD) or config.get(auth_service.LEGACY_FIELD):
            click.echo("SKIP Admin password already set (use 'system set-password' to change it)")
        else:
            try:
                auth_service.set_admin_password(password)
            except ValidationError as e:
                raise click.ClickException(str(e))
            click.echo("PASS Admin password set")

    click.echo("DONE System initialized")


@system_group.command('set-password')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def set_password(password):
    """Set the shared admin password."""
    try:
        auth_service.set_admin_password(password)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo("PASS Admin password updated")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('show')
@click.argument('product_id')
@with_appcontext
def show_stock(product_id):
    """Print per-variant quantities of one product."""
    try:
        stock = stock_service.get_product_stock(product_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    click.echo(f"{stock['productId']}  {stock['name'] or ''}")
    if not stock["variants"]:
        click.echo("  (no variants)")
    for variant in stock["variants"]:
        click.echo(f"  {variant['color']:<16} {variant['size']:<8} {variant['quantity']:>6}")
    click.echo(f"  {'TOTAL':<25} {stock['totalQuantity']:>6}")


@click.group('shifts')
def shifts_group():
    """Shift inspection commands."""


@shifts_group.command('list')
@click.option('--limit', default=10, show_default=True, type=click.IntRange(min=1))
@with_appcontext
def list_shifts(limit):
    """List recently closed shifts."""
    shifts = shift_service.list_shifts(limit=limit)
    if not shifts:
        click.echo("No shifts closed yet")
        return

    for shift in shifts:
        summary = shift.get("summary") or {}
        reconciliation = shift.get("reconciliation") or {}
        click.echo(
            f"{shift['id']}  {shift.get('startedAt')} -> {shift.get('endedAt')}  "
            f"by {shift.get('endedBy')}  expected {summary.get('expectedInDrawer', 0):.2f}  "
            f"counted {reconciliation.get('actual', 0):.2f}  {reconciliation.get('type')}"
        )


@shifts_group.command('preview')
@with_appcontext
def preview_shift():
    """Show what the open shift would close with."""
    preview = shift_service.preview_shift()
    summary = preview["summary"]
    click.echo(f"Window: {preview['startedAt']} -> {preview['endedAt']}")
    click.echo(f"  Sales:     {len(preview['sales']):>4}  {summary['totalSales']:>12.2f}")
    click.echo(f"  Returns:   {len(preview['returns']):>4}  {summary['totalReturnsValue']:>12.2f}")
    click.echo(f"  Expenses:  {len(preview['expenses']):>4}  {summary['totalDailyExpenses']:>12.2f}")
    click.echo(f"  Expected in drawer:   {summary['expectedInDrawer']:>12.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(shifts_group)
