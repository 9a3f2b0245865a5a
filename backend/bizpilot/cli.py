# Overview: Flask CLI command groups for bootstrap, inspection, and ledger maintenance.

# backend/bizpilot/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use "flask db upgrade" for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Businesses:
# - python -m flask businesses list
#   List businesses with their pricing settings.
# - python -m flask businesses create --name "Corner Bakery" --currency ZAR --hourly-rate 15 --default-margin 40
#   Create a business (omitted settings use the configured defaults).
#
# Inventory ledger:
# - python -m flask inventory verify-ledger [--business-id 1]
#   Report items whose stored quantity disagrees with their transaction history.
#   Exits with status 1 when drift is found.
# - python -m flask inventory verify-ledger --fix
#   Reset drifted quantities to the ledger replay.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Business, InventoryItem, Product
from .services import business_service, inventory_service
from .validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_business,
    validate_payload,
)


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Existing tables and data are left alone."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask businesses create' to add a business.")


# =============================================================================
# BUSINESS COMMANDS
# =============================================================================

@click.group('businesses')
def businesses_group():
    """Business management commands."""


@businesses_group.command('list')
@with_appcontext
def list_businesses():
    """List all businesses."""
    businesses = business_service.list_businesses()

    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Currency':<9} {'Rate/h':<10} {'Margin %':<9} {'Products':<9} {'Items'}")
    click.echo("="*80)

    for b in businesses:
        product_count = db.session.query(Product).filter_by(business_id=b.id).count()
        item_count = db.session.query(InventoryItem).filter_by(business_id=b.id).count()
        click.echo(
            f"{b.id:<5} {b.name:<30} {b.currency_code:<9} {str(b.hourly_rate):<10} "
            f"{str(b.default_margin):<9} {product_count:<9} {item_count}"
        )

    click.echo("="*80 + "\n")


@businesses_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--currency', 'currency_code', help='ISO currency code, e.g. ZAR')
@click.option('--hourly-rate', help='Labor cost per hour')
@click.option('--default-margin', help='Default target margin (%) for new products')
@with_appcontext
def create_business_cli(name, currency_code, hourly_rate, default_margin):
    """Create a new business."""
    payload = {"name": name}
    if currency_code is not None:
        payload["currency_code"] = currency_code
    if hourly_rate is not None:
        payload["hourly_rate"] = hourly_rate
    if default_margin is not None:
        payload["default_margin"] = default_margin

    policy = ModelValidationPolicy(
        writable_fields={"name", "hourly_rate", "default_margin", "currency_code"},
        required_on_create={"name"},
    )
    try:
        patch = validate_payload(model=Business, payload=payload, policy=policy, partial=False)
        enforce_rules_business(patch)
    except ValidationError as e:
        raise click.ClickException(str(e))

    business = business_service.create_business(patch=patch)
    click.echo(
        f"PASS Created business: {business.name} (ID: {business.id}, "
        f"Currency: {business.currency_code}, Rate: {business.hourly_rate}, Margin: {business.default_margin}%)"
    )


# =============================================================================
# INVENTORY LEDGER COMMANDS
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Inventory ledger maintenance commands."""


@inventory_group.command('verify-ledger')
@click.option('--business-id', type=int, help='Only check items of this business')
@click.option('--fix', is_flag=True, help='Reset drifted quantities to the ledger replay')
@with_appcontext
def verify_ledger_cli(business_id, fix):
    """
    Check current_quantity against the transaction history of every item.

    Without --fix, exits with status 1 when any item has drifted.
    """
    drift = inventory_service.verify_ledger(business_id=business_id)

    if not drift:
        click.echo("PASS Ledger consistent: no drift found.")
        return

    for d in drift:
        last = d.last_resulting if d.last_resulting is not None else "-"
        click.echo(
            f"DRIFT item {d.item_id} ({d.name}, business {d.business_id}): "
            f"stored={d.stored} replayed={d.replayed} last_resulting={last}"
        )

    if not fix:
        click.echo(f"FAIL {len(drift)} item(s) out of sync with their ledger. Re-run with --fix to repair.")
        raise SystemExit(1)

    for d in drift:
        old, new = inventory_service.repair_item_quantity(d.item_id)
        click.echo(f"FIXED item {d.item_id}: {old} -> {new}")

    click.echo(f"PASS Repaired {len(drift)} item(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(businesses_group)
    app.cli.add_command(inventory_group)
