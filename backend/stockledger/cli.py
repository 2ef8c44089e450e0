# Overview: Flask CLI command groups for bootstrap and inventory inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to stockledger (PowerShell: $env:FLASK_APP="stockledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (no-op for tables that already exist).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory:
# - python -m flask inventory reconcile [--product-id 1]
#   Re-derive summaries from the transaction log; exit code 1 on any mismatch.
# - python -m flask inventory low-stock
#   List products at or below their low-stock threshold.
# - python -m flask inventory record --product-id 1 --type in --quantity 10 --price 2.5
#   Record a stock movement through the ledger.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import inventory_service
from .services.ledger_service import LedgerError, reconcile_summary, record_transaction


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
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

    click.echo("PASS Database reset complete.")


@click.group('inventory')
def inventory_group():
    """Inventory inspection and ledger commands."""


@inventory_group.command('reconcile')
@click.option('--product-id', type=int, help='Only this product (default: all)')
@with_appcontext
def reconcile_cli(product_id):
    """
    Compare every stored summary with one re-derived from its transactions.
    """
    if product_id is not None:
        product_ids = [product_id]
    else:
        product_ids = [pid for (pid,) in db.session.query(Product.id).order_by(Product.id.asc())]

    mismatches = 0
    for pid in product_ids:
        try:
            report = reconcile_summary(pid)
        except LedgerError as e:
            mismatches += 1
            click.echo(f"FAIL product {pid}: {e}")
            continue

        if report["consistent"]:
            click.echo(f"PASS product {pid} ({report['transaction_count']} transactions)")
        else:
            mismatches += 1
            click.echo(f"FAIL product {pid}: stored={report['stored']} derived={report['derived']}")

    click.echo(f"\n{len(product_ids)} checked, {mismatches} mismatched.")
    if mismatches:
        raise SystemExit(1)


@inventory_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """List products at or below their low-stock threshold."""
    rows = inventory_service.list_low_stock()
    if not rows:
        click.echo("No products are low on stock.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<6} {'Code':<16} {'Name':<28} {'Stock':>8} {'Threshold':>10}")
    click.echo("=" * 70)
    for r in rows:
        click.echo(
            f"{r['id']:<6} {r['code']:<16} {r['name'][:28]:<28} "
            f"{r['ending_stock']:>8g} {r['low_stock_threshold']:>10g}"
        )
    click.echo("=" * 70 + "\n")


@inventory_group.command('record')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--type', 'transaction_type', type=click.Choice(['in', 'out']), required=True)
@click.option('--quantity', required=True, help='Quantity (> 0)')
@click.option('--price', 'price_per_unit', default=None, help='Price per unit (stock-in)')
@click.option('--department', default=None)
@click.option('--notes', default=None)
@with_appcontext
def record_cli(product_id, transaction_type, quantity, price_per_unit, department, notes):
    """Record a stock movement through the ledger."""
    try:
        result = record_transaction(
            product_id=product_id,
            transaction_type=transaction_type,
            quantity=quantity,
            price_per_unit=price_per_unit,
            department=department,
            notes=notes,
        )
    except LedgerError as e:
        raise click.ClickException(f"{e.kind}: {e}")

    click.echo(
        f"PASS transaction {result.transaction.id}: ending stock "
        f"{float(result.previous_ending_stock):g} -> {float(result.new_ending_stock):g}, "
        f"average price {float(result.average_price):g}"
    )
    if result.is_low_stock:
        click.echo("WARN product is low on stock")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
