# Overview: Flask CLI command groups for bootstrap, seeding and ledger inspection.

# backend/smartmart/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Seed data:
# - python -m flask seed init
#   Idempotent: default "Cash" customer and the standard units.
#
# Ledger inspection:
# - python -m flask ledger verify [--product-id 3]
#   Re-walk ledger balances and compare each product's qty snapshot.
#   Exits with status 1 when any product is inconsistent.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, Unit
from .services.catalog_service import ensure_default_customer
from .services.stock_ledger_service import verify_product_ledger

DEFAULT_UNITS = ("pcs", "kg", "g", "l", "ml", "box", "pack")


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the stock ledger.
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask seed init' to seed defaults.")


@click.group('seed')
def seed_group():
    """Seed default master data."""


@seed_group.command('init')
@with_appcontext
def seed_init():
    """Create the default walk-in customer and standard units (idempotent)."""
    customer = ensure_default_customer(db.session)
    click.echo(f"PASS Default customer: {customer.name} (ID: {customer.id})")

    created = 0
    for name in DEFAULT_UNITS:
        if db.session.query(Unit).filter_by(name=name).first():
            continue
        db.session.add(Unit(name=name))
        created += 1
    db.session.commit()
    click.echo(f"PASS Units created: {created} (existing units skipped)")


@click.group('ledger')
def ledger_group():
    """Stock ledger inspection commands."""


@ledger_group.command('verify')
@click.option('--product-id', type=int, default=None, help='Check a single product')
@with_appcontext
def verify_ledger(product_id):
    """Check every product's ledger prefix sums and qty snapshot."""
    if product_id is not None:
        product_ids = [product_id]
    else:
        product_ids = [row.id for row in db.session.query(Product.id).order_by(Product.id.asc()).all()]

    bad = 0
    for pid in product_ids:
        report = verify_product_ledger(db.session, pid)
        if report["consistent"]:
            click.echo(f"PASS {report['code']}: {report['entries']} entries, balance {report['last_balance']}")
            continue
        bad += 1
        click.echo(f"FAIL {report['code']}: snapshot {report['snapshot']}, last balance {report['last_balance']}")
        for problem in report["problems"]:
            click.echo(f"     - {problem}")

    click.echo(f"\nChecked {len(product_ids)} products, {bad} inconsistent")
    if bad:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(seed_group)
    app.cli.add_command(ledger_group)
