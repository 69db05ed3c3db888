# Overview: Flask CLI command groups for bootstrap, seeding, shift inspection and parked-cart cleanup.

# backend/storepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent). Prefer "flask db upgrade" for real deployments.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Register bootstrap:
# - python -m flask registers create --name "Front Counter 1" --location "Main Floor"
# - python -m flask registers list [--all]
#
# Catalog seeding:
# - python -m flask catalog add-product --sku TSHIRT-BLK --name "Black Tee" --price-cents 49900 --stock 25
#
# Shift inspection:
# - python -m flask shifts list --status open --limit 20
#
# Parked carts:
# - python -m flask parked purge-expired

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import PosError
from .money import format_currency
from .models import CashRegister, Product, StaffShift
from .models.shifts import SHIFT_STATUS_OPEN, SHIFT_STATUS_CLOSED


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
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


@click.group('registers')
def registers_group():
    """Register inspection and bootstrap commands."""


@registers_group.command('create')
@click.option('--name', required=True, help='Register name')
@click.option('--location', help='Location in store')
@with_appcontext
def create_register_cli(name, location):
    """
    Create a new POS register.

    Example:
        flask registers create --name "Front Counter 1" --location "Main Floor"
    """
    from .services import shift_service

    try:
        register = shift_service.create_register(name=name, location=location)
    except PosError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created register: {register.name}")
    click.echo(f"   Location: {register.location or 'Not specified'}")
    click.echo(f"   Register ID: {register.id}")


@registers_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive registers too')
@with_appcontext
def list_registers_cli(show_all):
    """
    List registers with their current occupancy.

    Example:
        flask registers list
        flask registers list --all
    """
    query = db.session.query(CashRegister)
    if not show_all:
        query = query.filter_by(is_active=True)

    registers = query.order_by(CashRegister.name).all()

    if not registers:
        click.echo("No registers found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<25} {'Location':<20} {'Active':<8} {'Open shifts'}")
    click.echo("="*90)

    for register in registers:
        open_count = db.session.query(StaffShift).filter_by(
            register_id=register.id,
            status=SHIFT_STATUS_OPEN,
        ).count()

        active_str = "Yes" if register.is_active else "No"
        location = register.location or "-"

        click.echo(f"{register.id:<5} {register.name:<25} {location:<20} {active_str:<8} {open_count}")

    click.echo("="*90 + "\n")


@click.group('catalog')
def catalog_group():
    """Catalog seeding for local development."""


@catalog_group.command('add-product')
@click.option('--sku', required=True)
@click.option('--name', required=True)
@click.option('--price-cents', type=click.IntRange(min=0), required=True, help='Unit price in cents')
@click.option('--stock', type=click.IntRange(min=0), default=0, show_default=True, help='Initial on-hand quantity')
@with_appcontext
def add_product_cli(sku, name, price_cents, stock):
    """Insert a product row (seeding only; the POS core never writes catalog data)."""
    sku = sku.strip()
    if db.session.query(Product).filter_by(sku=sku).first():
        raise click.ClickException(f"Product with SKU '{sku}' already exists")

    product = Product(sku=sku, name=name.strip(), price_cents=price_cents, stock_quantity=stock, is_active=True)
    db.session.add(product)
    db.session.commit()

    click.echo(f"PASS Created product {product.id}: {product.sku} - {product.name} @ {format_currency(price_cents)} (stock {stock})")


@click.group('shifts')
def shifts_group():
    """Shift inspection commands."""


@shifts_group.command('list')
@click.option('--staff-id', type=int, help='Filter by staff ID')
@click.option('--status', type=click.Choice([SHIFT_STATUS_OPEN, SHIFT_STATUS_CLOSED]), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max shifts to show')
@with_appcontext
def list_shifts_cli(staff_id, status, limit):
    """
    List shifts, newest first.

    Example:
        flask shifts list
        flask shifts list --status open
        flask shifts list --staff-id 7 --limit 5
    """
    from .services import shift_service

    shifts = shift_service.list_shifts(staff_id=staff_id, status=status, limit=limit)

    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<5} {'Staff':<7} {'Register':<20} {'Status':<8} {'Clock in':<20} {'Expected':<14} {'Difference'}")
    click.echo("="*110)

    for shift in shifts:
        register_name = shift.register.name if shift.register else "Unknown"
        expected = format_currency(shift.expected_cash_cents) if shift.expected_cash_cents is not None else "-"
        difference = "-"
        if shift.cash_difference_cents is not None:
            sign = "+" if shift.cash_difference_cents > 0 else ""
            difference = f"{sign}{format_currency(shift.cash_difference_cents)}"

        click.echo(f"{shift.id:<5} {shift.staff_id:<7} {register_name:<20} {shift.status:<8} "
                  f"{str(shift.clock_in)[:19]:<20} {expected:<14} {difference}")

    click.echo("="*110 + "\n")


@click.group('parked')
def parked_group():
    """Parked cart housekeeping."""


@parked_group.command('purge-expired')
@with_appcontext
def purge_expired_cli():
    """Delete parked carts past their expiry."""
    from .services import parked_order_service

    deleted = parked_order_service.purge_expired()
    click.echo(f"PASS Purged {deleted} expired parked order(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(registers_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(parked_group)
