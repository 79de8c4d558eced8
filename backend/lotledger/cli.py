# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/lotledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management:
# - python -m flask tenants list
# - python -m flask tenants create --business-name "Acme" --email owner@acme.test --admin-name "Ada" --password "Password123!"
#   Create a tenant and its first admin user.
#
# User inspection/bootstrap:
# - python -m flask users list [--tenant-id 1]
# - python -m flask users create --tenant-id 1 --name "Sam" --email sam@acme.test --password "Password123!" --role staff
#
# Lot inspection:
# - python -m flask lots list --tenant-id 1 [--search LOT-00]
# - python -m flask lots next-number --tenant-id 1

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Tenant, User, Lot, ROLES
from .schemas import SignupInput, UserInput
from .services import auth_service, lot_service, reporting_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables ready.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask tenants create' to add a tenant.")


@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id.asc()).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Business':<30} {'Email':<30} {'Prefix':<8} {'Active':<8} {'Lots'}")
    click.echo("="*90)

    for tenant in tenants:
        lot_count = db.session.query(Lot).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"
        click.echo(
            f"{tenant.id:<5} {tenant.business_name:<30} {tenant.email:<30} "
            f"{tenant.lot_prefix:<8} {active_str:<8} {lot_count}"
        )

    click.echo("="*90 + "\n")


@tenants_group.command('create')
@click.option('--business-name', required=True, help='Business name')
@click.option('--email', required=True, help='Business (and admin login) email')
@click.option('--admin-name', required=True, help='Name of the first admin user')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@click.option('--lot-prefix', default=None, help='Lot number prefix (default LOT-)')
@with_appcontext
def create_tenant_cli(business_name, email, admin_name, password, lot_prefix):
    """Create a tenant with its first admin user."""
    try:
        data = SignupInput.from_payload({
            "business_name": business_name,
            "email": email,
            "admin_name": admin_name,
            "password": password,
            "lot_prefix": lot_prefix,
        })
        tenant, user = auth_service.signup(data)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created tenant: {tenant.business_name} (ID: {tenant.id}, prefix: {tenant.lot_prefix})")
    click.echo(f"     Admin user: {user.email} (ID: {user.id})")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='staff', help='Role')
@with_appcontext
def create_user_cli(tenant_id, name, email, password, role):
    """
    Create a user inside an existing tenant.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        data = UserInput.from_payload({"name": name, "email": email, "password": password, "role": role})
        user = auth_service.create_user(tenant_id, data)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}' in tenant {tenant_id}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--tenant-id', type=int, help='Filter by tenant ID')
@with_appcontext
def list_users(tenant_id):
    """List users and their roles."""
    query = db.session.query(User)

    if tenant_id:
        query = query.filter_by(tenant_id=tenant_id)

    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Tenant':<7} {'Name':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.tenant_id:<7} {user.name:<20} {user.email:<30} {active_str:<8} {user.role}")

    click.echo("="*90 + "\n")


@click.group('lots')
def lots_group():
    """Lot inspection commands."""


@lots_group.command('list')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--search', default=None, help='Lot number substring')
@click.option('--limit', type=int, default=20, help='Max rows')
@with_appcontext
def list_lots_cli(tenant_id, search, limit):
    """List a tenant's lots, newest first, with stock and money totals."""
    result = reporting_service.list_lots(tenant_id, search=search, page=1, per_page=limit)

    if not result["items"]:
        click.echo("No lots found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<6} {'Lot':<16} {'Remaining':<12} {'Invested':<12} {'Revenue':<12} {'Profit'}")
    click.echo("="*90)

    for lot in result["items"]:
        stock = f"{lot['remaining_quantity']}/{lot['total_quantity']}"
        click.echo(
            f"{lot['id']:<6} {lot['lot_number']:<16} {stock:<12} "
            f"{lot['total_investment_cents']:<12} {lot['total_revenue_cents']:<12} {lot['total_profit_cents']}"
        )

    click.echo("="*90)
    click.echo(f"{result['pagination']['total']} lot(s) total\n")


@lots_group.command('next-number')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@with_appcontext
def next_number_cli(tenant_id):
    """Print the suggested next lot number (nothing is reserved)."""
    try:
        click.echo(lot_service.generate_lot_number(tenant_id))
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
    app.cli.add_command(lots_group)
