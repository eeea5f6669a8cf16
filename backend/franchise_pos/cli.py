# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/franchise_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to franchise_pos (PowerShell: $env:FLASK_APP="franchise_pos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--owner-username owner --owner-password "Password123"]
#   Idempotent bootstrap: creates tables and a default owner account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Outlets:
# - python -m flask outlets create --name "Outlet Kemang" --address "..." --phone "..."
#
# Users:
# - python -m flask users list
# - python -m flask users create --name "Ani" --username ani --email ani@example.com --password "Password123" --role staff --outlet-id 1

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES, ROLE_OWNER
from .services.auth_service import create_user, PasswordValidationError
from .services import outlet_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--owner-username', default='owner', help='Username of the default owner')
@click.option('--owner-email', default='owner@franchise.local', help='Email of the default owner')
@click.option('--owner-password', default='Password123', help='Password of the default owner')
@with_appcontext
def init_system(owner_username, owner_email, owner_password):
    """
    Create all tables and a default owner account.

    Safe to run repeatedly; an existing owner is left untouched.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing franchise POS...")

    db.create_all()
    click.echo("PASS Tables created")

    owner = db.session.query(User).filter_by(role=ROLE_OWNER).first()
    if owner:
        click.echo(f"PASS Using existing owner: {owner.username} (ID: {owner.id})")
        return

    try:
        owner = create_user(
            name="Owner",
            username=owner_username,
            email=owner_email,
            password=owner_password,
            role=ROLE_OWNER,
        )
    except (ValueError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created owner: {owner.username} (ID: {owner.id})")


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


@click.group('outlets')
def outlets_group():
    """Outlet management commands."""


@outlets_group.command('create')
@click.option('--name', prompt=True, help='Outlet name')
@click.option('--address', default=None, help='Street address')
@click.option('--phone', default=None, help='Phone number')
@with_appcontext
def create_outlet_cli(name, address, phone):
    """Create a new outlet."""
    try:
        outlet = outlet_service.create_outlet({"name": name, "address": address, "phone": phone})
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created outlet: {outlet.name} (ID: {outlet.id})")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--outlet-id', type=int, default=None, help='Outlet ID (required for admin and staff)')
@with_appcontext
def create_user_cli(name, username, email, password, role, outlet_id):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    try:
        user = create_user(
            name=name,
            username=username,
            email=email,
            password=password,
            role=role,
            outlet_id=outlet_id,
        )
    except (ValueError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, Role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role and outlet."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<8} {'Outlet':<7} {'Active'}")
    click.echo("="*90)

    for user in users:
        outlet_str = str(user.outlet_id) if user.outlet_id is not None else "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<8} {outlet_str:<7} {active_str}")

    click.echo("="*90 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(outlets_group)
    app.cli.add_command(users_group)
