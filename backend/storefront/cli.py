# Overview: Flask CLI command groups for bootstrap and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the default reward configuration and an admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --email admin@storefront.local --password "Password123!" --admin
#   Create a user (prompts if options are omitted).
#
# Rewards:
# - python -m flask rewards config --points-per-order 10 --points-per-rupee 1 --redemption-rate 10
#   Create or update the active reward configuration.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .errors import StorefrontError
from .services import auth_service, reward_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@storefront.local', help='Admin email')
@click.option('--admin-password', default='Password123!', help='Admin password')
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Initialize the storefront (idempotent).

    Creates:
    - All tables
    - Default reward configuration (if none is active)
    - Admin user (if missing)
    """
    click.echo("START Initializing storefront...")
    db.create_all()

    if reward_service.get_active_config() is None:
        config = reward_service.update_config({"name": "Default"})
        click.echo(f"PASS Created reward configuration: {config.name} (ID: {config.id})")
    else:
        click.echo("PASS Using existing reward configuration")

    if db.session.query(User).filter_by(email=admin_email.strip().lower()).first():
        click.echo(f"WARN  User '{admin_email}' already exists, skipping...")
    else:
        try:
            user = auth_service.create_user(admin_email, admin_password, name="Administrator", is_admin=True)
            click.echo(f"PASS Created admin user: {user.email} (ID: {user.id})")
        except StorefrontError as e:
            click.echo(f"FAIL Failed to create admin user: {e.message}")

    click.echo("DONE Storefront initialized.")


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


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', default=None, help='Display name')
@click.option('--phone', default=None, help='Phone number')
@click.option('--admin', 'is_admin', is_flag=True, help='Grant admin access')
@with_appcontext
def create_user_cli(email, password, name, phone, is_admin):
    """Create a new user. Password must be at least 8 characters."""
    try:
        user = auth_service.create_user(email, password, name=name, phone=phone, is_admin=is_admin)
        click.echo(f"PASS Created user: {user.email} (ID: {user.id}, public ID: {user.public_id})")
        if user.is_admin:
            click.echo("     Admin access granted")
    except StorefrontError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")


@click.group('rewards')
def rewards_group():
    """Reward configuration commands."""


@rewards_group.command('config')
@click.option('--points-per-order', type=int, default=None)
@click.option('--points-per-rupee', type=str, default=None)
@click.option('--min-order-for-reward-paise', type=int, default=None)
@click.option('--redemption-rate', type=int, default=None)
@click.option('--min-redemption-points', type=int, default=None)
@click.option('--eligibility-after-orders', type=int, default=None)
@click.option('--active/--inactive', default=None)
@with_appcontext
def rewards_config_cli(points_per_order, points_per_rupee, min_order_for_reward_paise,
                       redemption_rate, min_redemption_points, eligibility_after_orders, active):
    """Create or update the active reward configuration, then print it."""
    changes = {
        "points_per_order": points_per_order,
        "points_per_rupee": points_per_rupee,
        "min_order_for_reward_paise": min_order_for_reward_paise,
        "redemption_rate": redemption_rate,
        "min_redemption_points": min_redemption_points,
        "eligibility_after_orders": eligibility_after_orders,
        "is_active": active,
    }
    try:
        config = reward_service.update_config({k: v for k, v in changes.items() if v is not None})
    except StorefrontError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        return

    for key, value in config.to_dict().items():
        click.echo(f"{key:<28} {value}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(rewards_group)
