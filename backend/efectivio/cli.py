# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/efectivio/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@efectivio.local]
#   Idempotent bootstrap: tables, default chart of accounts, default settings, admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role client]
# - python -m flask users create --username ana --email ana@example.com --password "Password123!" --role user
#
# Accounting:
# - python -m flask accounts seed
#   Create any missing default accounts (1000, 1100, 2000, 3000, 4000, 5000).
#
# Maintenance:
# - python -m flask maintenance purge-invitations
#   Delete pending client-portal invitations past their expiry.
# - python -m flask maintenance purge-sessions --older-than-days 30
#   Delete expired or revoked session tokens.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, ROLES
from .services.accounting_service import ensure_default_chart
from .services.auth_service import create_user, PasswordValidationError, UserConflictError, UserValidationError
from .services.portal_service import purge_expired_invitations
from .services.session_service import purge_expired_sessions
from .services.settings_service import seed_default_configs


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', show_default=True)
@click.option('--admin-email', default='admin@efectivio.local', show_default=True)
@click.option('--admin-password', default='Password123!', show_default=True)
@with_appcontext
def init_system(admin_username, admin_email, admin_password):
    """
    Initialize Efectivio: tables, chart of accounts, settings and an admin user.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing Efectivio...")

    db.create_all()
    click.echo("PASS Tables ready")

    accounts = ensure_default_chart()
    db.session.commit()
    click.echo(f"PASS Chart of accounts: {', '.join(sorted(accounts))}")

    created = seed_default_configs()
    click.echo(f"PASS Default settings created: {created}")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            create_user(username=admin_username, email=admin_email, password=admin_password, role=ROLE_ADMIN)
            click.echo(f"PASS Created admin user: {admin_username} ({admin_email})")
        except (PasswordValidationError, UserValidationError, UserConflictError) as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{admin_username}': {str(e)}")

    click.echo("\nDONE Efectivio initialized")
    click.echo("SECURITY Change the default admin password in production!")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping every table')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLES), default=None)
@with_appcontext
def list_users_cli(role):
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.id.asc()).all()

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<32} {'Role':<8} {'Active'}")
    click.echo("="*80)
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<32} {user.role:<8} {'yes' if user.is_active else 'no'}")
    click.echo("="*80 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--full-name', default=None)
@click.option('--role', type=click.Choice(ROLES), default='user', show_default=True)
@with_appcontext
def create_user_cli(username, email, password, full_name, role):
    try:
        user = create_user(username=username, email=email, password=password, full_name=full_name, role=role)
    except (PasswordValidationError, UserValidationError, UserConflictError) as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@click.group('accounts')
def accounts_group():
    """Chart of accounts commands."""


@accounts_group.command('seed')
@with_appcontext
def seed_accounts_cli():
    accounts = ensure_default_chart()
    db.session.commit()
    for code in sorted(accounts):
        click.echo(f"{code}  {accounts[code].name}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('purge-invitations')
@with_appcontext
def purge_invitations_cli():
    deleted = purge_expired_invitations()
    click.echo(f"Deleted {deleted} expired invitations.")


@maintenance_group.command('purge-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def purge_sessions_cli(older_than_days):
    """Delete session tokens that expired or were revoked before the window."""
    deleted = purge_expired_sessions(older_than=timedelta(days=older_than_days))
    click.echo(f"Deleted {deleted} session tokens older than {older_than_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(maintenance_group)
