# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/invenbill/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app wsgi <group> <command> [options]
#
# System bootstrap/repair:
# - flask --app wsgi system init-db
#   Create any missing tables (development; use `flask db upgrade` otherwise).
# - flask --app wsgi system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Profiles:
# - flask --app wsgi profiles list
#   List all profiles with role and active status.
# - flask --app wsgi profiles create --email admin@invenbill.local --role admin
#   Create a profile (the id is what callers send as X-User-Id).
#
# Document numbering:
# - flask --app wsgi sequences show
#   Show the counter and next number per document family.
#
# Customers:
# - flask --app wsgi customers recompute-totals
#   Recompute orders / spent / last order date for every customer.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import USER_ROLES
from .services import customer_service, document_service, profile_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
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

    click.echo("PASS Database reset complete. Run 'flask profiles create' to add an admin.")


@click.group('profiles')
def profiles_group():
    """Profile inspection and bootstrap commands."""


@profiles_group.command('list')
@with_appcontext
def list_profiles():
    """List all profiles with their roles."""
    profiles = profile_service.list_profiles()

    if not profiles:
        click.echo("No profiles found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<10} {'Active':<8}")
    click.echo("="*80)

    for profile in profiles:
        active_str = "Yes" if profile.is_active else "No"
        click.echo(f"{profile.id:<5} {profile.email:<35} {profile.role:<10} {active_str:<8}")


@profiles_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(USER_ROLES), default='user', show_default=True)
@click.option('--first-name', default=None)
@click.option('--last-name', default=None)
@with_appcontext
def create_profile(email, role, first_name, last_name):
    """Create a profile."""
    payload = {"email": email, "role": role}
    if first_name:
        payload["first_name"] = first_name
    if last_name:
        payload["last_name"] = last_name
    try:
        profile = profile_service.create_profile(payload)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created profile {profile.email} (ID: {profile.id}, role: {profile.role})")


@click.group('sequences')
def sequences_group():
    """Document numbering inspection."""


@sequences_group.command('show')
@with_appcontext
def show_sequences():
    """Show the counter and next number for each document family."""
    click.echo(f"{'Family':<16} {'Prefix':<8} {'Counter':<10} {'Next'}")
    for row in document_service.list_sequences():
        click.echo(f"{row['family']:<16} {row['prefix']:<8} {row['counter']:<10} {row['next_number']}")


@click.group('customers')
def customers_group():
    """Customer maintenance commands."""


@customers_group.command('recompute-totals')
@with_appcontext
def recompute_totals():
    """Recompute aggregates for every customer from their invoices."""
    count = customer_service.recompute_all_customer_totals()
    click.echo(f"PASS Recomputed totals for {count} customers")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(profiles_group)
    app.cli.add_command(sequences_group)
    app.cli.add_command(customers_group)
