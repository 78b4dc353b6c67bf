# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/etrans/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <command> [options]
#
# Database bootstrap:
# - python -m flask db-init
#   Create all tables from the models (use `flask db upgrade` for migrations).
# - python -m flask seed-demo [--password "Password123!"]
#   Demo company with a director, accountant and agent, one client and one
#   shipment with duties applied and a provision.
#
# User inspection:
# - python -m flask users list [--company-id 1]
#   List users with role, verification and active status.
#
# Maintenance:
# - python -m flask maintenance cleanup-refresh-tokens --retention-days 30
#   Delete refresh tokens expired or revoked before the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Client, Company, ExpenseCategory, ExpenseType, Role, User
from .services import session_service, shipment_service, ledger_service
from .services.auth_service import PasswordValidationError, hash_password, unique_company_slug
from .services.session_service import Identity


@click.command('db-init')
@with_appcontext
def db_init():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@click.command('seed-demo')
@click.option('--password', default='Password123!', show_default=True, help='Password for every demo user')
@with_appcontext
def seed_demo(password):
    """
    Create a demo company with staff, a client and a shipment.

    Idempotent on the director email: a second run reports and exits.

    SECURITY: Change passwords immediately outside development!
    """
    director_email = "director@demo.e-trans.app"
    if db.session.query(User).filter_by(email=director_email).first() is not None:
        click.echo("SKIP Demo data already present.")
        return

    try:
        password_hash = hash_password(password)
    except PasswordValidationError as exc:
        raise click.ClickException(exc.message)

    company = Company(name="Demo Transit", slug=unique_company_slug("Demo Transit"), phone="+224 620 00 00 00")
    db.session.add(company)

    users = {}
    for role, email, name in [
        (Role.DIRECTOR, director_email, "Demo Director"),
        (Role.ACCOUNTANT, "accountant@demo.e-trans.app", "Demo Accountant"),
        (Role.AGENT, "agent@demo.e-trans.app", "Demo Agent"),
    ]:
        users[role] = User(
            company=company,
            email=email,
            name=name,
            password_hash=password_hash,
            role=role,
            email_verified=True,
            is_active=True,
        )
        db.session.add(users[role])

    client = Client(company=company, name="Guinea Import SARL", nif="GN-123456", city="Conakry")
    db.session.add(client)
    db.session.commit()
    click.echo(f"PASS Created company: {company.name} (ID: {company.id})")

    identity = Identity.from_user(users[Role.DIRECTOR])
    shipment = shipment_service.create_shipment(identity, {
        "client_id": client.id,
        "description": "Frozen chicken, 2 reefer containers",
        "hs_code": "0207",
        "cif_value": 18240,
        "cif_currency": "USD",
        "bl_number": "MEDU1234567",
        "vessel_name": "MSC AURORA",
        "containers": [
            {"number": "MSCU1234565", "type": "REEFER_40HR"},
            {"number": "MSCU7654321", "type": "REEFER_40HR"},
        ],
    })
    click.echo(f"PASS Created shipment: {shipment.tracking_number}")

    result = shipment_service.apply_duties(identity, shipment.id)
    click.echo(f"PASS Duties applied: {result['calculation']['total_duties']:,} GNF")

    ledger_service.create_expense(identity, {
        "shipment_id": shipment.id,
        "type": ExpenseType.PROVISION.value,
        "category": ExpenseCategory.AUTRE.value,
        "description": "Client advance",
        "amount": 120_000_000,
    })
    click.echo("PASS Recorded client provision")

    click.echo("\nDemo users (password: as given):")
    for role, user in users.items():
        click.echo(f"  {role.value:<12} {user.email}")


@click.group('users')
def users_group():
    """User inspection commands."""


@users_group.command('list')
@click.option('--company-id', type=int, help='Filter by company ID')
@with_appcontext
def list_users(company_id):
    """List all users with their role and status."""
    query = db.session.query(User)

    if company_id:
        query = query.filter_by(company_id=company_id)

    users = query.order_by(User.company_id, User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Co.':<5} {'Email':<36} {'Role':<12} {'Verified':<9} {'Active':<8} {'Locked'}")
    click.echo("="*100)

    for user in users:
        verified_str = "Yes" if user.email_verified else "No"
        active_str = "Yes" if user.is_active else "No"
        locked_str = "Yes" if user.locked_until is not None else "No"
        click.echo(
            f"{user.id:<5} {user.company_id:<5} {user.email:<36} {user.role.value:<12} "
            f"{verified_str:<9} {active_str:<8} {locked_str}"
        )

    click.echo("="*100 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Maintenance and retention commands."""


@maintenance_group.command('cleanup-refresh-tokens')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_refresh_tokens_cli(retention_days):
    """
    Cleanup expired and revoked refresh tokens.

    Default retention: 30 days.
    """
    deleted = session_service.cleanup_refresh_tokens(retention_days=retention_days)
    click.echo(f"Deleted {deleted} refresh tokens older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(db_init)
    app.cli.add_command(seed_demo)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
