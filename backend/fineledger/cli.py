# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/fineledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to fineledger (PowerShell: $env:FLASK_APP="fineledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create tables and a default admin (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Identity registry:
# - python -m flask identities create --role OFFICER --external-id BADGE-1042 --name "N. Perera" --contact perera@police.local
#   Register an identity (prompts for a password).
# - python -m flask identities list [--role DRIVER] [--all]
#   List identities.
# - python -m flask identities deactivate 7
#   Soft-deactivate an identity.
#
# Provision catalog:
# - python -m flask provisions upsert SPEEDING --description "Exceeding the speed limit" --amount 5000
#   Create or update a provision (amount in major units).
# - python -m flask provisions list [--all]
# - python -m flask provisions deactivate SPEEDING
#
# Fines:
# - python -m flask fines show TF-2026-000001
#   Print a fine with its payment and audit trail.

import click
from flask.cli import with_appcontext

from .errors import FineLedgerError
from .extensions import db
from .models import Identity, ROLE_ADMIN, VALID_ROLES
from .money import cents_to_str, decimal_to_cents
from .services import fine_service, identity_service, provision_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-id', 'external_id', default='ADMIN-001', show_default=True, help='Admin external id')
@click.option('--admin-contact', default='admin@fines.local', show_default=True, help='Admin contact')
@click.option('--password', default='Password123!', show_default=True, help='Admin password')
@with_appcontext
def init_system(external_id, admin_contact, password):
    """
    Create all tables and a default admin.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing fine ledger...")
    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(Identity).filter_by(role=ROLE_ADMIN).first()
    if existing:
        click.echo(f"PASS Using existing admin: {existing.external_id} (ID: {existing.id})")
        return

    try:
        admin = identity_service.register(ROLE_ADMIN, {
            "external_id": external_id,
            "name": "System Administrator",
            "contact": admin_contact,
            "password": password,
        })
    except FineLedgerError as e:
        click.echo(f"FAIL Could not create admin: {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created admin: {admin.external_id} (ID: {admin.id})")
    click.echo("\nSECURITY WARNING: change the default admin password in production!")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.confirm("This deletes ALL data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('identities')
def identities_group():
    """Identity registry commands."""


@identities_group.command('create')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), prompt=True, help='Role')
@click.option('--external-id', prompt=True, help='Badge or licence number')
@click.option('--name', prompt=True, help='Full name')
@click.option('--contact', prompt=True, help='Email or phone')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, default='',
              help='Password (leave blank for no login)')
@with_appcontext
def create_identity_cli(role, external_id, name, contact, password):
    try:
        identity = identity_service.register(role, {
            "external_id": external_id,
            "name": name,
            "contact": contact,
            "password": password or None,
        })
    except FineLedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created {identity.role} {identity.external_id} (ID: {identity.id})")


@identities_group.command('list')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), help='Filter by role')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive identities')
@with_appcontext
def list_identities_cli(role, include_inactive):
    identities = identity_service.list_identities(role=role, include_inactive=include_inactive)
    if not identities:
        click.echo("No identities found.")
        return
    click.echo(f"{'ID':<6} {'ROLE':<20} {'EXTERNAL ID':<16} {'NAME':<28} {'ACTIVE':<6}")
    click.echo("-" * 80)
    for i in identities:
        click.echo(f"{i.id:<6} {i.role:<20} {i.external_id:<16} {i.name[:28]:<28} {'yes' if i.is_active else 'no':<6}")


@identities_group.command('deactivate')
@click.argument('identity_id', type=int)
@with_appcontext
def deactivate_identity_cli(identity_id):
    try:
        identity = identity_service.deactivate(identity_id)
    except FineLedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS {identity.external_id} is inactive")


@click.group('provisions')
def provisions_group():
    """Provision catalog commands."""


@provisions_group.command('upsert')
@click.argument('code')
@click.option('--description', required=True, help='Violation description')
@click.option('--amount', required=True, help='Fine amount in major units, e.g. 5000 or 12.50')
@click.option('--admin-id', type=int, help='Acting admin id (defaults to the first active admin)')
@with_appcontext
def upsert_provision_cli(code, description, amount, admin_id):
    try:
        if admin_id is None:
            admin = db.session.query(Identity).filter_by(role=ROLE_ADMIN, is_active=True).first()
            if not admin:
                click.echo("FAIL No active admin; run 'flask system init' first")
                raise SystemExit(1)
            admin_id = admin.id
        provision = provision_service.upsert(code, description, decimal_to_cents(amount), admin_id)
    except FineLedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS {provision.code} = {cents_to_str(provision.amount_cents)}")


@provisions_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated provisions')
@with_appcontext
def list_provisions_cli(include_inactive):
    for p in provision_service.list_provisions(include_inactive=include_inactive):
        flag = "" if p.is_active else " (inactive)"
        click.echo(f"{p.code:<20} {cents_to_str(p.amount_cents):>12}  {p.description}{flag}")


@provisions_group.command('deactivate')
@click.argument('code')
@click.option('--admin-id', type=int, required=True, help='Acting admin id')
@with_appcontext
def deactivate_provision_cli(code, admin_id):
    try:
        provision = provision_service.deactivate(code, admin_id)
    except FineLedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS {provision.code} deactivated")


@click.group('fines')
def fines_group():
    """Fine inspection commands."""


@fines_group.command('show')
@click.argument('reference_number')
@with_appcontext
def show_fine_cli(reference_number):
    try:
        fine = fine_service.get_fine(reference_number)
    except FineLedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"{fine.reference_number}  {fine.status}  {cents_to_str(fine.amount_cents)}")
    click.echo(f"  provision: {fine.provision_code}  vehicle: {fine.vehicle_number}")
    click.echo(f"  officer: {fine.officer_id}  driver: {fine.driver_id}  location: {fine.location}")
    payment = fine_service.get_payment(reference_number)
    if payment:
        click.echo(f"  paid: {payment.method} {payment.confirmation_id} at {payment.paid_at}")
    for ev in fine_service.get_fine_events(reference_number):
        note = f" ({ev.reason})" if ev.reason else ""
        click.echo(f"  {ev.occurred_at}  {ev.event_type:<16} {ev.from_status or '-'} -> {ev.to_status}{note}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(identities_group)
    app.cli.add_command(provisions_group)
    app.cli.add_command(fines_group)
