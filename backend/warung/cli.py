# Overview: Flask CLI command group for bootstrap, demo data and ledger maintenance.

# backend/warung/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to warung (PowerShell: $env:FLASK_APP="warung").
# - Use: python -m flask warung <command> [options]
#
# - python -m flask warung init-db
#   Create the stored_records table in the local database (idempotent).
# - python -m flask warung seed-demo --warung-id W1
#   Wipe the warung and load the demo products and customers.
# - python -m flask warung wipe --warung-id W1 --yes
#   Delete every record of one warung (other warungs are untouched).
# - python -m flask warung reconcile --warung-id W1 [--resume] [--repair]
#   Replay the fact log and print drift; --resume completes half-applied
#   commits first, --repair overwrites remaining drift with replayed values.
# - python -m flask warung sync --warung-id W1 [--pull]
#   Push queued remote replica writes; --pull then copies the remote snapshot.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import maintenance_service, reconciliation_service
from .storage import ENTITY_TYPES, ReplicatedStore, open_store


@click.group('warung')
def warung_group():
    """Warung ledger bootstrap and maintenance commands."""


@warung_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables for the local cache."""
    db.create_all()
    click.echo("PASS Tables created.")


@warung_group.command('seed-demo')
@click.option('--warung-id', required=True, help='Tenant to seed')
@with_appcontext
def seed_demo(warung_id):
    """Replace a warung's data with the demo data set."""
    store = open_store(current_app, warung_id)
    counts = maintenance_service.inject_demo_data(store)
    click.echo(f"PASS Demo data loaded for {warung_id}: "
               f"{counts['products']} products, {counts['customers']} customers")


@warung_group.command('wipe')
@click.option('--warung-id', required=True, help='Tenant to wipe')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def wipe(warung_id, yes):
    """DANGER: delete every record of one warung."""
    if not yes:
        click.confirm(f"WARN This will DELETE ALL DATA of warung {warung_id}. Are you sure?", abort=True)
    deleted = maintenance_service.wipe_all_data(open_store(current_app, warung_id))
    click.echo(f"PASS Deleted {deleted} records.")


@warung_group.command('reconcile')
@click.option('--warung-id', required=True, help='Tenant to check')
@click.option('--resume', is_flag=True, help='Re-drive recorded facts before checking')
@click.option('--repair', is_flag=True, help='Overwrite drifting balances with replayed values')
@with_appcontext
def reconcile(warung_id, resume, repair):
    """Compare live stock, debt and points against the fact log."""
    store = open_store(current_app, warung_id)
    if resume:
        resumed = reconciliation_service.resume_pending(store)
        click.echo(f"Resumed: {resumed}")

    report = reconciliation_service.reconcile(store, repair=repair)
    click.echo(f"Checked {report.checked_products} products, {report.checked_customers} customers")
    if report.is_clean:
        click.echo("PASS No drift.")
        return

    for drift in report.drifts:
        d = drift.to_dict()
        click.echo(f"  DRIFT {d['entity_type']} {d['id']} {d['field']}: "
                   f"expected {d['expected']} actual {d['actual']}")
    if repair:
        click.echo(f"PASS Repaired {report.repaired} balance(s).")
    else:
        click.echo("WARN Drift found. Re-run with --resume and/or --repair.")


@warung_group.command('sync')
@click.option('--warung-id', required=True, help='Tenant to sync')
@click.option('--pull', is_flag=True, help='Copy the remote snapshot after pushing')
@with_appcontext
def sync(warung_id, pull):
    """Push queued replica writes to the remote database."""
    store = open_store(current_app, warung_id)
    if not isinstance(store, ReplicatedStore):
        click.echo("WARN REMOTE_DATABASE_URL is not set; nothing to sync.")
        return
    remaining = store.flush_pending()
    if remaining:
        click.echo(f"WARN {remaining} write(s) still queued; remote unreachable.")
        return
    if pull:
        store.pull(ENTITY_TYPES)
    click.echo("PASS In sync with remote replica.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(warung_group)
