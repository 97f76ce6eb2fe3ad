# trucktrack/store.py
import json
import threading
from datetime import datetime
import click
from flask import current_app
from flask.cli import with_appcontext
from trucktrack.init_db import db
from trucktrack.exceptions import NotFoundError
from trucktrack.logging_config import setup_logging

logger = setup_logging()

# Serialises read-check-write sequences on trip bookings within the process
booking_lock = threading.RLock()


def get_or_404(model, record_id, label=None):
    record = db.session.get(model, record_id)
    if record is None:
        raise NotFoundError(f'{label or model.__name__} not found.')
    return record


def snapshot():
    """Return every entity collection as one JSON-ready document."""
    from trucktrack.authentication.models import User
    from trucktrack.expense_tracker.models import Expense
    from trucktrack.fleet.models import Customer, Driver, Proof, Trip, Vehicle

    collections = {
        'users': User,
        'drivers': Driver,
        'vehicles': Vehicle,
        'customers': Customer,
        'trips': Trip,
        'expenses': Expense,
        'proofs': Proof,
    }
    document = {'exportedAt': datetime.utcnow().isoformat()}
    for name, model in collections.items():
        document[name] = [record.to_dict() for record in model.query.order_by(model.id).all()]
    return document


@click.command('export-snapshot')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_snapshot_command(path):
    """Write a JSON snapshot of all collections to PATH."""
    document = snapshot()
    with open(path, 'w') as f:
        json.dump(document, f, indent=2)
    logger.info(f"Snapshot of {current_app.config['SQLALCHEMY_DATABASE_URI']} written to {path}.")
    click.echo(f'Snapshot written to {path}')
