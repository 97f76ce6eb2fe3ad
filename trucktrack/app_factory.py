# trucktrack/app_factory.py
from flask import Flask, g, jsonify
from flask_login import LoginManager
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException
from trucktrack.init_db import db
from trucktrack.exceptions import TruckTrackError, Unauthenticated
from trucktrack.logging_config import setup_logging
from trucktrack.authentication.models import User
from trucktrack.authentication.views import create_admin_users, load_user_from_request
from trucktrack.store import export_snapshot_command

logger = setup_logging()

def create_app(config_class='trucktrack.config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_class)

    db.init_app(app)

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # Every API call authenticates with its own bearer token
    login_manager.request_loader(load_user_from_request)

    @login_manager.unauthorized_handler
    def unauthorized():
        error = g.get('auth_error') or Unauthenticated()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(TruckTrackError)
    def handle_domain_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'message': error.description, 'error': error.name}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.exception(f"Unhandled error: {error}")
        return jsonify({'message': 'An internal error occurred.'}), 500

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'OK'}), 200

    # Import and register blueprints
    from trucktrack.authentication.routes import auth_bp as auth_blueprint
    app.register_blueprint(auth_blueprint)

    from trucktrack.fleet.routes import fleet_bp as fleet_blueprint
    app.register_blueprint(fleet_blueprint)

    from trucktrack.expense_tracker.routes import expense_tracker_bp as expense_tracker_blueprint
    app.register_blueprint(expense_tracker_blueprint)

    app.cli.add_command(export_snapshot_command)

    with app.app_context():
        try:
            # Register every model before creating tables
            from trucktrack.fleet import models as fleet_models  # noqa: F401
            from trucktrack.expense_tracker import models as expense_models  # noqa: F401
            db.create_all()
            create_admin_users()
        except OperationalError as e:
            app.logger.error(f"OperationalError during database initialization: {e}")

    return app
