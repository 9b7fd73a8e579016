import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager

from ems_api.config import get_config
from ems_api.extensions import db, migrate, init_db
from ems_api.common.errors import register_error_handlers
from ems_api.models import load_all
from ems_api.services.cache import init_cache

jwt = JWTManager()


def _configure_logging(app):
    level = logging.DEBUG if app.debug else logging.INFO
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "")).upper(), level)
    logging.getLogger("ems_api").setLevel(level)
    app.logger.setLevel(level)


def create_app(config_object=None, report_cache=None):
    app = Flask(__name__)

    # defaults (EMS_ENV selects the class), then the caller's override
    app.config.from_object(get_config())
    if os.getenv("DATABASE_URL"):
        app.config["SQLALCHEMY_DATABASE_URI"] = os.environ["DATABASE_URL"]

    if config_object:
        try:
            app.config.from_object(config_object)
        except Exception as e:
            # Just log and continue with defaults
            app.logger.warning("Could not import config object %r: %s", config_object, e)

    _configure_logging(app)

    CORS(app, resources={r"/api/*": {"origins": "*"}})

    # Extensions
    init_db(app)
    register_error_handlers(app)
    jwt.init_app(app)
    migrate.init_app(app, db)
    init_cache(app, report_cache)

    # Ensure models are loaded so metadata is complete
    with app.app_context():
        load_all()

    # Blueprints
    from ems_api.blueprints.health import bp as health_bp
    from ems_api.blueprints.attendance import bp as attendance_bp
    from ems_api.blueprints.reports import bp as reports_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(attendance_bp)
    app.register_blueprint(reports_bp)

    return app
