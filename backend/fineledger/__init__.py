from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(overrides: dict | None = None, gateway=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Outbound payment processor; the sandbox stands in until one is wired up
    from .services.gateway_service import SandboxGateway
    app.extensions["payment_gateway"] = gateway or SandboxGateway()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.identities import identities_bp
    from .routes.provisions import provisions_bp
    from .routes.fines import fines_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(identities_bp)
    app.register_blueprint(provisions_bp)
    app.register_blueprint(fines_bp)
    app.register_blueprint(reports_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
