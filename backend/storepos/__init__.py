# backend/storepos/__init__.py
import atexit

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(overrides: dict | None = None) -> Flask:
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

    # Audit/notification hand-off runs after commit, outside the request's transaction
    from .services.side_effects import SideEffectDispatcher
    dispatcher = SideEffectDispatcher(app)
    # Drain queued audit/notification work before the interpreter exits
    atexit.register(dispatcher.shutdown)

    # Register blueprints
    from .routes.pos import pos_bp
    from .routes.refunds import refunds_bp
    from .routes.shifts import shifts_bp

    app.register_blueprint(pos_bp)
    app.register_blueprint(refunds_bp)
    app.register_blueprint(shifts_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
