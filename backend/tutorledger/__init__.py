# backend/tutorledger/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate
from .ledger import init_ledger


def create_app(config_overrides: dict | None = None, *, clock=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    level = app.config.get("LOG_LEVEL", "INFO")
    app.logger.setLevel(level)
    logging.getLogger("tutorledger").setLevel(level)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    init_ledger(app, clock=clock)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.students import students_bp
    from .routes.lessons import lessons_bp
    from .routes.schedules import schedules_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(students_bp)
    app.register_blueprint(lessons_bp)
    app.register_blueprint(schedules_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
