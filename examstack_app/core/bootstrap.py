"""Bootstrap helpers for configuring the Flask application."""

from __future__ import annotations

import logging
import os

from flask import Flask

from .extensions import csrf_protect, db, login_manager, scheduler
from .logging_config import setup_logging
from .module_registry import register_default_modules


def configure_logging(app: Flask) -> None:
    """Configure application logging if no handlers are present."""

    setup_logging(
        app,
        log_level=app.config.get("LOG_LEVEL", "INFO"),
        log_dir=app.config.get("LOG_DIR"),
        json_format=app.config.get("LOG_JSON", False),
    )

    if app.logger.handlers:
        return

    app.logger.setLevel(logging.DEBUG if app.debug else logging.INFO)
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    app.logger.addHandler(handler)
    app.logger.propagate = False
    app.logger.info("Flask app logger configured successfully.")


def register_extensions(app: Flask) -> None:
    """Initialize shared extensions with the Flask app instance."""

    from ..modules.attempts.services.answer_store import answer_store
    from ..modules.attempts.services.deadline_timer import deadline_timer
    from ..modules.identity import init_identity

    db.init_app(app)
    login_manager.init_app(app)
    init_identity(app, login_manager)
    csrf_protect.init_app(app)

    # Scheduler Configuration
    from apscheduler.schedulers import SchedulerAlreadyRunningError
    try:
        scheduler.init_app(app)
    except SchedulerAlreadyRunningError:
        app.logger.info("Scheduler already running, skipping reconfiguration.")

    if app.config.get("SCHEDULER_AUTOSTART", True) and (
        not app.debug or os.environ.get("WERKZEUG_RUN_MAIN") == "true"
    ):
        if not scheduler.running:
            scheduler.start()
            app.logger.info("Deadline scheduler started.")

    answer_store.init_app(app)
    deadline_timer.init_app(app, scheduler)


def register_blueprints(app: Flask) -> None:
    """Register all default blueprints with the app."""

    register_default_modules(app)


def initialize_database(app: Flask) -> None:
    """Create database tables."""

    from .. import models  # noqa: F401  (register tables on the metadata)

    db.create_all()
    app.logger.info("Database tables ready at %s", app.config.get("SQLALCHEMY_DATABASE_URI"))
