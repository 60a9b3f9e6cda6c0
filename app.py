"""
Kanban task ordering application factory.
Loads configuration from the environment, configures logging and binds the database.
"""

import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify

from models import db
from services.ordering_errors import TaskOrderingError

logger = logging.getLogger(__name__)


def _database_url() -> str:
    url = os.environ.get("DATABASE_URL", "sqlite:///kanban.db")
    # SQLAlchemy 1.4+ no longer accepts the legacy postgres:// scheme
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    try:
        pool_recycle = int(os.environ.get("DB_POOL_RECYCLE", "300"))
    except (ValueError, TypeError):
        logger.warning("Invalid DB_POOL_RECYCLE, using default: 300")
        pool_recycle = 300
    return {"pool_pre_ping": True, "pool_recycle": pool_recycle}


def configure_logging(level_name: str = None):
    level_name = (level_name or os.environ.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(config_overrides: dict = None) -> Flask:
    """Create and configure the Flask application."""
    load_dotenv()
    configure_logging()

    app = Flask(__name__)
    database_url = _database_url()
    app.config.update({
        "SECRET_KEY": os.environ.get("SESSION_SECRET", "dev-secret-change-me"),
        "SQLALCHEMY_DATABASE_URI": database_url,
        "SQLALCHEMY_ENGINE_OPTIONS": _engine_options(database_url),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
    })
    if config_overrides:
        app.config.update(config_overrides)

    db.init_app(app)

    @app.errorhandler(TaskOrderingError)
    def handle_ordering_error(error):
        return jsonify(error.to_dict()), error.http_status

    logger.info(f"Application created (database: {app.config['SQLALCHEMY_DATABASE_URI'].split('://')[0]})")
    return app
