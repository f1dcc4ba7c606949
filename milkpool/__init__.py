"""Milk pool ledger service.

``create_app`` wires the blended-ledger API, its storage and the operator CLI
onto a single Flask application.
"""
import logging
import os
from typing import Any

from flask import Flask, jsonify
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import StaticPool

from .blueprints import register_blueprints
from .config import ENV_DIAGNOSTICS, EnvReader
from .extensions import cache, db, limiter, migrate
from .logging_config import configure_logging

logger = logging.getLogger(__name__)

# server pool sizing arguments that SQLite's pools reject
_SQLITE_UNSUPPORTED_OPTIONS = ("pool_size", "max_overflow", "pool_timeout")


def create_app(config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    os.makedirs(app.instance_path, exist_ok=True)

    _load_config(app, config)
    _adapt_engine_options(app)

    db.init_app(app)
    migrate.init_app(app, db)
    _configure_cache(app)
    _configure_rate_limiter(app)

    register_blueprints(app)
    from . import models  # noqa: F401  # register tables with the metadata Alembic reads

    configure_logging(app)
    _install_error_handlers(app)

    from .management import register_commands

    register_commands(app)
    _maybe_create_tables(app)
    return app


def _load_config(app: Flask, overrides: dict[str, Any] | None) -> None:
    app.config.from_object("milkpool.config.Config")
    if overrides:
        app.config.update(overrides)
        if "DATABASE_URL" in overrides:
            app.config["SQLALCHEMY_DATABASE_URI"] = overrides["DATABASE_URL"]

    app.config["ENV_DIAGNOSTICS"] = ENV_DIAGNOSTICS
    for warning in ENV_DIAGNOSTICS["warnings"]:
        logger.warning("Environment configuration warning: %s", warning)


def _adapt_engine_options(app: Flask) -> None:
    uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if not uri.startswith("sqlite"):
        return

    options = {
        key: value
        for key, value in (app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {}).items()
        if key not in _SQLITE_UNSUPPORTED_OPTIONS
    }
    if uri == "sqlite:///:memory:":
        # one shared connection so every session sees the same in-memory ledger
        options["poolclass"] = StaticPool
        options["connect_args"] = {"check_same_thread": False}
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = options


def _configure_cache(app: Flask) -> None:
    cache_type = app.config.get("CACHE_TYPE") or "SimpleCache"
    redis_url = app.config.get("CACHE_REDIS_URL")
    cache_config = {"CACHE_DEFAULT_TIMEOUT": app.config.get("CACHE_DEFAULT_TIMEOUT", 300)}

    if redis_url and cache_type != "SimpleCache":
        cache_config.update(CACHE_TYPE="RedisCache", CACHE_REDIS_URL=redis_url)
    else:
        cache_config["CACHE_TYPE"] = cache_type
    logger.info("Pool book cache backend: %s", cache_config["CACHE_TYPE"])

    if app.config.get("ENV") == "production" and cache_config["CACHE_TYPE"] != "RedisCache":
        raise RuntimeError("Production requires a Redis-backed cache; set CACHE_REDIS_URL.")
    cache.init_app(app, config=cache_config)


def _configure_rate_limiter(app: Flask) -> None:
    storage_uri = app.config.get("RATELIMIT_STORAGE_URI") or "memory://"
    if app.config.get("ENV") == "production" and storage_uri.startswith("memory://"):
        raise RuntimeError("Production requires Redis-backed rate limit storage; set RATELIMIT_STORAGE_URI.")
    app.config["RATELIMIT_STORAGE_URI"] = storage_uri
    limiter.init_app(app)


def _maybe_create_tables(app: Flask) -> None:
    """Create tables directly when SQLALCHEMY_CREATE_ALL is set (local use only)."""
    if not EnvReader().bool("SQLALCHEMY_CREATE_ALL", False):
        logger.debug("Skipping db.create_all(); Alembic migrations own the schema")
        return
    with app.app_context():
        db.create_all()
    logger.info("Milk pool tables created via db.create_all()")


def _install_error_handlers(app: Flask) -> None:
    @app.teardown_request
    def _rollback_failed_request(exc):
        if exc is not None:
            db.session.rollback()

    # OperationalError is a DBAPIError subclass
    @app.errorhandler(DBAPIError)
    def _database_unavailable(err):
        db.session.rollback()
        logger.error("Database error while serving %s: %s", app.name, err)
        return jsonify({
            'success': False,
            'error': 'Service temporarily unavailable. Please try again shortly.',
            'error_kind': 'error',
        }), 503

    @app.errorhandler(429)
    def _rate_limited(err):
        return jsonify({
            'success': False,
            'error': f"Too many requests: {err.description}",
            'error_kind': 'rate_limited',
        }), 429
