import logging

logger = logging.getLogger(__name__)


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    from .milk_pool import milk_pool_bp

    app.register_blueprint(milk_pool_bp)
    logger.debug("Registered blueprints: %s", ", ".join(sorted(app.blueprints)))
