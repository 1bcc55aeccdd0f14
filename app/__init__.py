"""Flask application package."""

from __future__ import annotations

from flask import Flask

try:
    from dotenv import load_dotenv
except ImportError:  # pragma: no cover
    load_dotenv = None  # type: ignore[assignment]


def create_app(config_object: object | None = None) -> Flask:
    """Application factory.

    Args:
        config_object: Config class to use instead of the one picked by APP_ENV.

    Returns:
        Configured Flask application.
    """
    if load_dotenv is not None and config_object is None:
        load_dotenv()

    from app.config import get_config
    from app.db import init_db
    from app.error_handlers import register_error_handlers
    from app.logging_config import configure_logging
    from app.routes.health import health_bp
    from app.routes.lottery import admin_lottery_bp, lottery_bp
    from app.routes.posts import posts_bp

    app = Flask(__name__)
    app.config.from_object(config_object or get_config())

    configure_logging(app)
    init_db(app)
    register_error_handlers(app)

    app.register_blueprint(health_bp)
    app.register_blueprint(posts_bp, url_prefix="/api")
    app.register_blueprint(lottery_bp, url_prefix="/api")
    app.register_blueprint(admin_lottery_bp, url_prefix="/api/admin")

    return app
