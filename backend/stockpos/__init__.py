# backend/stockpos/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate

# Expo web / Metro dev servers for the mobile client
DEV_ORIGINS = frozenset({
    "http://localhost:8081",
    "http://127.0.0.1:8081",
    "http://localhost:19006",
    "http://127.0.0.1:19006",
})


def _register_blueprints(app: Flask) -> None:
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.checkout import cart_bp, checkout_bp
    from .routes.sales import sales_bp
    from .routes.notifications import notifications_bp

    for bp in (system_bp, products_bp, cart_bp, checkout_bp, sales_bp, notifications_bp):
        app.register_blueprint(bp)


def create_app(config_overrides: dict | None = None) -> Flask:
    """
    Build the API app.

    config_overrides is applied before the extensions bind, so a test can
    point SQLALCHEMY_DATABASE_URI at its own database.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    app.config.update(config_overrides or {})

    db.init_app(app)
    migrate.init_app(app, db)

    # Models must be imported before Alembic reads the metadata
    from . import models  # noqa: F401

    _register_blueprints(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in DEV_ORIGINS:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "X-Owner-Id, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,DELETE,OPTIONS"
        return response

    from .cli import register_commands
    register_commands(app)

    return app
