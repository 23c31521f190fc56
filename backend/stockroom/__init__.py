# backend/stockroom/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    # Overrides must land before the extensions bind to the engine
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sales import sales_bp
    from .routes.transfers import transfers_bp
    from .routes.packing import packing_bp
    from .routes.inventory import inventory_bp
    from .routes.products import products_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(packing_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(products_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
