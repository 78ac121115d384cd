"""Application factory and extension initialization for ExpenseChain."""
from __future__ import annotations

import logging
import os
import random
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

from config import config_by_name

# Global extension instances -------------------------------------------------

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()


def create_app(config_name: Optional[str] = None, overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Flask application factory."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    config_name = config_name or os.getenv("FLASK_CONFIG", "development")
    config_class = config_by_name.get(config_name.lower())
    if config_class is None:
        raise ValueError(f"Unknown Flask configuration '{config_name}'")

    app.config.from_object(config_class)
    if overrides:
        app.config.update(overrides)
    logging.basicConfig(level=app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Ensure instance folder exists for SQLite DBs
    os.makedirs(app.instance_path, exist_ok=True)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)

    # Import all models to ensure they are registered with SQLAlchemy
    from expensechain import models  # noqa: F401

    with app.app_context():
        db.create_all()

    app.extensions["expensechain"] = _build_engine(app)

    # Register blueprints
    from expensechain.main import main_bp
    from expensechain.auth import auth_bp
    from expensechain.admin import admin_bp
    from expensechain.employee import employee_bp
    from expensechain.manager import manager_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(employee_bp)
    app.register_blueprint(manager_bp)

    from expensechain.utils.helpers import register_error_handlers

    register_error_handlers(app)

    @login_manager.user_loader
    def load_user(user_id: str):
        return app.extensions["expensechain"].store.get_user(user_id)

    @app.shell_context_processor
    def shell_context():
        return {"db": db, "engine": app.extensions["expensechain"]}

    return app


def _build_engine(app: Flask):
    from expensechain.services.currency_service import CountryProvider, RateProvider
    from expensechain.services.datastore import InMemoryStore, SqlAlchemyStore
    from expensechain.services.demo_data import seed_demo_data
    from expensechain.services.engine import Engine
    from expensechain.services.expense_ledger import ExpenseLedger
    from expensechain.services.ocr_service import OcrProvider, ReceiptExtractor

    config = app.config
    enabled = config["EXTERNAL_SERVICES_ENABLED"]
    timeout = config["HTTP_TIMEOUT_SECONDS"]

    store_kind = config["EXPENSE_STORE"].lower()
    if store_kind == "memory":
        store = InMemoryStore()
    elif store_kind == "sql":
        store = SqlAlchemyStore(db)
    else:
        raise ValueError(f"Unknown expense store '{config['EXPENSE_STORE']}'")

    engine = Engine(
        store=store,
        ledger=ExpenseLedger(),
        rates=RateProvider(
            api_url=config["EXCHANGE_API_URL"],
            timeout=timeout,
            cache_seconds=config["RATE_CACHE_SECONDS"],
            enabled=enabled,
        ),
        countries=CountryProvider(
            api_url=config["REST_COUNTRIES_URL"],
            timeout=timeout,
            cache_seconds=config["COUNTRY_CACHE_SECONDS"],
            enabled=enabled,
        ),
        ocr=OcrProvider(
            api_key=config["OCR_SPACE_API_KEY"],
            api_url=config["OCR_API_URL"],
            timeout=timeout,
            enabled=enabled,
        ),
        extractor=ReceiptExtractor(rng=random.Random(config["OCR_SEED"])),
        pivot_currency=config["RATE_PIVOT_CURRENCY"],
    )

    if store_kind == "memory" and config["SEED_DEMO_DATA"]:
        seed_demo_data(store, engine.ledger)

    app.logger.info("Expense store: %s", store_kind)
    return engine
