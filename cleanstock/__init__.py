import uuid

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, current_app, g, render_template
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from .extensions import db
from .routes import api, errors, inventory, reports
from .services.debounce import QuickAdjustBatcher
from .services.inventory_container import (
    QUICK_ADJUST_REASON,
    InventoryContainer,
    get_inventory,
)
from .services.item_store import ActingUser, ItemStore
from .services.report_storage import ReportStorage
from .utils.logging import configure_logging
from config import Config
from . import models  # ensure models are registered with SQLAlchemy


NAVIGATION_PAGES: tuple[tuple[str, str], ...] = (
    ("home", "Dashboard"),
    ("inventory.inventory_home", "Inventory"),
    ("inventory.stock_update", "Update stock"),
    ("inventory.movement_history", "Movements"),
    ("reports.export_panel", "Reports"),
)


def _as_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _ping_database() -> None:
    """Raise :class:`OperationalError` when the configured database is unreachable."""

    with db.engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def _build_quick_adjust(app: Flask, scheduler) -> QuickAdjustBatcher:
    def flush(item_id, amount):
        with app.app_context():
            get_inventory().update_stock(item_id, amount, QUICK_ADJUST_REASON)

    return QuickAdjustBatcher(
        flush=flush,
        scheduler=scheduler,
        delay_ms=int(app.config.get("QUICK_ADJUST_DELAY_MS", 500)),
    )


def create_app(config_override=None):
    app = Flask(__name__)

    # load configuration from environment variables
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    app.config.setdefault("DATABASE_AVAILABLE", True)
    app.config.setdefault("DATABASE_ERROR", None)

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if database_uri.startswith("sqlite:///:memory:"):
        engine_options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        connect_args = engine_options.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine_options.setdefault("poolclass", StaticPool)

    configure_logging(app)
    db.init_app(app)

    store = ItemStore(
        ActingUser(
            id=app.config["ACTING_USER_ID"],
            label=app.config.get("ACTING_USER_LABEL") or "Current user",
        ),
        default_location=app.config.get("DEFAULT_LOCATION") or "",
    )
    container = InventoryContainer(
        store,
        atomic_stock_updates=_as_bool(app.config.get("STOCK_UPDATE_ATOMIC")),
    )
    app.extensions["inventory"] = container
    app.extensions["report_storage"] = ReportStorage(app.config["REPORT_STORAGE_FOLDER"])

    database_available = True
    database_error_message: str | None = None

    # create tables if they do not exist, then fill the in-memory mirror
    with app.app_context():
        try:
            _ping_database()
        except OperationalError as exc:
            database_available = False
            details = str(getattr(exc, "orig", exc)).strip()
            database_error_message = (
                "Unable to connect to the configured database. Start the "
                "database service or update the DB_URL setting, then restart "
                "the application."
            )
            if details:
                database_error_message += f" (Error: {details})"
            current_app.logger.error(
                "Database connection unavailable during startup%s",
                f": {details}" if details else "",
                exc_info=current_app.debug,
            )
            db.session.remove()
            db.engine.dispose()
        else:
            try:
                db.create_all()
            except SQLAlchemyError:
                database_available = False
                database_error_message = (
                    "The database schema could not be initialized. Review the "
                    "logs for details and restart once resolved."
                )
                current_app.logger.exception("Database initialization error")
                db.session.remove()
            else:
                container.load_items()
                container.load_movements()

    app.config["DATABASE_AVAILABLE"] = database_available
    app.config["DATABASE_ERROR"] = database_error_message

    scheduler = BackgroundScheduler(timezone="UTC")
    app.extensions["quick_adjust"] = _build_quick_adjust(app, scheduler)
    if not app.config.get("TESTING"):
        scheduler.start()
        app.extensions["quick_adjust_scheduler"] = scheduler

    @app.before_request
    def _assign_request_id():
        g.request_id = uuid.uuid4().hex[:12]

    @app.context_processor
    def inject_layout_helpers():
        return {
            "navigation_pages": NAVIGATION_PAGES,
            "database_online": current_app.config.get("DATABASE_AVAILABLE", True),
            "database_error_message": current_app.config.get("DATABASE_ERROR"),
            "inventory_error": get_inventory().state.error,
        }

    # register blueprints
    app.register_blueprint(inventory.bp)
    app.register_blueprint(reports.bp)
    app.register_blueprint(api.bp)
    app.register_blueprint(errors.bp)

    @app.route("/")
    def home():
        inventory_container = get_inventory()
        summary = inventory_container.dashboard_summary(
            expiring_days=int(current_app.config.get("EXPIRING_SOON_DAYS", 30))
        )
        return render_template(
            "home.html",
            summary=summary,
            loading=inventory_container.state.loading,
            recent_movements=inventory_container.state.movements[:5],
        )

    return app
