from __future__ import annotations

import importlib
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .common.app_logger import get_logger, setup_logging
from .common.http import register_error_handlers
from .config import get_settings_module
from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables
from .database.connection import DBConfig

from .academic.controller import register as register_academic
from .analytics.controller import register as register_analytics
from .attendance.controller import register as register_attendance

logger = get_logger(__name__)


def create_app(*, container: Optional[Container] = None, settings_module: Optional[str] = None) -> Flask:
    """App factory. A prebuilt container skips database bootstrap and wiring."""

    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    setup_logging(getattr(settings, "LOG_LEVEL", None))

    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    db_config = getattr(settings, "DB_CONFIG")

    if container is None:
        logger.info("settings=%s db=%s", settings_module, DBConfig.from_dict(db_config).describe())
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config)
            logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            cache_ttl_seconds=getattr(settings, "ANALYTICS_CACHE_TTL_SECONDS"),
            cache_max_size=getattr(settings, "ANALYTICS_CACHE_MAX_SIZE"),
            notifications_backend=getattr(settings, "NOTIFICATIONS_BACKEND", "log"),
        )

    app.extensions["campus_attendance"] = container
    register_error_handlers(app)
    register_attendance(app, container)
    register_analytics(app, container)
    register_academic(app, container)

    return app
