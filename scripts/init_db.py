"""Apply database/schema.sql to the database named by the active settings module."""

from __future__ import annotations

import importlib

from campus_attendance.common.app_logger import get_logger, setup_logging
from campus_attendance.config import get_settings_module
from campus_attendance.database.bootstrap import apply_schema, list_tables
from campus_attendance.database.connection import DBConfig

logger = get_logger("scripts.init_db")


def main() -> None:
    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    setup_logging(getattr(settings, "LOG_LEVEL", None))

    db_config = dict(settings.DB_CONFIG)
    apply_schema(db_config)
    tables = list_tables(db_config)
    logger.info("%s -> %s: %s tables (%s)", settings_module, DBConfig.from_dict(db_config).describe(), len(tables), ", ".join(tables))


if __name__ == "__main__":
    main()
