"""Schema bootstrap: create the database if needed and apply database/schema.sql."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator, List, Optional

import mysql.connector

from ..common.app_logger import get_logger
from .connection import DBConfig

logger = get_logger(__name__)

DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parents[3] / "database" / "schema.sql"

# The target database comes from DB_CONFIG, never from the file.
_DATABASE_DIRECTIVES = re.compile(r"(?im)^\s*(CREATE\s+DATABASE|USE)\b[^;]*;\s*$")


def iter_sql_statements(sql: str) -> Iterator[str]:
    """Split a schema script on ``;``, ignoring ``--`` comment lines and quoted semicolons."""

    body = "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))
    current: List[str] = []
    quote: Optional[str] = None
    escaped = False

    for ch in body:
        current.append(ch)
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif quote is not None:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ";":
            current.pop()
            statement = "".join(current).strip()
            current = []
            if statement:
                yield statement

    statement = "".join(current).strip()
    if statement:
        yield statement


def _run(target: DBConfig, statements, *, with_database: bool = True) -> None:
    conn = mysql.connector.connect(**target.connect_kwargs(with_database=with_database))
    try:
        cur = conn.cursor()
        for statement in statements:
            cur.execute(statement)
        conn.commit()
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    target = DBConfig.from_dict(db_config)
    _run(
        target,
        [f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"],
        with_database=False,
    )


def apply_schema(db_config: dict, *, schema_path: str | Path = DEFAULT_SCHEMA_PATH) -> None:
    target = DBConfig.from_dict(db_config)
    ensure_database_exists(db_config)
    sql = _DATABASE_DIRECTIVES.sub("", Path(schema_path).read_text(encoding="utf-8"))
    _run(target, iter_sql_statements(sql))
    logger.info("Schema %s applied to %s", Path(schema_path).name, target.describe())


def list_tables(db_config: dict) -> list[str]:
    conn = mysql.connector.connect(**DBConfig.from_dict(db_config).connect_kwargs())
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return sorted(row[0] for row in cur.fetchall())
    finally:
        conn.close()
