from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from app.core.config import DATABASE_URL

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"


def _current_env() -> str:
    return os.getenv("ENVIRONMENT", os.getenv("ENV", "dev")).strip().lower()


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def validate_database_environment(database_url: str | None = None) -> None:
    url = database_url or DATABASE_URL
    if _current_env() in {"prod", "production"} and _is_sqlite(url):
        logger.critical("%s SQLite is forbidden in production", MIGRATIONS_PREFIX)
        raise RuntimeError("SQLite is forbidden in production environment")


def _applied_revisions(engine: Engine) -> set[str]:
    with engine.connect() as connection:
        if not inspect(connection).has_table("alembic_version"):
            logger.critical("%s alembic_version table missing", MIGRATIONS_PREFIX)
            raise RuntimeError("Database has no migration state")
        rows = connection.exec_driver_sql("SELECT version_num FROM alembic_version").fetchall()
    return {row[0] for row in rows if row[0]}


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    """Refuse to start unless the database sits exactly at the Alembic head(s)."""
    if _current_env() == "test":
        logger.info("%s skipped migration check in test environment", MIGRATIONS_PREFIX)
        return

    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, alembic_config_path)
        raise RuntimeError("alembic config not found")

    expected = set(ScriptDirectory.from_config(Config(str(alembic_config_path))).get_heads())
    applied = _applied_revisions(engine)
    if applied != expected:
        logger.critical(
            "%s pending migration detected applied=%s expected=%s",
            MIGRATIONS_PREFIX,
            sorted(applied),
            sorted(expected),
        )
        raise RuntimeError("Pending migrations detected")

    logger.info("%s migration state verified head=%s", MIGRATIONS_PREFIX, ",".join(sorted(expected)))


def ensure_tables_exist(engine: Engine, table_names: Iterable[str]) -> None:
    inspector = inspect(engine)
    missing = sorted(name for name in table_names if not inspector.has_table(name))
    if missing:
        logger.critical("%s tables missing=%s", MIGRATIONS_PREFIX, ",".join(missing))
        raise RuntimeError("tables missing / migrations not applied")


def prepare_database(*, engine: Engine, metadata, alembic_config_path: Path, database_url: str | None = None) -> None:
    """SQLite gets its schema from the models; any other database must already be migrated."""
    url = database_url or DATABASE_URL
    validate_database_environment(url)
    if _is_sqlite(url):
        metadata.create_all(bind=engine)
        logger.info("%s sqlite schema ensured from models", MIGRATIONS_PREFIX)
    else:
        ensure_migrations_applied(engine=engine, alembic_config_path=alembic_config_path)
    ensure_tables_exist(engine, metadata.tables.keys())
