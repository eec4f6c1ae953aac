"""
migrations.py — Versioned schema upgrades
Each step runs in its own transaction and records the version it reached, so a
failed upgrade resumes from the last completed step.
"""

import logging

from sqlalchemy import text, update, insert

from database import VERSION_KEY
from models.metadata import SchemaMetadata

logger = logging.getLogger(__name__)


def migrate_to_version_1(conn):
    """Initial schema. Tables and base indexes come from Base.metadata.create_all()."""


def migrate_to_version_2(conn):
    """Composite indexes for the owner-scoped status and due-date filters."""
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_goals_user_status ON goals(user_id, status)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_tasks_user_status ON tasks(user_id, status)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_tasks_user_due_date ON tasks(user_id, due_date)"))


MIGRATIONS = {
    1: migrate_to_version_1,
    2: migrate_to_version_2,
}


def _set_version(conn, version: int):
    table = SchemaMetadata.__table__
    stmt = update(table).where(table.c.key == VERSION_KEY).values(value=str(version))
    if conn.execute(stmt).rowcount == 0:
        conn.execute(insert(table).values(key=VERSION_KEY, value=str(version)))


def run_migrations(engine, current_version: int, target_version: int):
    """Apply every migration in (current_version, target_version] in ascending order."""
    logger.info(f"Running migrations from version {current_version} to {target_version}")
    for version in range(current_version + 1, target_version + 1):
        migration = MIGRATIONS.get(version)
        with engine.begin() as conn:
            if migration is None:
                logger.info(f"No migration defined for version {version}")
            else:
                logger.info(f"Running migration to version {version}")
                migration(conn)
            _set_version(conn, version)
    logger.info("All migrations completed")
