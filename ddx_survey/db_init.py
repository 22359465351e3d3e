"""
Database initialization for the diagnosis evaluation study.

This module handles:
1. Creating the study tables if they are missing
2. Resetting the database (drops every table, then recreates the schema)
"""

import logging
import sqlite3
from pathlib import Path

from ddx_survey.config import settings
from ddx_survey.schema import SCHEMA_SQL

logger = logging.getLogger(__name__)


def init_database(drop_tables: bool = False):
    """
    Initialize the database schema.

    Args:
        drop_tables: If True, drop and recreate all tables. If False, only create missing tables.
    """
    db_path = Path(settings.database_path)
    logger.info(f"Initializing database at: {db_path}")

    # Create database file if it doesn't exist
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA foreign_keys = ON")
    cursor = conn.cursor()

    try:
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
        existing_tables = {row[0] for row in cursor.fetchall()}

        logger.info(f"Found {len(existing_tables)} existing tables")

        if drop_tables:
            _drop_tables(cursor, existing_tables)
            conn.commit()

        logger.info("Creating study tables...")
        cursor.executescript(SCHEMA_SQL)

        conn.commit()
        logger.info("Database initialization complete")

        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        final_tables = [row[0] for row in cursor.fetchall() if row[0] != "sqlite_sequence"]
        logger.info(f"Database now has {len(final_tables)} tables: {', '.join(final_tables)}")

    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        conn.rollback()
        raise
    finally:
        conn.close()


def reset_database():
    """
    Completely reset the database.
    USE WITH CAUTION - will delete all vignettes, outputs and rater responses!
    """
    logger.warning(f"RESETTING DATABASE: {settings.database_path}")
    init_database(drop_tables=True)


def _drop_tables(cursor: sqlite3.Cursor, existing_tables: set):
    # Foreign keys off while dropping so order does not matter
    cursor.execute("PRAGMA foreign_keys = OFF")
    for table in sorted(existing_tables):
        if table == "sqlite_sequence":
            continue
        logger.info(f"Dropping table: {table}")
        cursor.execute(f"DROP TABLE IF EXISTS {table}")
    cursor.execute("PRAGMA foreign_keys = ON")


if __name__ == "__main__":
    # Configure logging for CLI usage
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    import sys

    if len(sys.argv) > 1 and sys.argv[1] == "--reset":
        print("⚠️  WARNING: This will delete ALL vignettes, LLM outputs and rater responses!")
        response = input("Type 'yes' to confirm: ")
        if response.lower() == 'yes':
            reset_database()
        else:
            print("Reset cancelled")
    else:
        init_database()
