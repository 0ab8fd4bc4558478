"""
Database connection management.
Handles per-context connections, initialization, and teardown.
"""

import sqlite3
from contextlib import contextmanager
from flask import g, current_app


def get_db():
    """
    Get database connection for the current application context.

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/rental.db')
        g.db = sqlite3.connect(
            db_path,
            timeout=current_app.config.get('DATABASE_TIMEOUT', 10),
            detect_types=sqlite3.PARSE_DECLTYPES,
            check_same_thread=False
        )
        g.db.row_factory = sqlite3.Row
        # Enable foreign key constraints
        g.db.execute('PRAGMA foreign_keys = ON')
        # Enable WAL mode for better concurrency
        g.db.execute('PRAGMA journal_mode = WAL')
    return g.db


def close_db(e=None):
    """
    Close database connection.

    Args:
        e: Exception if any (from Flask teardown context)
    """
    db = g.pop('db', None)
    if db is not None:
        db.close()


def init_db():
    """
    Initialize database: drop existing tables, create new schema, insert seed data.
    WARNING: This will delete all existing data!
    """
    from database.schema import drop_tables, create_tables, create_indexes, create_triggers
    from database.seed import seed_database

    db = get_db()

    # Drop existing tables (in reverse order of dependencies)
    drop_tables(db)

    # Create all tables
    create_tables(db)

    # Create indexes
    create_indexes(db)

    # Exclusion triggers for active reservations
    create_triggers(db)

    # Insert seed data
    seed_database(db)

    db.commit()
    current_app.logger.info('Database initialized at %s', current_app.config.get('DATABASE_PATH'))


@contextmanager
def write_transaction():
    """
    Run a block inside one SQLite write transaction.

    BEGIN IMMEDIATE takes the database write lock up front, so every read made
    inside the block sees the state the block's writes will be applied to.
    Commits on success, rolls back and re-raises on any exception.

    Yields:
        sqlite3.Connection: The context connection
    """
    db = get_db()
    db.execute('BEGIN IMMEDIATE')
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    db.commit()
