"""
Database package for the vehicle rental reservation engine.

This package provides modular database operations:
- connection: Database connection management (get_db, close_db, init_db, write_transaction)
- schema: Table creation, indexes and exclusion triggers
- seed: Initial seed data

For convenience, all functions are re-exported from this module.
"""

from database.connection import get_db, close_db, init_db, write_transaction
from database.schema import (
    drop_tables, create_tables, create_indexes, create_triggers,
    ACTIVE_STATUSES, RESERVATION_STATUSES, BLOCK_TYPES,
)
from database.seed import seed_database

__all__ = [
    # Connection
    'get_db',
    'close_db',
    'init_db',
    'write_transaction',
    # Schema
    'drop_tables',
    'create_tables',
    'create_indexes',
    'create_triggers',
    'ACTIVE_STATUSES',
    'RESERVATION_STATUSES',
    'BLOCK_TYPES',
    # Seed
    'seed_database',
]
