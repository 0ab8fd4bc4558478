"""
Reservation lifecycle log.
Append-only trail of every action taken on a reservation.
"""

import json

from database import get_db


def add_reservation_log(
    cursor,
    reservation_id: int,
    action_type: str,
    action_by: int,
    action_by_type: str,
    created_at: str,
    notes: str = None,
    metadata: dict = None
) -> int:
    """
    Append a log row inside the caller's transaction.

    Args:
        cursor: Active transaction cursor
        reservation_id: Reservation ID
        action_type: created, auto_approved, rejected, cancelled, confirmed, ...
        action_by: Acting user ID (None for system)
        action_by_type: renter, host, admin or system
        created_at: Canonical timestamp of the action
        notes: Free text (reason)
        metadata: Extra structured data

    Returns:
        int: Log row ID
    """
    cursor.execute('''
        INSERT INTO reservation_logs
        (reservation_id, action_type, action_by, action_by_type, notes, metadata, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (
        reservation_id, action_type, action_by, action_by_type, notes,
        json.dumps(metadata, default=str) if metadata else None,
        created_at
    ))
    return cursor.lastrowid


def get_reservation_logs(reservation_id: int) -> list:
    """
    Get the log trail for a reservation, oldest first.

    Returns:
        list: Log dicts with metadata decoded
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM reservation_logs
        WHERE reservation_id = ?
        ORDER BY id
    ''', (reservation_id,))

    logs = []
    for row in cursor.fetchall():
        entry = dict(row)
        entry['metadata'] = json.loads(entry['metadata']) if entry['metadata'] else {}
        logs.append(entry)
    return logs
