"""
Audit Log model and data access functions.
Handles audit log creation and retrieval for admin/host actions.
"""

import json
from database import get_db


# =============================================================================
# READ OPERATIONS
# =============================================================================

def get_audit_logs_for_entity(entity_type: str, entity_id: int, limit: int = 50) -> list:
    """
    Get audit history for a specific entity.

    Args:
        entity_type: Entity type (reservation, vehicle, availability_block, ...)
        entity_id: Entity ID
        limit: Maximum number of records to return

    Returns:
        List of audit log dicts ordered by most recent first
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT al.*, u.username, u.full_name as user_full_name
        FROM audit_log al
        LEFT JOIN users u ON al.user_id = u.id
        WHERE al.entity_type = ? AND al.entity_id = ?
        ORDER BY al.id DESC
        LIMIT ?
    ''', (entity_type, entity_id, limit))
    rows = cursor.fetchall()

    logs = []
    for row in rows:
        entry = dict(row)
        entry['changes'] = json.loads(entry['changes']) if entry['changes'] else None
        logs.append(entry)
    return logs


# =============================================================================
# WRITE OPERATIONS
# =============================================================================

def create_audit_log(
    action: str,
    entity_type: str,
    entity_id: int = None,
    user_id: int = None,
    changes: dict = None,
    ip_address: str = None,
    user_agent: str = None
) -> int:
    """
    Create a new audit log entry.

    Args:
        action: Action type (CREATE, UPDATE, DELETE, CANCEL, REJECT, OVERRIDE, ...)
        entity_type: Entity type (reservation, vehicle, availability_block, ...)
        entity_id: ID of the affected entity
        user_id: ID of the user who performed the action (None for system actions)
        changes: Dictionary with action details or before/after state
        ip_address: Client IP address
        user_agent: Client user agent string

    Returns:
        New audit log ID

    Example:
        create_audit_log(
            action='OVERRIDE',
            entity_type='vehicle',
            entity_id=12,
            user_id=1,
            changes={'cancelled_reservations': [44, 45]},
            ip_address='10.0.0.7'
        )
    """
    # Serialize changes dict to JSON string
    changes_json = None
    if changes is not None:
        changes_json = json.dumps(changes, default=str, ensure_ascii=False)

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO audit_log
        (user_id, action, entity_type, entity_id, changes, ip_address, user_agent)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (user_id, action, entity_type, entity_id, changes_json, ip_address, user_agent))

    db.commit()
    return cursor.lastrowid
