"""
Host auto-approval policy.
One policy per host, created lazily with the configured defaults.
"""

import logging
import math
from typing import Optional

from flask import current_app

from database import get_db
from .errors import InvalidInputError

logger = logging.getLogger(__name__)

POLICY_FIELDS = (
    'auto_approval_enabled',
    'max_auto_approve_amount',
    'min_advance_hours',
    'require_verification',
    'min_renter_score',
)


def _to_policy(row) -> dict:
    policy = dict(row)
    policy['auto_approval_enabled'] = bool(policy['auto_approval_enabled'])
    policy['require_verification'] = bool(policy['require_verification'])
    return policy


def get_host_policy(host_id: int, cursor=None) -> Optional[dict]:
    """
    Get a host's policy.

    Args:
        host_id: Host user ID
        cursor: Active transaction cursor

    Returns:
        dict or None: Policy, None when the host never configured one
    """
    cur = cursor or get_db().cursor()
    cur.execute('SELECT * FROM host_policies WHERE host_id = ?', (host_id,))
    row = cur.fetchone()
    return _to_policy(row) if row else None


def ensure_host_policy(host_id: int) -> dict:
    """Get a host's policy, creating it with defaults on first use."""
    policy = get_host_policy(host_id)
    if policy:
        return policy

    defaults = current_app.config['DEFAULT_HOST_POLICY']
    db = get_db()
    db.execute('''
        INSERT OR IGNORE INTO host_policies
        (host_id, auto_approval_enabled, max_auto_approve_amount, min_advance_hours,
         require_verification, min_renter_score)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', (
        host_id,
        1 if defaults['auto_approval_enabled'] else 0,
        defaults['max_auto_approve_amount'],
        defaults['min_advance_hours'],
        1 if defaults['require_verification'] else 0,
        defaults['min_renter_score'],
    ))
    db.commit()
    logger.info(f"Created default policy for host {host_id}")
    return get_host_policy(host_id)


def _validate(updates: dict) -> dict:
    clean = {}
    for key, value in updates.items():
        if key not in POLICY_FIELDS:
            raise InvalidInputError('invalid_policy', f'Unknown policy field: {key}')

        if key in ('auto_approval_enabled', 'require_verification'):
            if not isinstance(value, bool):
                raise InvalidInputError('invalid_policy', f'{key} must be true or false')
            clean[key] = 1 if value else 0

        elif key == 'max_auto_approve_amount':
            try:
                amount = float(value) if not isinstance(value, bool) and isinstance(value, (int, float)) else None
            except OverflowError:
                amount = None
            if amount is None or not math.isfinite(amount) or amount < 0:
                raise InvalidInputError('invalid_policy', 'max_auto_approve_amount must be a finite non-negative number')
            clean[key] = amount

        elif key == 'min_advance_hours':
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidInputError('invalid_policy', 'min_advance_hours must be a non-negative integer')
            clean[key] = value

        elif key == 'min_renter_score':
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
                raise InvalidInputError('invalid_policy', 'min_renter_score must be an integer between 0 and 100')
            clean[key] = value
    return clean


def update_host_policy(host_id: int, updates: dict) -> dict:
    """
    Update a host's policy.

    Args:
        host_id: Host user ID
        updates: Any of POLICY_FIELDS

    Returns:
        dict: Updated policy

    Raises:
        InvalidInputError: If a field is unknown or out of range
    """
    clean = _validate(updates)
    ensure_host_policy(host_id)
    if not clean:
        return get_host_policy(host_id)

    assignments = ', '.join(f'{key} = ?' for key in clean)
    db = get_db()
    db.execute(f'''
        UPDATE host_policies
        SET {assignments}, updated_at = CURRENT_TIMESTAMP
        WHERE host_id = ?
    ''', [*clean.values(), host_id])
    db.commit()

    logger.info(f"Host {host_id} policy updated: {sorted(clean)}")
    return get_host_policy(host_id)
