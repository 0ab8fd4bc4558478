"""
Renter trust signals.
Rolling per-renter data consulted by the approval scorer: verification
score, booking-history score, cancellation rate and disputes.
"""

import logging

from flask import current_app

from database import get_db
from utils.datetime_helpers import format_timestamp, get_now
from .errors import InvalidInputError

logger = logging.getLogger(__name__)


def get_renter_trust(renter_id: int, cursor=None) -> dict:
    """
    Get a renter's trust data, falling back to defaults when no row exists.

    Args:
        renter_id: Renter user ID
        cursor: Active transaction cursor

    Returns:
        dict: Trust data (``exists`` is False for defaults)
    """
    cur = cursor or get_db().cursor()
    cur.execute('SELECT * FROM renter_trust WHERE renter_id = ?', (renter_id,))
    row = cur.fetchone()
    if row:
        trust = dict(row)
        trust['exists'] = True
        return trust

    trust = dict(current_app.config['DEFAULT_RENTER_TRUST'])
    trust['renter_id'] = renter_id
    trust['exists'] = False
    return trust


def ensure_renter_trust(cursor, renter_id: int) -> None:
    """Create the renter's trust row with defaults if it does not exist yet."""
    defaults = current_app.config['DEFAULT_RENTER_TRUST']
    cursor.execute('''
        INSERT OR IGNORE INTO renter_trust
        (renter_id, verification_score, booking_history_score, cancellation_rate,
         dispute_count, total_bookings, completed_bookings)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (
        renter_id,
        defaults['verification_score'],
        defaults['booking_history_score'],
        defaults['cancellation_rate'],
        defaults['dispute_count'],
        defaults['total_bookings'],
        defaults['completed_bookings'],
    ))


def record_new_booking(cursor, renter_id: int) -> None:
    """Increment total_bookings inside the creating transaction."""
    ensure_renter_trust(cursor, renter_id)
    cursor.execute('''
        UPDATE renter_trust
        SET total_bookings = total_bookings + 1,
            last_updated = ?
        WHERE renter_id = ?
    ''', (format_timestamp(get_now()), renter_id))


def recompute_renter_trust(renter_id: int, cursor=None) -> dict:
    """
    Recompute totals and cancellation rate from the renter's reservations.

    cancellation_rate is the share of CANCELLED and REJECTED reservations
    over all of them, as a percentage rounded to 2 decimals.

    Args:
        renter_id: Renter user ID
        cursor: Active transaction cursor; commits itself when omitted

    Returns:
        dict: Updated trust data
    """
    db = get_db()
    cur = cursor or db.cursor()

    cur.execute('''
        SELECT COUNT(*) as total,
               SUM(CASE WHEN status IN ('CANCELLED', 'REJECTED') THEN 1 ELSE 0 END) as cancelled,
               SUM(CASE WHEN status = 'COMPLETED' THEN 1 ELSE 0 END) as completed,
               SUM(CASE WHEN status = 'DISPUTED' THEN 1 ELSE 0 END) as disputed
        FROM reservations
        WHERE renter_id = ?
    ''', (renter_id,))
    stats = cur.fetchone()

    total = stats['total'] or 0
    cancelled = stats['cancelled'] or 0
    rate = round(cancelled * 100.0 / total, 2) if total else 0.0

    ensure_renter_trust(cur, renter_id)
    cur.execute('''
        UPDATE renter_trust
        SET total_bookings = ?,
            completed_bookings = ?,
            cancellation_rate = ?,
            dispute_count = MAX(dispute_count, ?),
            last_updated = ?
        WHERE renter_id = ?
    ''', (total, stats['completed'] or 0, rate, stats['disputed'] or 0,
          format_timestamp(get_now()), renter_id))

    if cursor is None:
        db.commit()

    return get_renter_trust(renter_id, cursor=cur)


def refresh_trust_best_effort(renter_id: int) -> bool:
    """
    Recompute trust after a committed transition.

    The transition has already succeeded; a failure here is logged on its
    own and never propagated.

    Returns:
        bool: True if the recompute succeeded
    """
    try:
        recompute_renter_trust(renter_id)
        return True
    except Exception as e:
        get_db().rollback()
        logger.error(f"Renter trust recompute failed for renter {renter_id} "
                     f"(reservation transition already committed): {e}", exc_info=True)
        return False


def set_verification_score(renter_id: int, score: int) -> dict:
    """
    Store the identity-verification score reported for a renter.

    Args:
        renter_id: Renter user ID
        score: 0 to 100

    Returns:
        dict: Updated trust data
    """
    if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100:
        raise InvalidInputError('invalid_score', 'Verification score must be an integer between 0 and 100')

    db = get_db()
    cursor = db.cursor()
    ensure_renter_trust(cursor, renter_id)
    cursor.execute('''
        UPDATE renter_trust
        SET verification_score = ?, last_updated = ?
        WHERE renter_id = ?
    ''', (score, format_timestamp(get_now()), renter_id))
    db.commit()

    logger.info(f"Verification score for renter {renter_id} set to {score}")
    return get_renter_trust(renter_id)
