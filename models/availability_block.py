"""
Availability Block model.
CRUD operations for manual vehicle blocks (maintenance, personal use,
seasonal closures) and the mirror rows tied to confirmed reservations.

Blocks are closed date ranges [start_date, end_date]. Manual blocks may
overlap each other freely; each row flagged is_blocked is independently
authoritative for "unavailable".
"""

import json
import logging
from datetime import date, timedelta
from typing import Optional

from database import get_db, write_transaction, ACTIVE_STATUSES
from utils.audit import log_audit
from utils.datetime_helpers import format_date, format_timestamp, get_now, load_timestamp, parse_date
from .errors import AuthorizationError, ConflictError, InvalidInputError, NotFoundError, ReservationError
from .renter_trust import refresh_trust_best_effort
from .user import is_admin
from .vehicle import get_vehicle_by_id, is_host_of

logger = logging.getLogger(__name__)


# =============================================================================
# BLOCK TYPES
# =============================================================================

MANUAL_BLOCK_TYPES = ('manual', 'maintenance', 'personal', 'seasonal')
RESERVATION_BLOCK_TYPE = 'booking'


# =============================================================================
# HELPERS
# =============================================================================

def _parse_range(start_date, end_date) -> tuple:
    try:
        first, last = parse_date(start_date), parse_date(end_date)
    except (TypeError, ValueError):
        raise InvalidInputError('invalid_dates', 'Dates must be YYYY-MM-DD',
                                {'start_date': start_date, 'end_date': end_date})
    if first > last:
        raise InvalidInputError('invalid_dates', 'Start date cannot be after end date',
                                {'start_date': format_date(first), 'end_date': format_date(last)})
    return first, last


def ensure_can_manage(vehicle_id: int, actor_id: int) -> None:
    """
    Check that the actor is the vehicle's host or an admin.

    Raises:
        NotFoundError: If the vehicle does not exist
        AuthorizationError: If the actor is neither host nor admin
    """
    if not get_vehicle_by_id(vehicle_id):
        raise NotFoundError('Vehicle not found', details={'vehicle_id': vehicle_id})
    if not (is_host_of(vehicle_id, actor_id) or is_admin(actor_id)):
        raise AuthorizationError('Only the vehicle host or an admin can change availability',
                                 {'vehicle_id': vehicle_id})


def reservations_touching(cursor, vehicle_id: int, first: date, last: date) -> list:
    """Active reservations whose dates share at least one day with [first, last]."""
    placeholders = ','.join('?' * len(ACTIVE_STATUSES))
    cursor.execute(f'''
        SELECT * FROM reservations
        WHERE vehicle_id = ?
          AND status IN ({placeholders})
          AND substr(start_at, 1, 10) <= ?
          AND substr(end_at, 1, 10) >= ?
        ORDER BY start_at
    ''', [vehicle_id, *ACTIVE_STATUSES, format_date(last), format_date(first)])
    return [dict(row) for row in cursor.fetchall()]


# =============================================================================
# WRITE OPERATIONS
# =============================================================================

def upsert_block(
    cursor,
    vehicle_id: int,
    start_date: date,
    end_date: date,
    available: bool,
    block_type: str,
    reason: str,
    actor_id: int,
    now: str,
    notes: str = None,
    recurring_pattern: dict = None
) -> int:
    """
    Write a manual block keyed by (vehicle_id, start_date, end_date).

    Re-running with the same key updates the existing row instead of adding
    a duplicate. Rows tied to a reservation are never touched.

    Returns:
        int: Block ID
    """
    first, last = format_date(start_date), format_date(end_date)
    pattern_json = json.dumps(recurring_pattern, sort_keys=True) if recurring_pattern else None

    cursor.execute('''
        SELECT id FROM availability_blocks
        WHERE vehicle_id = ? AND start_date = ? AND end_date = ?
          AND reservation_id IS NULL
        ORDER BY id
        LIMIT 1
    ''', (vehicle_id, first, last))
    row = cursor.fetchone()

    if row:
        cursor.execute('''
            UPDATE availability_blocks
            SET is_blocked = ?, block_type = ?, reason = ?, notes = ?,
                recurring_pattern = ?, created_by = ?, updated_at = ?
            WHERE id = ?
        ''', (0 if available else 1, block_type, reason, notes,
              pattern_json, actor_id, now, row['id']))
        return row['id']

    cursor.execute('''
        INSERT INTO availability_blocks
        (vehicle_id, start_date, end_date, is_blocked, block_type, reason, notes,
         recurring_pattern, created_by, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ''', (vehicle_id, first, last, 0 if available else 1, block_type, reason, notes,
          pattern_json, actor_id, now, now))
    return cursor.lastrowid


def _write_manual_block(cursor, vehicle_id, first, last, available, block_type,
                        reason, actor_id, now, notes, override_bookings) -> tuple:
    """Conflict check, optional override and upsert. Returns (block_id, cancelled reservations)."""
    cancelled = []

    if not available:
        affected = reservations_touching(cursor, vehicle_id, first, last)
        if affected and not override_bookings:
            raise ConflictError('booking_conflict', 'Active reservations overlap the requested block', {
                'reservations': [
                    {'reservation_id': r['id'], 'status': r['status'],
                     'start_at': r['start_at'], 'end_at': r['end_at']}
                    for r in affected
                ]
            })

        if affected:
            from .reservation_state import mark_cancelled
            for reservation in affected:
                mark_cancelled(
                    cursor, reservation,
                    actor_id=actor_id,
                    actor_type='admin',
                    reason=reason or 'Vehicle blocked by admin',
                    now=now
                )
                cancelled.append(reservation)

    block_id = upsert_block(
        cursor, vehicle_id, first, last, available, block_type,
        reason, actor_id, now, notes=notes
    )
    return block_id, cancelled


def set_manual_block(
    vehicle_id: int,
    start_date,
    end_date,
    available: bool = False,
    reason: str = None,
    actor_id: int = None,
    block_type: str = 'manual',
    notes: str = None,
    override_bookings: bool = False
) -> dict:
    """
    Mark a date range of a vehicle as available or unavailable.

    Blocking a range that already carries active reservations fails with
    booking_conflict. An admin may pass override_bookings to cancel those
    reservations and write the block anyway.

    Args:
        vehicle_id: Vehicle ID
        start_date: First date (YYYY-MM-DD or date)
        end_date: Last date, inclusive
        available: False blocks the range, True records it as open
        reason: Free text reason
        actor_id: Acting user (host of the vehicle or admin)
        block_type: manual, maintenance, personal or seasonal
        notes: Additional notes
        override_bookings: Cancel overlapping active reservations (admin only)

    Returns:
        dict: block_id and the IDs of any reservations cancelled by the override

    Raises:
        InvalidInputError, NotFoundError, AuthorizationError, ConflictError
    """
    if block_type not in MANUAL_BLOCK_TYPES:
        raise InvalidInputError('invalid_block_type', f'Invalid block type: {block_type}',
                                {'allowed': list(MANUAL_BLOCK_TYPES)})

    first, last = _parse_range(start_date, end_date)
    ensure_can_manage(vehicle_id, actor_id)

    if override_bookings and not is_admin(actor_id):
        raise AuthorizationError('Only an admin can override existing bookings')

    now = format_timestamp(get_now())

    with write_transaction() as db:
        block_id, cancelled = _write_manual_block(
            db.cursor(), vehicle_id, first, last, available, block_type,
            reason, actor_id, now, notes, override_bookings
        )

    logger.info(f"Block {block_id} set on vehicle {vehicle_id} "
                f"{format_date(first)}..{format_date(last)} blocked={not available}")

    if cancelled:
        logger.warning(f"Admin {actor_id} override cancelled reservations "
                       f"{[r['id'] for r in cancelled]} on vehicle {vehicle_id}")
        log_audit('OVERRIDE', 'vehicle', vehicle_id, actor_id, {
            'block_id': block_id,
            'start_date': format_date(first),
            'end_date': format_date(last),
            'cancelled_reservations': [r['id'] for r in cancelled],
        })
        for renter_id in {r['renter_id'] for r in cancelled}:
            refresh_trust_best_effort(renter_id)
    else:
        log_audit('BLOCK' if not available else 'UNBLOCK', 'availability_block', block_id, actor_id, {
            'vehicle_id': vehicle_id,
            'start_date': format_date(first),
            'end_date': format_date(last),
            'block_type': block_type,
        })

    return {
        'block_id': block_id,
        'cancelled_reservations': [r['id'] for r in cancelled],
    }


def bulk_set_manual_block(
    vehicle_ids: list,
    start_date,
    end_date,
    available: bool = False,
    reason: str = None,
    actor_id: int = None,
    override_bookings: bool = False
) -> list:
    """
    Apply the same manual block to several vehicles at once (admin only).

    All vehicles are written in one transaction. Each vehicle runs under its
    own savepoint, so a vehicle that fails (unknown id, booking conflict)
    leaves nothing behind and the others still go through.

    Args:
        vehicle_ids: Vehicle IDs
        start_date: First date
        end_date: Last date, inclusive
        available: False blocks the range, True records it as open
        reason: Free text reason
        actor_id: Acting admin
        override_bookings: Cancel overlapping active reservations

    Returns:
        list: One dict per vehicle with vehicle_id, vehicle_name, success,
        message, code, block_id and cancelled_reservations

    Raises:
        AuthorizationError: If the actor is not an admin
        InvalidInputError: invalid_dates, or an empty/malformed vehicle list
    """
    if not is_admin(actor_id):
        raise AuthorizationError('Admin access required for bulk availability changes')

    if (not isinstance(vehicle_ids, list) or not vehicle_ids
            or any(isinstance(v, bool) or not isinstance(v, int) for v in vehicle_ids)):
        raise InvalidInputError('invalid_vehicles', 'vehicle_ids must be a non-empty list of IDs')

    first, last = _parse_range(start_date, end_date)
    now = format_timestamp(get_now())
    results = []

    with write_transaction() as db:
        cursor = db.cursor()
        for vehicle_id in dict.fromkeys(vehicle_ids):
            vehicle = get_vehicle_by_id(vehicle_id)
            name = f"{vehicle['make']} {vehicle['model']}" if vehicle else 'Unknown'
            entry = {'vehicle_id': vehicle_id, 'vehicle_name': name, 'success': False,
                     'message': None, 'code': None, 'block_id': None, 'cancelled_reservations': []}

            if not vehicle:
                entry.update(message='Vehicle not found', code='not_found')
                results.append(entry)
                continue

            cursor.execute('SAVEPOINT bulk_vehicle')
            try:
                block_id, cancelled = _write_manual_block(
                    cursor, vehicle_id, first, last, available, 'manual',
                    reason, actor_id, now, 'Bulk admin update', override_bookings
                )
            except ReservationError as e:
                cursor.execute('ROLLBACK TO bulk_vehicle')
                entry.update(message=e.message, code=e.code)
            else:
                entry.update(success=True, message='Updated successfully', block_id=block_id,
                             cancelled_reservations=cancelled)
            cursor.execute('RELEASE bulk_vehicle')
            results.append(entry)

    cancelled = [r for entry in results for r in entry['cancelled_reservations']]
    for entry in results:
        entry['cancelled_reservations'] = [r['id'] for r in entry['cancelled_reservations']]

    written = [entry['vehicle_id'] for entry in results if entry['success']]
    logger.info(f"Bulk block by admin {actor_id} {format_date(first)}..{format_date(last)} "
                f"blocked={not available}: {len(written)}/{len(results)} vehicles")
    log_audit('BULK_BLOCK', 'vehicle', None, actor_id, {
        'vehicle_ids': written,
        'failed': [entry['vehicle_id'] for entry in results if not entry['success']],
        'start_date': format_date(first),
        'end_date': format_date(last),
        'available': available,
        'cancelled_reservations': [r['id'] for r in cancelled],
    })
    for renter_id in {r['renter_id'] for r in cancelled}:
        refresh_trust_best_effort(renter_id)

    return results


def delete_block(block_id: int, actor_id: int) -> bool:
    """
    Delete a manual block.

    Args:
        block_id: Block ID
        actor_id: Acting user (host of the vehicle or admin)

    Returns:
        bool: True if deleted
    """
    block = get_block_by_id(block_id)
    if not block:
        raise NotFoundError('Block not found', details={'block_id': block_id})
    if block['reservation_id']:
        raise InvalidInputError('reservation_block',
                                'Blocks tied to a reservation are released by the reservation lifecycle',
                                {'reservation_id': block['reservation_id']})
    ensure_can_manage(block['vehicle_id'], actor_id)

    with write_transaction() as db:
        cursor = db.execute('DELETE FROM availability_blocks WHERE id = ?', (block_id,))
        deleted = cursor.rowcount > 0

    if deleted:
        logger.info(f"Block {block_id} deleted from vehicle {block['vehicle_id']}")
        log_audit('DELETE', 'availability_block', block_id, actor_id, {
            'vehicle_id': block['vehicle_id'],
            'start_date': block['start_date'],
            'end_date': block['end_date'],
        })
    return deleted


def partial_unblock(block_id: int, unblock_start, unblock_end, actor_id: int) -> dict:
    """
    Clear a date range within an existing block.

    This may delete, shrink, or split the block depending on the range:
    - range covers the entire block: delete block
    - range at start: move start_date forward
    - range at end: move end_date back
    - range in the middle: split into two blocks

    Args:
        block_id: Block ID
        unblock_start: First date to clear
        unblock_end: Last date to clear, inclusive
        actor_id: Acting user (host of the vehicle or admin)

    Returns:
        dict: Action taken ('deleted', 'shrunk_start', 'shrunk_end', 'split')
            and the remaining block IDs
    """
    block = get_block_by_id(block_id)
    if not block:
        raise NotFoundError('Block not found', details={'block_id': block_id})
    if block['reservation_id']:
        raise InvalidInputError('reservation_block',
                                'Blocks tied to a reservation are released by the reservation lifecycle',
                                {'reservation_id': block['reservation_id']})
    ensure_can_manage(block['vehicle_id'], actor_id)

    first, last = _parse_range(unblock_start, unblock_end)
    block_start, block_end = parse_date(block['start_date']), parse_date(block['end_date'])

    if first < block_start or last > block_end:
        raise InvalidInputError('invalid_dates', 'Range to clear must lie within the block', {
            'block_start': block['start_date'], 'block_end': block['end_date']
        })

    now = format_timestamp(get_now())
    result = {'action': None, 'block_ids': []}

    with write_transaction() as db:
        cursor = db.cursor()

        if first == block_start and last == block_end:
            cursor.execute('DELETE FROM availability_blocks WHERE id = ?', (block_id,))
            result['action'] = 'deleted'

        elif first == block_start:
            cursor.execute('''
                UPDATE availability_blocks SET start_date = ?, updated_at = ? WHERE id = ?
            ''', (format_date(last + timedelta(days=1)), now, block_id))
            result['action'] = 'shrunk_start'
            result['block_ids'] = [block_id]

        elif last == block_end:
            cursor.execute('''
                UPDATE availability_blocks SET end_date = ?, updated_at = ? WHERE id = ?
            ''', (format_date(first - timedelta(days=1)), now, block_id))
            result['action'] = 'shrunk_end'
            result['block_ids'] = [block_id]

        else:
            cursor.execute('''
                UPDATE availability_blocks SET end_date = ?, updated_at = ? WHERE id = ?
            ''', (format_date(first - timedelta(days=1)), now, block_id))
            cursor.execute('''
                INSERT INTO availability_blocks
                (vehicle_id, start_date, end_date, is_blocked, block_type, reason, notes,
                 recurring_pattern, created_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                block['vehicle_id'], format_date(last + timedelta(days=1)), block['end_date'],
                block['is_blocked'], block['block_type'], block['reason'], block['notes'],
                block['recurring_pattern'], block['created_by'], now, now
            ))
            result['action'] = 'split'
            result['block_ids'] = [block_id, cursor.lastrowid]

    logger.info(f"Block {block_id} partially cleared {format_date(first)}..{format_date(last)}: "
                f"{result['action']}")
    log_audit('UNBLOCK', 'availability_block', block_id, actor_id, {
        'start_date': format_date(first),
        'end_date': format_date(last),
        'action': result['action'],
    })
    return result


# =============================================================================
# RESERVATION-TIED BLOCKS
# =============================================================================

def create_reservation_block(cursor, reservation: dict, actor_id: int, now: str) -> int:
    """
    Write the mirror block for a confirmed reservation.

    Covers every calendar date the reservation touches; an end exactly at
    midnight does not claim the following date. Existing rows for the
    reservation are reused.

    Returns:
        int: Block ID
    """
    cursor.execute('SELECT id FROM availability_blocks WHERE reservation_id = ?', (reservation['id'],))
    row = cursor.fetchone()
    if row:
        return row['id']

    first = load_timestamp(reservation['start_at']).date()
    last = (load_timestamp(reservation['end_at']) - timedelta(seconds=1)).date()

    cursor.execute('''
        INSERT INTO availability_blocks
        (vehicle_id, start_date, end_date, is_blocked, block_type, reason,
         reservation_id, created_by, created_at, updated_at)
        VALUES (?, ?, ?, 1, ?, ?, ?, ?, ?, ?)
    ''', (
        reservation['vehicle_id'], format_date(first), format_date(last),
        RESERVATION_BLOCK_TYPE, f"Reservation #{reservation['id']}",
        reservation['id'], actor_id, now, now
    ))
    return cursor.lastrowid


def release_reservation_blocks(cursor, reservation_id: int) -> int:
    """
    Delete every block tied to a reservation.

    Returns:
        int: Number of rows released
    """
    cursor.execute('DELETE FROM availability_blocks WHERE reservation_id = ?', (reservation_id,))
    return cursor.rowcount


# =============================================================================
# READ OPERATIONS
# =============================================================================

def _decode(row) -> dict:
    block = dict(row)
    block['recurring_pattern'] = json.loads(block['recurring_pattern']) if block['recurring_pattern'] else None
    return block


def get_block_by_id(block_id: int) -> Optional[dict]:
    """
    Get a block by ID.

    Args:
        block_id: Block ID

    Returns:
        dict or None: Block data
    """
    db = get_db()
    row = db.execute('SELECT * FROM availability_blocks WHERE id = ?', (block_id,)).fetchone()
    return _decode(row) if row else None


def get_blocks_by_vehicle(
    vehicle_id: int,
    date_from: str = None,
    date_to: str = None,
    include_reservation_blocks: bool = True
) -> list:
    """
    Get all blocks for a vehicle.

    Args:
        vehicle_id: Vehicle ID
        date_from: Optional first date filter
        date_to: Optional last date filter
        include_reservation_blocks: Include rows tied to reservations

    Returns:
        list: Block dicts ordered by start date
    """
    query = 'SELECT * FROM availability_blocks WHERE vehicle_id = ?'
    params = [vehicle_id]

    if date_from:
        query += ' AND end_date >= ?'
        params.append(date_from)

    if date_to:
        query += ' AND start_date <= ?'
        params.append(date_to)

    if not include_reservation_blocks:
        query += ' AND reservation_id IS NULL'

    query += ' ORDER BY start_date, id'

    db = get_db()
    return [_decode(row) for row in db.execute(query, params).fetchall()]
