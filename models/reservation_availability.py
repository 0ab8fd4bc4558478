"""
Availability checking and conflict detection.

Two kinds of interval live on a vehicle's timeline and they use different
boundary rules:

- reservations are half-open timestamp ranges [start_at, end_at): one ending
  at t and another starting at t do not overlap;
- availability blocks are closed date ranges [start_date, end_date]: a block
  and a reservation that share a boundary date do overlap.

Both overlap tests are written as the three classic conditions (starts inside,
ends inside, fully contains), which together are symmetric.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from database import get_db, ACTIVE_STATUSES
from utils.datetime_helpers import format_date, format_timestamp, isoformat, to_utc
from .errors import InvalidInputError
from .vehicle import get_active_vehicles


# =============================================================================
# OVERLAP PREDICATES
# =============================================================================

def intervals_overlap(existing_start: datetime, existing_end: datetime,
                      new_start: datetime, new_end: datetime) -> bool:
    """
    Half-open overlap test for reservation intervals.

    Args:
        existing_start, existing_end: Existing reservation [start, end)
        new_start, new_end: Candidate interval [start, end)

    Returns:
        bool: True if the intervals share at least one instant
    """
    return (
        (existing_start <= new_start and existing_end > new_start) or
        (existing_start < new_end and existing_end >= new_end) or
        (existing_start >= new_start and existing_end <= new_end)
    )


def date_ranges_overlap(block_start: date, block_end: date,
                        range_start: date, range_end: date) -> bool:
    """
    Closed overlap test at date granularity (manual blocks).

    Args:
        block_start, block_end: Block [start, end], inclusive
        range_start, range_end: Candidate [start, end], inclusive

    Returns:
        bool: True if the ranges share at least one calendar date
    """
    return (
        (block_start <= range_start and block_end >= range_start) or
        (block_start <= range_end and block_end >= range_end) or
        (block_start >= range_start and block_end <= range_end)
    )


# =============================================================================
# RESULT TYPE
# =============================================================================

CONFLICT_AVAILABLE = 'available'
CONFLICT_BOOKING = 'booking_conflict'
CONFLICT_MANUAL_BLOCK = 'manual_block'


@dataclass
class AvailabilityResult:
    """Outcome of an availability check."""

    available: bool
    conflict_kind: str
    conflict_details: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'available': self.available,
            'conflict_kind': self.conflict_kind,
            'conflict_details': self.conflict_details,
        }


# =============================================================================
# OVERLAP QUERIES (Interval Store reads)
# =============================================================================

def get_overlapping_reservations(
    vehicle_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_reservation_id: int = None,
    statuses: tuple = ACTIVE_STATUSES,
    cursor=None
) -> list:
    """
    Get reservations on a vehicle whose interval overlaps [start_at, end_at).

    Args:
        vehicle_id: Vehicle ID
        start_at: Candidate start (aware datetime)
        end_at: Candidate end (aware datetime)
        exclude_reservation_id: Reservation to ignore (for updates)
        statuses: Statuses that count as holding the timeline
        cursor: Active transaction cursor

    Returns:
        list: Conflicting reservation dicts ordered by start
    """
    cur = cursor or get_db().cursor()
    new_start = format_timestamp(start_at)
    new_end = format_timestamp(end_at)
    placeholders = ','.join('?' * len(statuses))

    query = f'''
        SELECT r.id, r.status, r.start_at, r.end_at, r.renter_id, r.total_amount,
               u.full_name as renter_name
        FROM reservations r
        LEFT JOIN users u ON r.renter_id = u.id
        WHERE r.vehicle_id = ?
          AND r.status IN ({placeholders})
          AND (
              (r.start_at <= ? AND r.end_at > ?) OR
              (r.start_at < ? AND r.end_at >= ?) OR
              (r.start_at >= ? AND r.end_at <= ?)
          )
    '''
    params = [vehicle_id, *statuses,
              new_start, new_start,
              new_end, new_end,
              new_start, new_end]

    if exclude_reservation_id:
        query += ' AND r.id != ?'
        params.append(exclude_reservation_id)

    query += ' ORDER BY r.start_at'

    cur.execute(query, params)
    return [dict(row) for row in cur.fetchall()]


def get_overlapping_blocks(
    vehicle_id: int,
    start_date: date,
    end_date: date,
    blocked_only: bool = True,
    include_reservation_blocks: bool = False,
    cursor=None
) -> list:
    """
    Get availability blocks on a vehicle overlapping [start_date, end_date].

    Blocks tied to a reservation mirror that reservation and are skipped by
    default; the reservation row itself is authoritative for the timeline.

    Args:
        vehicle_id: Vehicle ID
        start_date: Candidate first date (inclusive)
        end_date: Candidate last date (inclusive)
        blocked_only: Only rows flagged unavailable
        include_reservation_blocks: Also return reservation-tied rows
        cursor: Active transaction cursor

    Returns:
        list: Block dicts ordered by start date
    """
    cur = cursor or get_db().cursor()
    first = format_date(start_date)
    last = format_date(end_date)

    query = '''
        SELECT b.*
        FROM availability_blocks b
        WHERE b.vehicle_id = ?
          AND (
              (b.start_date <= ? AND b.end_date >= ?) OR
              (b.start_date <= ? AND b.end_date >= ?) OR
              (b.start_date >= ? AND b.end_date <= ?)
          )
    '''
    params = [vehicle_id, first, first, last, last, first, last]

    if blocked_only:
        query += ' AND b.is_blocked = 1'

    if not include_reservation_blocks:
        query += ' AND b.reservation_id IS NULL'

    query += ' ORDER BY b.start_date, b.id'

    cur.execute(query, params)
    return [dict(row) for row in cur.fetchall()]


# =============================================================================
# CONFLICT DETECTOR
# =============================================================================

def _describe_reservation(row: dict) -> dict:
    return {
        'reservation_id': row['id'],
        'status': row['status'],
        'start_at': isoformat(row['start_at']),
        'end_at': isoformat(row['end_at']),
        'renter_name': row.get('renter_name'),
    }


def _describe_block(row: dict) -> dict:
    return {
        'block_id': row['id'],
        'start_date': row['start_date'],
        'end_date': row['end_date'],
        'reason': row.get('reason'),
        'block_type': row.get('block_type'),
        'notes': row.get('notes'),
    }


def check_availability(
    vehicle_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_reservation_id: int = None,
    cursor=None
) -> AvailabilityResult:
    """
    Check whether a vehicle is free for [start_at, end_at).

    Runs two overlap tests in fixed order: active reservations first
    (booking_conflict), then manual blocks flagged unavailable at date
    granularity (manual_block). A conflict is a normal negative result.

    Args:
        vehicle_id: Vehicle ID
        start_at: Requested start (aware datetime)
        end_at: Requested end (aware datetime)
        exclude_reservation_id: Reservation to ignore (for updates)
        cursor: Active transaction cursor; pass one to make the check part of
            the caller's write transaction

    Returns:
        AvailabilityResult

    Raises:
        InvalidInputError: invalid_dates when start_at >= end_at
    """
    start_at, end_at = to_utc(start_at), to_utc(end_at)
    if start_at >= end_at:
        raise InvalidInputError(
            'invalid_dates',
            'Start must be before end',
            {'start': start_at.isoformat(), 'end': end_at.isoformat()}
        )

    reservations = get_overlapping_reservations(
        vehicle_id, start_at, end_at,
        exclude_reservation_id=exclude_reservation_id,
        cursor=cursor
    )
    if reservations:
        return AvailabilityResult(
            available=False,
            conflict_kind=CONFLICT_BOOKING,
            conflict_details=[_describe_reservation(row) for row in reservations]
        )

    blocks = get_overlapping_blocks(vehicle_id, start_at.date(), end_at.date(), cursor=cursor)
    if blocks:
        return AvailabilityResult(
            available=False,
            conflict_kind=CONFLICT_MANUAL_BLOCK,
            conflict_details=[_describe_block(row) for row in blocks]
        )

    return AvailabilityResult(available=True, conflict_kind=CONFLICT_AVAILABLE)


# =============================================================================
# SEARCH
# =============================================================================

def search_available_vehicles(
    start_at: datetime,
    end_at: datetime,
    max_daily_rate: float = None
) -> list:
    """
    List active vehicles that are free for [start_at, end_at).

    Read path only: results may be stale by the time a reservation is
    requested; creation re-checks inside its own write transaction.

    Args:
        start_at: Requested start
        end_at: Requested end
        max_daily_rate: Optional daily rate ceiling

    Returns:
        list: Vehicle dicts
    """
    if start_at >= end_at:
        raise InvalidInputError('invalid_dates', 'Start must be before end')

    return [
        vehicle for vehicle in get_active_vehicles(max_daily_rate)
        if check_availability(vehicle['id'], start_at, end_at).available
    ]
