"""
Recurring availability patterns.
Expands a weekly day-of-week rule into one single-day block per matching
date, written with the same keyed upsert as manual blocks.
"""

import logging
from datetime import timedelta

from flask import current_app

from database import write_transaction
from utils.audit import log_audit
from utils.datetime_helpers import format_date, format_timestamp, get_now, parse_date
from .availability_block import ensure_can_manage, reservations_touching, upsert_block
from .errors import ConflictError, InvalidInputError

logger = logging.getLogger(__name__)

PATTERN_TYPES = ('weekly',)


def sunday_weekday(day) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def validate_pattern(pattern) -> list:
    """
    Check a recurring pattern and return its sorted weekdays.

    A pattern looks like {"type": "weekly", "days": [1, 2, 3, 4, 5]} with
    0=Sunday. Extra keys (start_time, end_time) are stored as given.

    Raises:
        InvalidInputError: invalid_pattern
    """
    if not isinstance(pattern, dict):
        raise InvalidInputError('invalid_pattern', 'Pattern must be an object')

    if pattern.get('type', 'weekly') not in PATTERN_TYPES:
        raise InvalidInputError('invalid_pattern', f"Unsupported pattern type: {pattern.get('type')}",
                                {'allowed': list(PATTERN_TYPES)})

    days = pattern.get('days')
    if not isinstance(days, list) or not days:
        raise InvalidInputError('invalid_pattern', 'Pattern must list at least one day of week')

    for day in days:
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise InvalidInputError('invalid_pattern', 'Days of week must be integers 0 (Sunday) to 6 (Saturday)',
                                    {'day': day})

    return sorted(set(days))


def matching_dates(days_of_week: list, start_date, end_date) -> list:
    """Every date in [start_date, end_date] whose weekday is in days_of_week."""
    dates = []
    current = start_date
    while current <= end_date:
        if sunday_weekday(current) in days_of_week:
            dates.append(current)
        current += timedelta(days=1)
    return dates


def expand_recurring_availability(
    vehicle_id: int,
    pattern: dict,
    start_date,
    end_date,
    available: bool = True,
    actor_id: int = None,
    reason: str = None
) -> dict:
    """
    Write one seasonal block per date matching the pattern.

    Re-running with the same pattern and range updates the same rows.

    Args:
        vehicle_id: Vehicle ID
        pattern: {"type": "weekly", "days": [...]} (0=Sunday)
        start_date: First date of the range
        end_date: Last date of the range, inclusive
        available: Whether matching days are open or blocked
        actor_id: Acting user (host of the vehicle or admin)
        reason: Free text reason

    Returns:
        dict: Number of rows written, their IDs and dates

    Raises:
        InvalidInputError: invalid_pattern or invalid_dates
        ConflictError: booking_conflict when a blocked day holds an active reservation
        NotFoundError, AuthorizationError
    """
    days_of_week = validate_pattern(pattern)

    try:
        first, last = parse_date(start_date), parse_date(end_date)
    except (TypeError, ValueError):
        raise InvalidInputError('invalid_dates', 'Dates must be YYYY-MM-DD')
    if first > last:
        raise InvalidInputError('invalid_pattern', 'Range start cannot be after range end',
                                {'start_date': format_date(first), 'end_date': format_date(last)})

    max_days = current_app.config.get('MAX_RECURRING_RANGE_DAYS', 366)
    if (last - first).days + 1 > max_days:
        raise InvalidInputError('invalid_pattern', f'Range cannot exceed {max_days} days',
                                {'max_days': max_days})

    ensure_can_manage(vehicle_id, actor_id)

    stored_pattern = dict(pattern, type=pattern.get('type', 'weekly'), days=days_of_week)
    reason = reason or 'Recurring availability pattern'
    notes = f"Recurring {stored_pattern['type']} availability for {','.join(str(d) for d in days_of_week)}"
    now = format_timestamp(get_now())
    dates = matching_dates(days_of_week, first, last)

    block_ids = []
    with write_transaction() as db:
        cursor = db.cursor()
        if not available:
            busy = {}
            for day in dates:
                for reservation in reservations_touching(cursor, vehicle_id, day, day):
                    busy.setdefault(reservation['id'], reservation)
            if busy:
                raise ConflictError('booking_conflict', 'Active reservations fall on days the pattern would block', {
                    'reservations': [
                        {'reservation_id': r['id'], 'status': r['status'],
                         'start_at': r['start_at'], 'end_at': r['end_at']}
                        for r in busy.values()
                    ]
                })

        for day in dates:
            block_ids.append(upsert_block(
                cursor, vehicle_id, day, day, available, 'seasonal',
                reason, actor_id, now, notes=notes, recurring_pattern=stored_pattern
            ))

    logger.info(f"Recurring pattern {days_of_week} expanded on vehicle {vehicle_id}: "
                f"{len(block_ids)} days between {format_date(first)} and {format_date(last)}")
    log_audit('RECURRING', 'vehicle', vehicle_id, actor_id, {
        'pattern': stored_pattern,
        'start_date': format_date(first),
        'end_date': format_date(last),
        'available': available,
        'blocks_written': len(block_ids),
    })

    return {
        'blocks_written': len(block_ids),
        'block_ids': block_ids,
        'dates': [format_date(day) for day in dates],
    }
