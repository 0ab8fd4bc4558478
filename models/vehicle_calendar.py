"""
Vehicle month calendar.
Read-only per-day projection of reservations and manual blocks.
"""

import calendar as month_calendar
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from database import get_db, ACTIVE_STATUSES
from utils.datetime_helpers import format_date, format_timestamp, load_timestamp, parse_date
from .errors import InvalidInputError, NotFoundError
from .vehicle import get_vehicle_by_id

DAY_AVAILABLE = 'available'
DAY_BOOKED = 'booked'
DAY_BLOCKED = 'blocked'

# Day bounds end at the next midnight, which 9999-12-31 does not have
MAX_CALENDAR_YEAR = 9998


@dataclass
class CalendarDay:
    """One day of a vehicle's calendar."""

    date: str
    available: bool
    status: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {'date': self.date, 'available': self.available, 'status': self.status, 'details': self.details}


def _day_bounds(day: date) -> tuple:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def get_month_calendar(vehicle_id: int, year: int, month: int) -> list:
    """
    Project a vehicle's availability for every day of a month.

    A day is booked when an active reservation's [start, end) covers any
    instant of it, blocked when a manual block flagged unavailable covers
    it, and available otherwise. Booked wins over blocked.

    Args:
        vehicle_id: Vehicle ID
        year: Calendar year
        month: Month 1-12

    Returns:
        list: CalendarDay per day of the month

    Raises:
        InvalidInputError: invalid_month
        NotFoundError: If the vehicle does not exist
    """
    if (not isinstance(month, int) or not 1 <= month <= 12
            or not isinstance(year, int) or not 1 <= year <= MAX_CALENDAR_YEAR):
        raise InvalidInputError('invalid_month', 'Year and month must be a valid calendar month',
                                {'year': year, 'month': month})

    if not get_vehicle_by_id(vehicle_id):
        raise NotFoundError('Vehicle not found', details={'vehicle_id': vehicle_id})

    first = date(year, month, 1)
    last = date(year, month, month_calendar.monthrange(year, month)[1])
    month_start, _ = _day_bounds(first)
    _, month_end = _day_bounds(last)

    db = get_db()
    placeholders = ','.join('?' * len(ACTIVE_STATUSES))
    reservations = db.execute(f'''
        SELECT r.id, r.status, r.start_at, r.end_at, u.full_name as renter_name
        FROM reservations r
        LEFT JOIN users u ON r.renter_id = u.id
        WHERE r.vehicle_id = ?
          AND r.status IN ({placeholders})
          AND r.start_at < ? AND r.end_at > ?
        ORDER BY r.start_at, r.id
    ''', [vehicle_id, *ACTIVE_STATUSES, format_timestamp(month_end), format_timestamp(month_start)]).fetchall()

    blocks = db.execute('''
        SELECT id, start_date, end_date, reason, block_type, notes
        FROM availability_blocks
        WHERE vehicle_id = ?
          AND is_blocked = 1
          AND reservation_id IS NULL
          AND start_date <= ? AND end_date >= ?
        ORDER BY start_date, id
    ''', (vehicle_id, format_date(last), format_date(first))).fetchall()

    days = []
    current = first
    while current <= last:
        day_start, day_end = _day_bounds(current)

        booking = next((
            r for r in reservations
            if load_timestamp(r['start_at']) < day_end and load_timestamp(r['end_at']) > day_start
        ), None)

        block = None
        if booking is None:
            block = next((
                b for b in blocks
                if parse_date(b['start_date']) <= current <= parse_date(b['end_date'])
            ), None)

        if booking is not None:
            days.append(CalendarDay(format_date(current), False, DAY_BOOKED, {
                'reservation_id': booking['id'],
                'status': booking['status'],
                'renter': booking['renter_name'],
            }))
        elif block is not None:
            days.append(CalendarDay(format_date(current), False, DAY_BLOCKED, {
                'block_id': block['id'],
                'reason': block['reason'],
                'type': block['block_type'],
                'notes': block['notes'],
            }))
        else:
            days.append(CalendarDay(format_date(current), True, DAY_AVAILABLE))

        current += timedelta(days=1)

    return days
