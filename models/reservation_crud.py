"""
Reservation CRUD operations.
Creation with atomic conflict check and auto-approval, reads, and the
deadline arithmetic shared by the lifecycle transitions.
"""

import json
import logging
import math
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from database import get_db, write_transaction
from utils.datetime_helpers import format_timestamp, get_now, isoformat, load_timestamp, parse_timestamp
from .approval_scoring import score_reservation_request
from .errors import ConflictError, InvalidInputError, NotFoundError, UnavailableError
from .renter_trust import record_new_booking
from .reservation_availability import CONFLICT_BOOKING, check_availability
from .reservation_log import add_reservation_log
from .vehicle import get_vehicle_by_id

logger = logging.getLogger(__name__)


# =============================================================================
# DEADLINES
# =============================================================================

def compute_rejection_deadline(start_at: datetime) -> datetime:
    """Last instant the host may reject: start minus the rejection window."""
    return start_at - timedelta(days=current_app.config.get('REJECTION_WINDOW_DAYS', 1))


def compute_cancellation_deadline(start_at: datetime) -> datetime:
    """Last instant the renter may cancel: start minus the cancellation window."""
    return start_at - timedelta(days=current_app.config.get('CANCELLATION_WINDOW_DAYS', 3))


# =============================================================================
# RESULT TYPE
# =============================================================================

@dataclass
class CreateReservationResult:
    """Outcome of a successful creation."""

    reservation_id: int
    status: str
    approval_type: str
    message: str
    approval_score: int
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'reservation_id': self.reservation_id,
            'status': self.status,
            'approval_type': self.approval_type,
            'message': self.message,
            'approval_score': self.approval_score,
            'details': self.details,
        }


# =============================================================================
# VALIDATION
# =============================================================================

def parse_interval(start_at, end_at) -> tuple:
    """
    Parse and check a requested [start, end) interval.

    Raises:
        InvalidInputError: invalid_dates if either side is malformed or start >= end
    """
    try:
        start, end = parse_timestamp(start_at), parse_timestamp(end_at)
    except (TypeError, ValueError):
        raise InvalidInputError('invalid_dates', 'Start and end must be ISO 8601 timestamps',
                                {'start': str(start_at), 'end': str(end_at)})
    if start >= end:
        raise InvalidInputError('invalid_dates', 'Start must be before end',
                                {'start': start.isoformat(), 'end': end.isoformat()})
    return start, end


def _validate_amount(name: str, value) -> float:
    try:
        amount = float(value) if not isinstance(value, bool) and isinstance(value, (int, float)) else None
    except OverflowError:
        amount = None
    if amount is None or not math.isfinite(amount) or amount < 0:
        raise InvalidInputError('invalid_amount', f'{name} must be a finite non-negative number', {name: str(value)})
    return amount


# =============================================================================
# CREATE
# =============================================================================

def create_reservation(
    vehicle_id: int,
    renter_id: int,
    start_at,
    end_at,
    total_amount: float,
    host_id: int = None,
    security_deposit: float = 0.0,
    daily_rate: float = None,
    total_days: int = None,
    booking_details: dict = None
) -> CreateReservationResult:
    """
    Create a reservation request.

    The availability check and the insert run in one write transaction; the
    exclusion trigger on reservations rejects any overlapping active row that
    slips past the check.

    Args:
        vehicle_id: Vehicle ID (must be ACTIVE)
        renter_id: Requesting renter
        start_at: Start timestamp (ISO 8601 or datetime)
        end_at: End timestamp, exclusive
        total_amount: Reservation total
        host_id: Expected host; must match the vehicle's host when given
        security_deposit: Deposit held, never refunded through cancellation
        daily_rate: Rate snapshot (defaults to the vehicle's rate)
        total_days: Billed days (defaults to the interval rounded up to days)
        booking_details: Pickup/dropoff/payment fields stored as-is

    Returns:
        CreateReservationResult

    Raises:
        InvalidInputError: invalid_dates, invalid_amount, invalid_host
        NotFoundError: invalid_vehicle
        ConflictError: booking_conflict
        UnavailableError: vehicle_unavailable
    """
    start, end = parse_interval(start_at, end_at)
    total_amount = _validate_amount('total_amount', total_amount)
    security_deposit = _validate_amount('security_deposit', security_deposit or 0)

    now = get_now()
    if start < now:
        raise InvalidInputError('invalid_dates', 'Start must not be in the past',
                                {'start': start.isoformat(), 'now': now.isoformat()})

    vehicle = get_vehicle_by_id(vehicle_id)
    if not vehicle or vehicle['status'] != 'ACTIVE':
        raise NotFoundError('Vehicle not found or inactive', code='invalid_vehicle',
                            details={'vehicle_id': vehicle_id})

    if host_id is not None and host_id != vehicle['host_id']:
        raise InvalidInputError('invalid_host', 'Host does not own this vehicle',
                                {'vehicle_id': vehicle_id, 'host_id': host_id})
    host_id = vehicle['host_id']

    if daily_rate is None:
        daily_rate = vehicle['daily_rate']
    else:
        daily_rate = _validate_amount('daily_rate', daily_rate)
    if total_days is None:
        total_days = math.ceil((end - start).total_seconds() / 86400)
    elif isinstance(total_days, bool) or not isinstance(total_days, int) or total_days < 1:
        raise InvalidInputError('invalid_amount', 'total_days must be a positive integer', {'total_days': str(total_days)})

    now_str = format_timestamp(now)

    try:
        with write_transaction() as db:
            cursor = db.cursor()

            availability = check_availability(vehicle_id, start, end, cursor=cursor)
            if not availability.available:
                if availability.conflict_kind == CONFLICT_BOOKING:
                    raise ConflictError(
                        'booking_conflict',
                        f'Booking conflict detected: {len(availability.conflict_details)} '
                        f'existing bookings overlap',
                        {'conflicting_bookings': availability.conflict_details}
                    )
                raise UnavailableError(
                    'vehicle_unavailable',
                    f'Vehicle not available: {availability.conflict_kind}',
                    availability.to_dict()
                )

            decision = score_reservation_request(vehicle_id, renter_id, start, total_amount, cursor=cursor)

            if decision.eligible:
                status, approval_type = 'AUTO_APPROVED', 'automatic'
                message = 'Booking automatically approved'
            else:
                status, approval_type = 'PENDING', 'manual'
                message = 'Booking created - awaiting host approval'

            cursor.execute('''
                INSERT INTO reservations (
                    vehicle_id, renter_id, host_id, start_at, end_at,
                    total_amount, security_deposit, daily_rate, total_days,
                    status, approval_type, auto_approval_eligible, approval_score,
                    approved_at, approved_by,
                    rejection_deadline, cancellation_deadline,
                    booking_details, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                vehicle_id, renter_id, host_id, format_timestamp(start), format_timestamp(end),
                total_amount, security_deposit, daily_rate, total_days,
                status, approval_type, 1 if decision.eligible else 0, decision.score,
                now_str if decision.eligible else None,
                host_id if decision.eligible else None,
                format_timestamp(compute_rejection_deadline(start)),
                format_timestamp(compute_cancellation_deadline(start)),
                json.dumps(booking_details, default=str) if booking_details else None,
                now_str, now_str
            ))
            reservation_id = cursor.lastrowid

            add_reservation_log(cursor, reservation_id, 'created', renter_id, 'renter', now_str,
                                metadata={'status': status, 'approval_score': decision.score})
            if decision.eligible:
                add_reservation_log(cursor, reservation_id, 'auto_approved', None, 'system', now_str,
                                    metadata=decision.details)

            record_new_booking(cursor, renter_id)

    except sqlite3.IntegrityError as e:
        if 'booking_conflict' in str(e):
            logger.warning(f"Concurrent booking on vehicle {vehicle_id} rejected by store constraint")
            raise ConflictError('booking_conflict', 'Vehicle was booked by a concurrent request',
                                {'vehicle_id': vehicle_id})
        raise

    logger.info(f"Reservation {reservation_id} created on vehicle {vehicle_id} "
                f"for renter {renter_id}: {status} (score {decision.score})")

    return CreateReservationResult(
        reservation_id=reservation_id,
        status=status,
        approval_type=approval_type,
        message=message,
        approval_score=decision.score,
        details={
            'auto_approval_score': decision.score,
            'eligibility_details': decision.details,
            'conflict_check_passed': True,
            'availability_check_passed': True,
        }
    )


# =============================================================================
# READ
# =============================================================================

def get_reservation_by_id(reservation_id: int, cursor=None) -> Optional[dict]:
    """
    Get reservation by ID.

    cancellation_deadline is recomputed from start_at; the stored column is
    only a cache of that value.

    Args:
        reservation_id: Reservation ID
        cursor: Active transaction cursor

    Returns:
        dict or None: Reservation data
    """
    cur = cursor or get_db().cursor()
    cur.execute('SELECT * FROM reservations WHERE id = ?', (reservation_id,))
    row = cur.fetchone()
    if not row:
        return None

    reservation = dict(row)
    reservation['cancellation_deadline'] = format_timestamp(
        compute_cancellation_deadline(load_timestamp(reservation['start_at']))
    )
    return reservation


def get_reservation(reservation_id: int) -> dict:
    """
    Get a reservation or fail.

    Raises:
        NotFoundError: If the reservation does not exist
    """
    reservation = get_reservation_by_id(reservation_id)
    if not reservation:
        raise NotFoundError('Reservation not found', details={'reservation_id': reservation_id})
    return reservation


TIMESTAMP_FIELDS = (
    'start_at', 'end_at', 'approved_at', 'rejected_at', 'rejection_deadline',
    'cancellation_deadline', 'cancelled_at', 'created_at', 'updated_at',
)


def serialize_reservation(reservation: dict) -> dict:
    """Render a reservation for the API: ISO 8601 timestamps, decoded details."""
    data = dict(reservation)
    for key in TIMESTAMP_FIELDS:
        data[key] = isoformat(data.get(key))
    data['auto_approval_eligible'] = bool(data.get('auto_approval_eligible'))
    details = data.get('booking_details')
    data['booking_details'] = json.loads(details) if details else None
    return data
