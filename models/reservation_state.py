"""
Reservation state management.
Host rejection, renter cancellation and the externally driven transitions
(confirm, start, complete, dispute), each guarded by status, actor and
deadline checks evaluated inside the writing transaction.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from database import write_transaction
from utils.audit import log_audit
from utils.datetime_helpers import format_timestamp, get_now, isoformat, load_timestamp
from .availability_block import create_reservation_block, release_reservation_blocks
from .errors import AuthorizationError, DeadlineError, InvalidInputError, NotFoundError, StateError
from .renter_trust import refresh_trust_best_effort
from .reservation_crud import compute_cancellation_deadline, compute_rejection_deadline, get_reservation_by_id
from .reservation_log import add_reservation_log
from .user import is_admin

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

TERMINAL_STATUSES = ('COMPLETED', 'CANCELLED', 'REJECTED')
REJECTABLE_STATUSES = ('PENDING', 'AUTO_APPROVED')
CANCELLABLE_STATUSES = ('PENDING', 'AUTO_APPROVED', 'CONFIRMED')

# Transitions driven by payment capture, trip handover and dispute handling
EXTERNAL_TRANSITIONS = {
    'PENDING': ('CONFIRMED',),
    'AUTO_APPROVED': ('CONFIRMED',),
    'CONFIRMED': ('IN_PROGRESS',),
    'IN_PROGRESS': ('COMPLETED', 'DISPUTED'),
    'DISPUTED': ('COMPLETED', 'CANCELLED'),
}

# Statuses whose dates are mirrored by a reservation-tied block
BLOCK_HOLDING_STATUSES = ('CONFIRMED', 'IN_PROGRESS')

ACTION_TYPES = {
    'CONFIRMED': 'confirmed',
    'IN_PROGRESS': 'started',
    'COMPLETED': 'completed',
    'DISPUTED': 'disputed',
    'CANCELLED': 'cancelled',
}


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class TransitionResult:
    """Outcome of a status transition."""

    reservation_id: int
    previous_status: str
    status: str
    trust_updated: Optional[bool] = None

    def to_dict(self) -> dict:
        return {
            'reservation_id': self.reservation_id,
            'previous_status': self.previous_status,
            'status': self.status,
            'trust_updated': self.trust_updated,
        }


@dataclass
class CancellationResult(TransitionResult):
    """Outcome of a renter cancellation."""

    refund_amount: float = 0.0

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['refund_amount'] = self.refund_amount
        return data


@dataclass
class CancellationInfo:
    """Whether a renter can still cancel, and what they would get back."""

    reservation_id: int
    can_cancel: bool
    reason: str
    cancellation_deadline: str
    days_until_deadline: int
    hours_until_deadline: int
    potential_refund: float

    def to_dict(self) -> dict:
        return {
            'reservation_id': self.reservation_id,
            'can_cancel': self.can_cancel,
            'reason': self.reason,
            'cancellation_deadline': self.cancellation_deadline,
            'days_until_deadline': self.days_until_deadline,
            'hours_until_deadline': self.hours_until_deadline,
            'potential_refund': self.potential_refund,
        }


# =============================================================================
# HELPERS
# =============================================================================

def _load_for_update(cursor, reservation_id: int) -> dict:
    reservation = get_reservation_by_id(reservation_id, cursor=cursor)
    if not reservation:
        raise NotFoundError('Reservation not found', details={'reservation_id': reservation_id})
    return reservation


def _compare_and_set(cursor, reservation: dict, new_status: str, assignments: dict, now: str) -> None:
    """
    Move a reservation from its loaded status to new_status.

    Raises:
        StateError: If the row's status changed since it was loaded
    """
    columns = ''.join(f', {key} = ?' for key in assignments)
    cursor.execute(f'''
        UPDATE reservations
        SET status = ?, updated_at = ?{columns}
        WHERE id = ? AND status = ?
    ''', [new_status, now, *assignments.values(), reservation['id'], reservation['status']])

    if cursor.rowcount != 1:
        raise StateError('Reservation status changed concurrently', current_status=reservation['status'])


def refund_for(reservation: dict) -> float:
    """Refund owed on cancellation: the total amount, security deposit excluded."""
    return float(reservation['total_amount'])


def mark_cancelled(cursor, reservation: dict, actor_id: int, actor_type: str, reason: str, now: str) -> float:
    """
    Cancel a reservation inside the caller's transaction.

    Releases reservation-tied blocks and appends a log row. Guards on actor
    and deadline belong to the caller.

    Returns:
        float: Refund amount
    """
    refund = refund_for(reservation)
    _compare_and_set(cursor, reservation, 'CANCELLED', {
        'cancelled_at': now,
        'cancelled_by': actor_id,
        'cancelled_by_type': actor_type,
        'cancellation_reason': reason,
        'refund_amount': refund,
    }, now)
    release_reservation_blocks(cursor, reservation['id'])
    add_reservation_log(cursor, reservation['id'], 'cancelled', actor_id, actor_type, now,
                        notes=reason, metadata={'previous_status': reservation['status'],
                                                'refund_amount': refund})
    return refund


# =============================================================================
# HOST REJECTION
# =============================================================================

def reject_reservation(reservation_id: int, host_id: int, reason: str = None) -> TransitionResult:
    """
    Reject a reservation as its host.

    Legal from PENDING or AUTO_APPROVED while now <= rejection_deadline.

    Args:
        reservation_id: Reservation ID
        host_id: Acting host
        reason: Rejection reason

    Returns:
        TransitionResult

    Raises:
        NotFoundError, AuthorizationError, StateError, DeadlineError
    """
    now = get_now()
    now_str = format_timestamp(now)

    with write_transaction() as db:
        cursor = db.cursor()
        reservation = _load_for_update(cursor, reservation_id)

        if reservation['host_id'] != host_id:
            raise AuthorizationError('Unauthorized - you are not the host for this booking',
                                     {'reservation_id': reservation_id})

        if reservation['status'] not in REJECTABLE_STATUSES:
            raise StateError(f"Cannot reject booking with status: {reservation['status']}",
                             current_status=reservation['status'])

        # Stored at creation; rows written without it fall back to start - 1 day
        deadline = reservation['rejection_deadline'] or format_timestamp(
            compute_rejection_deadline(load_timestamp(reservation['start_at'])))
        if now > load_timestamp(deadline):
            raise DeadlineError('deadline_passed',
                                f'Rejection deadline passed. Deadline was: {isoformat(deadline)}',
                                deadline=isoformat(deadline))

        _compare_and_set(cursor, reservation, 'REJECTED', {
            'rejected_at': now_str,
            'rejected_by': host_id,
            'rejection_reason': reason,
        }, now_str)
        release_reservation_blocks(cursor, reservation_id)
        add_reservation_log(cursor, reservation_id, 'rejected', host_id, 'host', now_str,
                            notes=reason, metadata={'previous_status': reservation['status']})

    logger.info(f"Reservation {reservation_id} rejected by host {host_id}")
    log_audit('REJECT', 'reservation', reservation_id, host_id, {'reason': reason})
    trust_updated = refresh_trust_best_effort(reservation['renter_id'])

    return TransitionResult(reservation_id, reservation['status'], 'REJECTED', trust_updated)


# =============================================================================
# RENTER CANCELLATION
# =============================================================================

def _cancellation_block(reservation: dict, renter_id: Optional[int], now) -> Optional[tuple]:
    """
    First guard that forbids a renter cancellation, as (error, message).

    Returns None when cancellation is allowed.
    """
    if renter_id is not None and reservation['renter_id'] != renter_id:
        return 'unauthorized', 'Not authorized to cancel this booking'

    if reservation['status'] not in CANCELLABLE_STATUSES:
        return 'wrong_status', f"Cannot cancel booking with status: {reservation['status']}"

    if load_timestamp(reservation['start_at']) <= now:
        return 'already_started', 'Cannot cancel booking that has already started'

    deadline = compute_cancellation_deadline(load_timestamp(reservation['start_at']))
    if now > deadline:
        return 'deadline_passed', (
            f'Cancellation deadline has passed. Must cancel at least 3 days before start date '
            f'(deadline was {deadline.isoformat()})'
        )

    return None


def cancel_reservation(reservation_id: int, renter_id: int, reason: str = None) -> CancellationResult:
    """
    Cancel a reservation as its renter.

    Legal from PENDING, AUTO_APPROVED or CONFIRMED while now is at or before
    the cancellation deadline and strictly before the start.

    Args:
        reservation_id: Reservation ID
        renter_id: Acting renter
        reason: Cancellation reason

    Returns:
        CancellationResult with the refund amount

    Raises:
        NotFoundError, AuthorizationError, StateError, DeadlineError
    """
    reason = reason or 'Cancelled by renter'
    now = get_now()
    now_str = format_timestamp(now)

    with write_transaction() as db:
        cursor = db.cursor()
        reservation = _load_for_update(cursor, reservation_id)

        blocked = _cancellation_block(reservation, renter_id, now)
        if blocked:
            code, message = blocked
            if code == 'unauthorized':
                raise AuthorizationError(message, {'reservation_id': reservation_id})
            if code == 'wrong_status':
                raise StateError(message, current_status=reservation['status'])
            raise DeadlineError(code, message, deadline=isoformat(reservation['cancellation_deadline']))

        refund = mark_cancelled(cursor, reservation, renter_id, 'renter', reason, now_str)

    logger.info(f"Reservation {reservation_id} cancelled by renter {renter_id}, refund {refund:.2f}")
    log_audit('CANCEL', 'reservation', reservation_id, renter_id,
              {'reason': reason, 'refund_amount': refund})
    trust_updated = refresh_trust_best_effort(reservation['renter_id'])

    return CancellationResult(reservation_id, reservation['status'], 'CANCELLED', trust_updated,
                              refund_amount=refund)


def get_cancellation_info(reservation_id: int, renter_id: int = None) -> CancellationInfo:
    """
    Describe whether the renter may still cancel.

    Args:
        reservation_id: Reservation ID
        renter_id: Renter to check against (None skips the ownership check)

    Returns:
        CancellationInfo

    Raises:
        NotFoundError: If the reservation does not exist
    """
    reservation = get_reservation_by_id(reservation_id)
    if not reservation:
        raise NotFoundError('Reservation not found', details={'reservation_id': reservation_id})

    now = get_now()
    deadline = compute_cancellation_deadline(load_timestamp(reservation['start_at']))
    remaining = max(0.0, (deadline - now).total_seconds())

    blocked = _cancellation_block(reservation, renter_id, now)
    if blocked:
        reason = blocked[1]
    else:
        reason = f'Booking can be cancelled. {math.ceil(remaining / 86400)} days remaining until deadline'

    return CancellationInfo(
        reservation_id=reservation_id,
        can_cancel=blocked is None,
        reason=reason,
        cancellation_deadline=deadline.isoformat(),
        days_until_deadline=math.ceil(remaining / 86400),
        hours_until_deadline=math.ceil(remaining / 3600),
        potential_refund=refund_for(reservation) if blocked is None else 0.0,
    )


# =============================================================================
# EXTERNAL TRANSITIONS
# =============================================================================

def advance_reservation_status(
    reservation_id: int,
    new_status: str,
    actor_id: int,
    notes: str = None
) -> TransitionResult:
    """
    Apply a collaborator-driven transition (confirm, start, complete, dispute).

    Admins may apply any transition in EXTERNAL_TRANSITIONS; the vehicle's
    host may confirm a PENDING reservation. Terminal statuses never change.

    Args:
        reservation_id: Reservation ID
        new_status: Target status
        actor_id: Acting user
        notes: Optional notes for the log

    Returns:
        TransitionResult

    Raises:
        InvalidInputError, NotFoundError, AuthorizationError, StateError
    """
    if new_status not in ACTION_TYPES:
        raise InvalidInputError('invalid_status', f'Unknown target status: {new_status}',
                                {'allowed': sorted(ACTION_TYPES)})

    admin = is_admin(actor_id)
    now_str = format_timestamp(get_now())

    with write_transaction() as db:
        cursor = db.cursor()
        reservation = _load_for_update(cursor, reservation_id)
        current = reservation['status']

        host_approval = (reservation['host_id'] == actor_id
                         and current == 'PENDING' and new_status == 'CONFIRMED')
        if not (admin or host_approval):
            raise AuthorizationError('Only an admin can change this reservation status',
                                     {'reservation_id': reservation_id})

        if current in TERMINAL_STATUSES:
            raise StateError(f'Reservation is {current} and can no longer change', current_status=current)

        if new_status not in EXTERNAL_TRANSITIONS.get(current, ()):
            raise StateError(f'Cannot move reservation from {current} to {new_status}', current_status=current,
                             details={'allowed': list(EXTERNAL_TRANSITIONS.get(current, ()))})

        actor_type = 'admin' if admin else 'host'

        if new_status == 'CANCELLED':
            mark_cancelled(cursor, reservation, actor_id, actor_type, notes or 'Cancelled after dispute', now_str)
        else:
            assignments = {}
            if new_status == 'CONFIRMED' and not reservation['approved_at']:
                assignments = {'approved_at': now_str, 'approved_by': actor_id}
            _compare_and_set(cursor, reservation, new_status, assignments, now_str)

            if new_status in BLOCK_HOLDING_STATUSES:
                create_reservation_block(cursor, reservation, actor_id, now_str)
            elif new_status == 'COMPLETED':
                release_reservation_blocks(cursor, reservation_id)

            add_reservation_log(cursor, reservation_id, ACTION_TYPES[new_status], actor_id, actor_type,
                                now_str, notes=notes, metadata={'previous_status': current})

    logger.info(f"Reservation {reservation_id} moved {current} -> {new_status} by user {actor_id}")
    log_audit('STATUS', 'reservation', reservation_id, actor_id,
              {'from': current, 'to': new_status, 'notes': notes})

    trust_updated = None
    if new_status in ('COMPLETED', 'DISPUTED', 'CANCELLED'):
        trust_updated = refresh_trust_best_effort(reservation['renter_id'])

    return TransitionResult(reservation_id, current, new_status, trust_updated)
