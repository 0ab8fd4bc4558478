"""
Auto-approval scoring.

The score is built by an ordered list of rules. Gate rules either reject the
request outright with a fixed score or add their points; adjustment rules
then add a bonus or subtract a penalty from the running total. A request is
eligible for auto-approval when the final score reaches the threshold.

evaluate_auto_approval() is pure: it only reads its arguments. The wrapper
score_reservation_request() loads the host policy and renter trust first.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Optional

from flask import current_app

from utils.datetime_helpers import get_now, to_utc
from .host_policy import get_host_policy
from .renter_trust import get_renter_trust
from .vehicle import get_vehicle_by_id
from .errors import NotFoundError


@dataclass(frozen=True)
class ScoringInput:
    """Everything a rule may look at."""

    policy: Optional[dict]
    trust: Optional[dict]
    start_at: datetime
    total_amount: float
    now: datetime

    @property
    def advance_hours(self) -> float:
        return (self.start_at - self.now).total_seconds() / 3600

    @property
    def verification_score(self) -> int:
        return self.trust['verification_score'] if self.trust else 0


@dataclass(frozen=True)
class Gate:
    """Reject with ``reject_score`` when ``rejects`` holds, else add ``points``."""

    name: str
    rejects: Callable[[ScoringInput], bool]
    reject_score: int
    points: int
    reason: str


@dataclass(frozen=True)
class Adjustment:
    """Add ``delta`` to the running score (negative for penalties)."""

    name: str
    delta: Callable[[ScoringInput], int]


@dataclass
class ApprovalDecision:
    """Result of scoring one reservation request."""

    eligible: bool
    score: int
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {'eligible': self.eligible, 'score': self.score, 'details': self.details}


def _half_up(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _policy_disabled(data: ScoringInput) -> bool:
    return not data.policy or not data.policy['auto_approval_enabled']


def _short_notice(data: ScoringInput) -> bool:
    return data.advance_hours < data.policy['min_advance_hours']


def _over_limit(data: ScoringInput) -> bool:
    return data.total_amount > data.policy['max_auto_approve_amount']


def _unverified(data: ScoringInput) -> bool:
    return bool(data.policy['require_verification']) and \
        data.verification_score < data.policy['min_renter_score']


def _history_bonus(data: ScoringInput) -> int:
    return min(15, int(data.trust['booking_history_score']) // 5)


def _cancellation_penalty(data: ScoringInput) -> int:
    return -min(10, _half_up(data.trust['cancellation_rate']) // 2)


def _dispute_penalty(data: ScoringInput) -> int:
    return -min(10, int(data.trust['dispute_count']) * 5)


GATES = (
    Gate('policy', _policy_disabled, 0, 0, 'Host has not enabled auto-approval'),
    Gate('advance_notice', _short_notice, 10, 20, 'Insufficient advance booking time'),
    Gate('amount', _over_limit, 20, 25, 'Booking amount exceeds auto-approval limit'),
    Gate('verification', _unverified, 30, 20, 'Renter verification score too low'),
)

# Only applied when the renter has trust data on record
ADJUSTMENTS = (
    Adjustment('history_bonus', _history_bonus),
    Adjustment('cancellation_penalty', _cancellation_penalty),
    Adjustment('dispute_penalty', _dispute_penalty),
)


def _rejection_details(gate: Gate, data: ScoringInput) -> dict:
    details = {'rule': gate.name, 'reason': gate.reason}
    if gate.name == 'advance_notice':
        details.update(required_hours=data.policy['min_advance_hours'],
                       actual_hours=round(data.advance_hours, 2))
    elif gate.name == 'amount':
        details.update(limit=data.policy['max_auto_approve_amount'], amount=data.total_amount)
    elif gate.name == 'verification':
        details.update(required_score=data.policy['min_renter_score'],
                       actual_score=data.verification_score)
    return details


def evaluate_auto_approval(
    policy: Optional[dict],
    trust: Optional[dict],
    start_at: datetime,
    total_amount: float,
    now: datetime,
    threshold: int = 80
) -> ApprovalDecision:
    """
    Score a reservation request for auto-approval.

    Args:
        policy: Host policy, None when the host has none
        trust: Renter trust data, None when the renter has none
        start_at: Requested start
        total_amount: Reservation total
        now: Evaluation instant
        threshold: Minimum score for eligibility

    Returns:
        ApprovalDecision
    """
    data = ScoringInput(policy, trust, to_utc(start_at), total_amount, to_utc(now))

    score = 0
    for gate in GATES:
        if gate.rejects(data):
            return ApprovalDecision(False, gate.reject_score, _rejection_details(gate, data))
        score += gate.points

    applied = {}
    if trust is not None:
        for adjustment in ADJUSTMENTS:
            delta = adjustment.delta(data)
            applied[adjustment.name] = delta
            score += delta

    details = {
        'advance_hours': round(data.advance_hours, 2),
        'amount_check': True,
        'verification_score': data.verification_score,
        'booking_history_score': trust['booking_history_score'] if trust else None,
        'cancellation_rate': trust['cancellation_rate'] if trust else None,
        'dispute_count': trust['dispute_count'] if trust else None,
        'adjustments': applied,
        'calculated_score': score,
        'threshold': threshold,
    }
    return ApprovalDecision(score >= threshold, score, details)


def score_reservation_request(
    vehicle_id: int,
    renter_id: int,
    start_at: datetime,
    total_amount: float,
    cursor=None
) -> ApprovalDecision:
    """
    Load the vehicle host's policy and the renter's trust data, then score.

    Args:
        vehicle_id: Vehicle ID
        renter_id: Renter user ID
        start_at: Requested start
        total_amount: Reservation total
        cursor: Active transaction cursor

    Returns:
        ApprovalDecision
    """
    vehicle = get_vehicle_by_id(vehicle_id)
    if not vehicle:
        raise NotFoundError('Vehicle not found', code='invalid_vehicle', details={'vehicle_id': vehicle_id})

    trust = get_renter_trust(renter_id, cursor=cursor)
    return evaluate_auto_approval(
        get_host_policy(vehicle['host_id'], cursor=cursor),
        trust if trust['exists'] else None,
        start_at,
        total_amount,
        get_now(),
        current_app.config.get('AUTO_APPROVAL_THRESHOLD', 80)
    )
