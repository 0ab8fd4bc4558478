"""
Reservation engine public API.

This module re-exports the functions of the split modules:
- reservation_availability.py: Overlap predicates, conflict detection, search
- approval_scoring.py: Auto-approval rule evaluation
- reservation_crud.py: Create, read and deadline arithmetic
- reservation_state.py: Rejection, cancellation and external transitions
- availability_block.py / recurring_availability.py: Manual blocks
- vehicle_calendar.py: Month calendar projection
"""

# Availability
from .reservation_availability import (
    intervals_overlap,
    date_ranges_overlap,
    AvailabilityResult,
    check_availability,
    search_available_vehicles,
)

# Scoring
from .approval_scoring import (
    ApprovalDecision,
    evaluate_auto_approval,
    score_reservation_request,
)

# CRUD operations
from .reservation_crud import (
    CreateReservationResult,
    compute_rejection_deadline,
    compute_cancellation_deadline,
    create_reservation,
    get_reservation,
    get_reservation_by_id,
    serialize_reservation,
)

# State transitions
from .reservation_state import (
    TERMINAL_STATUSES,
    EXTERNAL_TRANSITIONS,
    TransitionResult,
    CancellationResult,
    CancellationInfo,
    reject_reservation,
    cancel_reservation,
    get_cancellation_info,
    advance_reservation_status,
)

# Blocks and calendar
from .availability_block import (
    set_manual_block,
    delete_block,
    partial_unblock,
    get_block_by_id,
    get_blocks_by_vehicle,
)
from .recurring_availability import expand_recurring_availability
from .vehicle_calendar import CalendarDay, get_month_calendar

# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    # Availability
    'intervals_overlap',
    'date_ranges_overlap',
    'AvailabilityResult',
    'check_availability',
    'search_available_vehicles',

    # Scoring
    'ApprovalDecision',
    'evaluate_auto_approval',
    'score_reservation_request',

    # CRUD
    'CreateReservationResult',
    'compute_rejection_deadline',
    'compute_cancellation_deadline',
    'create_reservation',
    'get_reservation',
    'get_reservation_by_id',
    'serialize_reservation',

    # State management
    'TERMINAL_STATUSES',
    'EXTERNAL_TRANSITIONS',
    'TransitionResult',
    'CancellationResult',
    'CancellationInfo',
    'reject_reservation',
    'cancel_reservation',
    'get_cancellation_info',
    'advance_reservation_status',

    # Blocks
    'set_manual_block',
    'delete_block',
    'partial_unblock',
    'get_block_by_id',
    'get_blocks_by_vehicle',
    'expand_recurring_availability',

    # Calendar
    'CalendarDay',
    'get_month_calendar',
]
