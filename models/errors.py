"""
Reservation engine error types.

Every failure the engine reports is a ReservationError carrying a machine
readable ``code`` tag, a human message and a ``details`` dict. The subclasses
group the codes by kind so callers can render them differently:

    InvalidInputError   invalid_dates, invalid_pattern, invalid_amount, ...
    ConflictError       booking_conflict, manual_block
    UnavailableError    vehicle_unavailable
    AuthorizationError  unauthorized
    DeadlineError       deadline_passed, already_started
    StateError          wrong_status
    NotFoundError       not_found, invalid_vehicle

ReservationError subclasses ValueError so callers that only distinguish
"bad request" from "server error" keep working.
"""


class ReservationError(ValueError):
    """Base class for all engine errors."""

    kind = 'error'
    http_status = 400

    def __init__(self, code: str, message: str, details: dict = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Serializable form used by the API layer."""
        return {
            'kind': self.kind,
            'code': self.code,
            'error': self.message,
            'details': self.details,
        }


class InvalidInputError(ReservationError):
    """Malformed request rejected before any state is touched."""

    kind = 'validation'
    http_status = 400


class ConflictError(ReservationError):
    """Requested interval overlaps an active reservation or a manual block."""

    kind = 'conflict'
    http_status = 409


class UnavailableError(ReservationError):
    """Vehicle cannot take reservations for the requested range."""

    kind = 'conflict'
    http_status = 409


class AuthorizationError(ReservationError):
    """Actor is not allowed to perform the action."""

    kind = 'authorization'
    http_status = 403

    def __init__(self, message: str = 'Unauthorized', details: dict = None):
        super().__init__('unauthorized', message, details)


class DeadlineError(ReservationError):
    """Rejection or cancellation window has closed."""

    kind = 'deadline'
    http_status = 422

    def __init__(self, code: str, message: str, deadline: str = None, details: dict = None):
        details = dict(details or {})
        if deadline is not None:
            details['deadline'] = deadline
        super().__init__(code, message, details)
        self.deadline = deadline


class StateError(ReservationError):
    """Transition is not legal from the reservation's current status."""

    kind = 'state'
    http_status = 409

    def __init__(self, message: str, current_status: str = None, details: dict = None):
        details = dict(details or {})
        if current_status is not None:
            details['current_status'] = current_status
        super().__init__('wrong_status', message, details)
        self.current_status = current_status


class NotFoundError(ReservationError):
    """Referenced vehicle or reservation does not exist."""

    kind = 'not_found'
    http_status = 404

    def __init__(self, message: str, code: str = 'not_found', details: dict = None):
        super().__init__(code, message, details)
