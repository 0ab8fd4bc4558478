"""
Reservation API routes.
Create, read, reject, cancel and status transitions.
"""

from flask import request
from flask_login import login_required, current_user

from models.errors import AuthorizationError
from models.reservation import (
    advance_reservation_status,
    cancel_reservation,
    create_reservation,
    get_cancellation_info,
    get_reservation,
    reject_reservation,
    serialize_reservation,
)
from models.reservation_log import get_reservation_logs
from utils.api_response import api_success
from utils.decorators import role_required
from utils.validators import get_json_body, require_fields


def _ensure_party(reservation: dict) -> None:
    """Only the renter, the host or an admin may see a reservation."""
    if current_user.id not in (reservation['renter_id'], reservation['host_id']) and not current_user.is_admin:
        raise AuthorizationError('Not a party to this reservation', {'reservation_id': reservation['id']})


def register_routes(bp):
    """Register reservation routes on the blueprint."""

    @bp.route('/reservations', methods=['POST'])
    @login_required
    @role_required('renter')
    def create_reservation_request():
        """
        Request a reservation.

        Request body:
            vehicle_id: Vehicle ID
            start_at: ISO 8601 start
            end_at: ISO 8601 end (exclusive)
            total_amount: Reservation total
            host_id: Optional expected host
            security_deposit: Optional deposit
            daily_rate, total_days: Optional pricing snapshot
            booking_details: Optional pickup/dropoff/payment fields

        Returns:
            JSON with reservation ID, status and approval type
        """
        data = get_json_body()
        require_fields(data, 'vehicle_id', 'start_at', 'end_at', 'total_amount')

        result = create_reservation(
            vehicle_id=data['vehicle_id'],
            renter_id=current_user.id,
            start_at=data['start_at'],
            end_at=data['end_at'],
            total_amount=data['total_amount'],
            host_id=data.get('host_id'),
            security_deposit=data.get('security_deposit', 0),
            daily_rate=data.get('daily_rate'),
            total_days=data.get('total_days'),
            booking_details=data.get('booking_details')
        )
        return api_success(data=result.to_dict(), message=result.message, status=201)

    @bp.route('/reservations/<int:reservation_id>')
    @login_required
    def reservation_detail(reservation_id):
        """Get a reservation with its log trail."""
        reservation = get_reservation(reservation_id)
        _ensure_party(reservation)

        data = serialize_reservation(reservation)
        data['logs'] = get_reservation_logs(reservation_id)
        return api_success(data=data)

    @bp.route('/reservations/<int:reservation_id>/reject', methods=['POST'])
    @login_required
    def reject_reservation_request(reservation_id):
        """
        Reject a reservation as its host.

        Request body:
            reason: Rejection reason
        """
        data = request.get_json(silent=True) or {}
        result = reject_reservation(reservation_id, current_user.id, data.get('reason'))
        return api_success(data=result.to_dict(), message='Booking rejected successfully')

    @bp.route('/reservations/<int:reservation_id>/cancel', methods=['POST'])
    @login_required
    def cancel_reservation_request(reservation_id):
        """
        Cancel a reservation as its renter.

        Request body:
            reason: Cancellation reason
        """
        data = request.get_json(silent=True) or {}
        result = cancel_reservation(reservation_id, current_user.id, data.get('reason'))
        return api_success(
            data=result.to_dict(),
            message=f'Booking cancelled successfully. Refund amount: {result.refund_amount:.2f}'
        )

    @bp.route('/reservations/<int:reservation_id>/cancellation-info')
    @login_required
    def cancellation_info(reservation_id):
        """Whether the renter can still cancel, the deadline and the refund."""
        reservation = get_reservation(reservation_id)
        _ensure_party(reservation)

        renter_id = current_user.id if current_user.id == reservation['renter_id'] else None
        info = get_cancellation_info(reservation_id, renter_id)
        return api_success(data=info.to_dict())

    @bp.route('/reservations/<int:reservation_id>/status', methods=['POST'])
    @login_required
    def change_reservation_status(reservation_id):
        """
        Apply an external transition (admin, or host confirming a request).

        Request body:
            status: CONFIRMED, IN_PROGRESS, COMPLETED, DISPUTED or CANCELLED
            notes: Optional notes
        """
        data = get_json_body()
        require_fields(data, 'status', code='invalid_status')

        result = advance_reservation_status(reservation_id, data['status'], current_user.id, data.get('notes'))
        return api_success(data=result.to_dict(), message=f"Reservation moved to {result.status}")
