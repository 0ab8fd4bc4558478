"""
Vehicle blocking API routes.
Endpoints for manual and bulk blocks, partial unblocking and recurring patterns.
"""

from flask import current_app, request
from flask_login import login_required, current_user

from models.availability_block import (
    bulk_set_manual_block, delete_block, get_block_by_id, get_blocks_by_vehicle, partial_unblock,
    set_manual_block
)
from models.errors import NotFoundError
from models.recurring_availability import expand_recurring_availability
from utils.api_response import api_success
from utils.decorators import role_required
from utils.validators import get_json_body, parse_bool, require_fields


def register_routes(bp):
    """Register blocking routes on the blueprint."""

    @bp.route('/vehicles/<int:vehicle_id>/blocks')
    @login_required
    def list_blocks(vehicle_id):
        """
        List a vehicle's blocks.

        Query params:
            date_from, date_to: Optional YYYY-MM-DD filters
        """
        blocks = get_blocks_by_vehicle(
            vehicle_id,
            date_from=request.args.get('date_from'),
            date_to=request.args.get('date_to')
        )
        return api_success(data=blocks, count=len(blocks))

    @bp.route('/vehicles/<int:vehicle_id>/blocks', methods=['POST'])
    @login_required
    def set_block(vehicle_id):
        """
        Mark a date range available or unavailable.

        Request body:
            start_date: First date YYYY-MM-DD
            end_date: Last date YYYY-MM-DD (default: start_date)
            available: false to block (default), true to open
            block_type: manual, maintenance, personal or seasonal
            reason: Reason for blocking
            notes: Additional notes
            override_bookings: Admin only, cancel overlapping reservations

        Returns:
            JSON with block ID and any cancelled reservations
        """
        data = get_json_body()
        require_fields(data, 'start_date', code='invalid_dates')

        result = set_manual_block(
            vehicle_id=vehicle_id,
            start_date=data['start_date'],
            end_date=data.get('end_date', data['start_date']),
            available=parse_bool(data.get('available'), default=False),
            reason=data.get('reason'),
            actor_id=current_user.id,
            block_type=data.get('block_type', 'manual'),
            notes=data.get('notes'),
            override_bookings=parse_bool(data.get('override_bookings'), default=False)
        )

        warning = None
        if result['cancelled_reservations']:
            warning = f"{len(result['cancelled_reservations'])} reservations cancelled by override"
        return api_success(data=result, message='Availability updated', warning=warning, status=201)

    @bp.route('/vehicles/blocks/bulk', methods=['POST'])
    @login_required
    @role_required('admin')
    def set_bulk_blocks():
        """
        Apply one date range to several vehicles (admin only).

        Request body:
            vehicle_ids: List of vehicle IDs
            start_date, end_date: Closed date range YYYY-MM-DD
            available: false to block (default), true to open
            reason: Reason for blocking
            override_bookings: Cancel overlapping reservations

        Returns:
            JSON list with one outcome per vehicle
        """
        data = get_json_body()
        require_fields(data, 'vehicle_ids', 'start_date', code='invalid_dates')

        results = bulk_set_manual_block(
            vehicle_ids=data['vehicle_ids'],
            start_date=data['start_date'],
            end_date=data.get('end_date', data['start_date']),
            available=parse_bool(data.get('available'), default=False),
            reason=data.get('reason'),
            actor_id=current_user.id,
            override_bookings=parse_bool(data.get('override_bookings'), default=False)
        )

        failed = sum(1 for entry in results if not entry['success'])
        warning = f'{failed} vehicles were not updated' if failed else None
        return api_success(data=results, message='Bulk availability processed', warning=warning,
                           updated=len(results) - failed, failed=failed)

    @bp.route('/vehicles/<int:vehicle_id>/blocks/<int:block_id>', methods=['DELETE'])
    @login_required
    def remove_block(vehicle_id, block_id):
        """
        Remove a block, or clear part of it.

        Query params:
            start_date, end_date: Optional sub-range to clear; when omitted
                the whole block is deleted

        Returns:
            JSON with the action taken
        """
        block = get_block_by_id(block_id)
        if not block or block['vehicle_id'] != vehicle_id:
            raise NotFoundError('Block not found', details={'block_id': block_id})

        start_date = request.args.get('start_date')
        end_date = request.args.get('end_date', start_date)

        if start_date:
            result = partial_unblock(block_id, start_date, end_date, current_user.id)
            return api_success(data=result, message='Block updated')

        delete_block(block_id, current_user.id)
        return api_success(data={'action': 'deleted', 'block_ids': []}, message='Block deleted')

    @bp.route('/vehicles/<int:vehicle_id>/blocks/recurring', methods=['POST'])
    @login_required
    def set_recurring_blocks(vehicle_id):
        """
        Expand a weekly pattern into single-day blocks.

        Request body:
            pattern: {"type": "weekly", "days": [1, 2, 3, 4, 5]} (0=Sunday)
            start_date: First date of the range
            end_date: Last date of the range
            available: Whether matching days are open (default true)
            reason: Free text reason

        Returns:
            JSON with number of days written
        """
        data = get_json_body()
        require_fields(data, 'pattern', code='invalid_pattern')
        require_fields(data, 'start_date', 'end_date', code='invalid_dates')

        result = expand_recurring_availability(
            vehicle_id=vehicle_id,
            pattern=data['pattern'],
            start_date=data['start_date'],
            end_date=data['end_date'],
            available=parse_bool(data.get('available'), default=True),
            actor_id=current_user.id,
            reason=data.get('reason')
        )
        current_app.logger.debug(f"Recurring blocks for vehicle {vehicle_id}: {result['blocks_written']}")
        return api_success(data=result, message='Recurring availability applied', status=201)
