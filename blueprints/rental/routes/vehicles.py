"""
Vehicle availability API routes.
Availability check, available-vehicle search and month calendar.
"""

from flask import request
from flask_login import login_required

from models.errors import InvalidInputError
from models.reservation_availability import check_availability, search_available_vehicles
from models.reservation_crud import parse_interval
from models.vehicle_calendar import get_month_calendar
from utils.api_response import api_success
from utils.datetime_helpers import get_today
from utils.validators import parse_float_arg, parse_int_arg


def _interval_from_args() -> tuple:
    start, end = request.args.get('start'), request.args.get('end')
    if not start or not end:
        raise InvalidInputError('invalid_dates', 'start and end query parameters are required')
    return parse_interval(start, end)


def register_routes(bp):
    """Register vehicle availability routes on the blueprint."""

    @bp.route('/vehicles/<int:vehicle_id>/availability')
    @login_required
    def vehicle_availability(vehicle_id):
        """
        Check whether a vehicle is free for [start, end).

        Query params:
            start: ISO 8601 start timestamp
            end: ISO 8601 end timestamp (exclusive)

        Returns:
            JSON with available, conflict_kind and conflict_details
        """
        start, end = _interval_from_args()
        result = check_availability(vehicle_id, start, end)
        return api_success(data=result.to_dict())

    @bp.route('/vehicles/available')
    @login_required
    def available_vehicles():
        """
        List active vehicles free for [start, end).

        Query params:
            start, end: ISO 8601 timestamps
            max_daily_rate: Optional rate ceiling

        Returns:
            JSON list of vehicles
        """
        start, end = _interval_from_args()
        vehicles = search_available_vehicles(start, end, parse_float_arg('max_daily_rate'))
        return api_success(data=vehicles, count=len(vehicles))

    @bp.route('/vehicles/<int:vehicle_id>/calendar')
    @login_required
    def vehicle_calendar(vehicle_id):
        """
        Per-day availability for a month.

        Query params:
            year: Calendar year (default: current)
            month: Month 1-12 (default: current)

        Returns:
            JSON list of {date, available, status, details}
        """
        today = get_today()
        year = parse_int_arg('year', today.year)
        month = parse_int_arg('month', today.month)

        days = get_month_calendar(vehicle_id, year, month)
        return api_success(data=[day.to_dict() for day in days], year=year, month=month)
