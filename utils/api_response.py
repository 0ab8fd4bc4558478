"""
JSON envelope shared by every rental API endpoint.

    {"success": true, "data": ..., "message": ..., "warning": ...}
    {"success": false, "error": ..., "kind": ..., "code": ..., "details": {...}}
"""

from flask import jsonify
from typing import Any


def api_success(
    data: dict | list | None = None,
    message: str | None = None,
    warning: str | None = None,
    status: int = 200,
    **extra_fields: Any
) -> tuple:
    """
    Wrap a payload in the success envelope.

    Empty message/warning are left out. Extra keyword fields land at the top
    level of the body.

    Returns:
        Tuple of (Response, status_code)
    """
    body = {'success': True}
    if data is not None:
        body['data'] = data
    if message:
        body['message'] = message
    if warning:
        # e.g. reservations cancelled by an admin override
        body['warning'] = warning
    body.update(extra_fields)
    return jsonify(body), status


def api_error(error: str, status: int = 400, **extra_fields: Any) -> tuple:
    """Wrap an error message (plus code/details) in the failure envelope."""
    body = {'success': False, 'error': error}
    body.update(extra_fields)
    return jsonify(body), status


def api_engine_error(exc) -> tuple:
    """
    Render a ReservationError.

    kind separates validation, conflict, authorization, deadline, state and
    not-found failures; code is the specific tag inside that kind.
    """
    return api_error(exc.message, exc.http_status, kind=exc.kind, code=exc.code, details=exc.details)
