"""
Input validation helper functions.
Request-body and query-string parsing shared by the API routes.
"""

import math

from flask import request

from models.errors import InvalidInputError


def get_json_body() -> dict:
    """
    Get the request JSON object.

    Raises:
        InvalidInputError: If the body is missing or not a JSON object
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInputError('invalid_body', 'Request body must be a JSON object')
    return data


def require_fields(data: dict, *fields: str, code: str = 'missing_fields') -> None:
    """
    Check that every field is present and not None.

    Raises:
        InvalidInputError: Listing the missing fields
    """
    missing = [name for name in fields if data.get(name) is None]
    if missing:
        raise InvalidInputError(code, f"Missing required fields: {', '.join(missing)}",
                                {'missing': missing})


def parse_bool(value, default: bool = False) -> bool:
    """
    Parse a JSON or query-string boolean.

    Accepts true/false, 1/0 and 'true'/'false'/'yes'/'no'.

    Raises:
        InvalidInputError: If the value is not a recognizable boolean
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ('true', '1', 'yes'):
        return True
    if isinstance(value, str) and value.strip().lower() in ('false', '0', 'no'):
        return False
    raise InvalidInputError('invalid_boolean', f'Invalid boolean value: {value!r}')


def parse_float_arg(name: str, default: float = None) -> float:
    """
    Read an optional float query argument.

    Raises:
        InvalidInputError: If present but not numeric
    """
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        value = None
    if value is None or not math.isfinite(value):
        raise InvalidInputError('invalid_argument', f'{name} must be a finite number', {name: raw})
    return value


def parse_int_arg(name: str, default: int = None) -> int:
    """
    Read an optional integer query argument.

    Raises:
        InvalidInputError: If present but not an integer
    """
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidInputError('invalid_argument', f'{name} must be an integer', {name: raw})
