"""
Route decorators for authentication and authorization.
Provides role-based access control for API routes.
"""

from functools import wraps
from flask_login import login_required, current_user

from utils.api_response import api_error


def role_required(*roles: str):
    """
    Decorator to require one of the given roles for a route.

    Usage:
        @bp.route('/reservations/<int:reservation_id>/status', methods=['POST'])
        @login_required
        @role_required('admin')
        def change_status(reservation_id):
            ...

    Args:
        *roles: Accepted roles ('renter', 'host', 'admin')

    Returns:
        Decorator function
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if current_user.role not in roles:
                return api_error('Insufficient role for this action', 403,
                                 code='unauthorized', details={'required_roles': list(roles)})

            return func(*args, **kwargs)
        return wrapper
    return decorator


# Re-export login_required for convenience
__all__ = ['login_required', 'role_required']
