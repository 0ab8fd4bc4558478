"""
Flask extensions initialization.
Extensions are initialized here and then initialized with the app in app.py.
"""

from flask import current_app, request
from flask_login import LoginManager

# Initialize Flask-Login
login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    """
    Load user by ID for Flask-Login.

    Args:
        user_id: The user ID as a string

    Returns:
        User object or None if not found
    """
    from models.user import get_user_by_id, User

    try:
        user_dict = get_user_by_id(int(user_id))
    except (TypeError, ValueError):
        return None
    if user_dict:
        return User(user_dict)
    return None


@login_manager.request_loader
def load_user_from_request(req):
    """
    Resolve the caller from the identity header set by the API gateway.

    Identity management is external; the header carries the user id and the
    local users table only mirrors id, role and active flag.
    """
    header = current_app.config.get('USER_ID_HEADER', 'X-User-Id')
    user_id = req.headers.get(header)
    if not user_id:
        return None
    return load_user(user_id)


@login_manager.unauthorized_handler
def unauthorized():
    """Return a JSON 401 instead of redirecting to a login page."""
    from utils.api_response import api_error
    return api_error('Authentication required', 401, code='unauthenticated',
                     path=request.path)
