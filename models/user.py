"""
User model and data access functions.
Local mirror of the external identity provider plus Flask-Login integration.
"""

from database import get_db

USER_ROLES = ('renter', 'host', 'admin')


class User:
    """
    Caller resolved from the X-User-Id header.
    Only id, username, role and active flag are mirrored locally.
    """

    def __init__(self, row):
        self.id = row['id']
        self.username = row['username']
        self.full_name = row.get('full_name')
        self.role = row['role']
        self.active = row['active']
        self.created_at = row.get('created_at')

    # Flask-Login protocol
    @property
    def is_authenticated(self):
        return True

    @property
    def is_active(self):
        return bool(self.active)

    @property
    def is_anonymous(self):
        return False

    def get_id(self):
        return str(self.id)

    @property
    def is_admin(self):
        return self.role == 'admin'


def get_user_by_id(user_id: int) -> dict:
    """
    Get user by ID.

    Args:
        user_id: User ID

    Returns:
        User dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM users WHERE id = ?', (user_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_user_by_username(username: str) -> dict:
    """
    Get user by username.

    Args:
        username: Username to search for

    Returns:
        User dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM users WHERE username = ?', (username,))
    row = cursor.fetchone()
    return dict(row) if row else None


def create_user(username: str, role: str = 'renter', full_name: str = None) -> int:
    """
    Register a user mirrored from the identity provider.

    Args:
        username: Unique username
        role: 'renter', 'host' or 'admin'
        full_name: Display name

    Returns:
        New user ID

    Raises:
        ValueError: If the role is unknown or the username already exists
    """
    if role not in USER_ROLES:
        raise ValueError(f'Invalid role: {role}')

    db = get_db()
    cursor = db.cursor()

    cursor.execute('SELECT id FROM users WHERE username = ?', (username,))
    if cursor.fetchone():
        raise ValueError(f'Username already exists: {username}')

    cursor.execute('''
        INSERT INTO users (username, full_name, role)
        VALUES (?, ?, ?)
    ''', (username, full_name, role))
    db.commit()
    return cursor.lastrowid


def is_admin(user_id: int) -> bool:
    """Check whether the user is an active admin."""
    user = get_user_by_id(user_id) if user_id is not None else None
    return bool(user and user['role'] == 'admin' and user['active'] == 1)
