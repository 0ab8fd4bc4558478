"""
Vehicle model.
Minimal data access for rentable vehicles; listing management itself lives
outside the reservation engine.
"""

from database import get_db

VEHICLE_STATUSES = ('PENDING_APPROVAL', 'ACTIVE', 'INACTIVE', 'SUSPENDED')


def create_vehicle(
    host_id: int,
    make: str,
    model: str,
    daily_rate: float,
    year: int = None,
    status: str = 'ACTIVE'
) -> int:
    """
    Create a vehicle owned by a host.

    Args:
        host_id: Owning host user ID
        make: Manufacturer
        model: Model name
        daily_rate: Base daily rate
        year: Model year
        status: Initial status

    Returns:
        int: New vehicle ID

    Raises:
        ValueError: If the status is unknown or the rate is negative
    """
    if status not in VEHICLE_STATUSES:
        raise ValueError(f'Invalid vehicle status: {status}')
    if daily_rate < 0:
        raise ValueError('Daily rate cannot be negative')

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO vehicles (host_id, make, model, year, daily_rate, status)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', (host_id, make, model, year, daily_rate, status))
    db.commit()
    return cursor.lastrowid


def get_vehicle_by_id(vehicle_id: int) -> dict:
    """
    Get vehicle by ID.

    Args:
        vehicle_id: Vehicle ID

    Returns:
        dict or None: Vehicle data
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM vehicles WHERE id = ?', (vehicle_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_active_vehicles(max_daily_rate: float = None) -> list:
    """
    Get active vehicles, newest first.

    Args:
        max_daily_rate: Optional upper bound on daily rate

    Returns:
        list: Vehicle dicts
    """
    query = "SELECT * FROM vehicles WHERE status = 'ACTIVE'"
    params = []

    if max_daily_rate is not None:
        query += ' AND daily_rate <= ?'
        params.append(max_daily_rate)

    query += ' ORDER BY created_at DESC, id DESC'

    db = get_db()
    cursor = db.cursor()
    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def set_vehicle_status(vehicle_id: int, status: str) -> bool:
    """
    Change vehicle status (approval workflow / admin suspension).

    Returns:
        bool: True if a row was updated
    """
    if status not in VEHICLE_STATUSES:
        raise ValueError(f'Invalid vehicle status: {status}')

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        UPDATE vehicles
        SET status = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (status, vehicle_id))
    db.commit()
    return cursor.rowcount > 0


def is_host_of(vehicle_id: int, user_id: int) -> bool:
    """Check whether the user owns the vehicle."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT 1 FROM vehicles WHERE id = ? AND host_id = ?', (vehicle_id, user_id))
    return cursor.fetchone() is not None
