"""
Database seed data.
Initial data population for fresh database installations.
"""


def seed_database(db):
    """Insert initial seed data."""

    # 1. Users (ids mirror the external identity provider)
    users_data = [
        ('admin', 'Platform Admin', 'admin'),
        ('demo_host', 'Demo Host', 'host'),
        ('demo_renter', 'Demo Renter', 'renter'),
    ]

    for username, full_name, role in users_data:
        db.execute('''
            INSERT INTO users (username, full_name, role)
            VALUES (?, ?, ?)
        ''', (username, full_name, role))

    host_id = db.execute("SELECT id FROM users WHERE username = 'demo_host'").fetchone()[0]
    renter_id = db.execute("SELECT id FROM users WHERE username = 'demo_renter'").fetchone()[0]

    # 2. Demo vehicles
    vehicles_data = [
        ('Toyota', 'Avanza', 2022, 350000.00),
        ('Honda', 'Brio', 2021, 300000.00),
    ]

    for make, model, year, daily_rate in vehicles_data:
        db.execute('''
            INSERT INTO vehicles (host_id, make, model, year, daily_rate, status)
            VALUES (?, ?, ?, ?, ?, 'ACTIVE')
        ''', (host_id, make, model, year, daily_rate))

    # 3. Default policy for the demo host (auto-approval disabled)
    db.execute('''
        INSERT INTO host_policies
        (host_id, auto_approval_enabled, max_auto_approve_amount, min_advance_hours,
         require_verification, min_renter_score)
        VALUES (?, 0, 7750000.00, 24, 1, 70)
    ''', (host_id,))

    # 4. Default trust row for the demo renter
    db.execute('''
        INSERT INTO renter_trust (renter_id, verification_score, booking_history_score)
        VALUES (?, 0, 50)
    ''', (renter_id,))
