"""
Database schema definitions.
Table creation, indexes, exclusion triggers and structure management.
"""

# Reservation statuses that hold a vehicle's timeline
ACTIVE_STATUSES = ('PENDING', 'CONFIRMED', 'AUTO_APPROVED', 'IN_PROGRESS')

RESERVATION_STATUSES = (
    'PENDING', 'AUTO_APPROVED', 'CONFIRMED', 'IN_PROGRESS',
    'COMPLETED', 'CANCELLED', 'REJECTED', 'DISPUTED'
)

BLOCK_TYPES = ('manual', 'maintenance', 'personal', 'seasonal', 'booking')


def _sql_list(values) -> str:
    return ', '.join(f"'{value}'" for value in values)


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'audit_log',
        'reservation_logs',
        'availability_blocks',
        'reservations',
        'renter_trust',
        'host_policies',
        'vehicles',
        'users'
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Users (mirror of the external identity provider)
    db.execute('''
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE NOT NULL,
            full_name TEXT,
            role TEXT NOT NULL DEFAULT 'renter'
                CHECK (role IN ('renter', 'host', 'admin')),
            active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 2. Vehicles
    db.execute('''
        CREATE TABLE vehicles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            host_id INTEGER NOT NULL REFERENCES users(id),
            make TEXT NOT NULL,
            model TEXT NOT NULL,
            year INTEGER,
            daily_rate REAL NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'ACTIVE'
                CHECK (status IN ('PENDING_APPROVAL', 'ACTIVE', 'INACTIVE', 'SUSPENDED')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 3. Reservations (half-open [start_at, end_at), UTC text timestamps)
    db.execute(f'''
        CREATE TABLE reservations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            vehicle_id INTEGER NOT NULL REFERENCES vehicles(id),
            renter_id INTEGER NOT NULL REFERENCES users(id),
            host_id INTEGER NOT NULL REFERENCES users(id),
            start_at TEXT NOT NULL,
            end_at TEXT NOT NULL,
            total_amount REAL NOT NULL,
            security_deposit REAL DEFAULT 0,
            daily_rate REAL,
            total_days INTEGER,
            status TEXT NOT NULL DEFAULT 'PENDING'
                CHECK (status IN ({_sql_list(RESERVATION_STATUSES)})),
            approval_type TEXT NOT NULL DEFAULT 'manual'
                CHECK (approval_type IN ('manual', 'automatic')),
            auto_approval_eligible INTEGER DEFAULT 0,
            approval_score INTEGER,
            approved_at TEXT,
            approved_by INTEGER REFERENCES users(id),
            rejected_at TEXT,
            rejected_by INTEGER REFERENCES users(id),
            rejection_reason TEXT,
            rejection_deadline TEXT,
            cancellation_deadline TEXT,
            cancelled_at TEXT,
            cancelled_by INTEGER REFERENCES users(id),
            cancelled_by_type TEXT CHECK (cancelled_by_type IN ('renter', 'host', 'admin')),
            cancellation_reason TEXT,
            refund_amount REAL,
            booking_details TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            CHECK (start_at < end_at)
        )
    ''')

    # 4. Availability blocks (closed [start_date, end_date], date granularity)
    db.execute(f'''
        CREATE TABLE availability_blocks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            vehicle_id INTEGER NOT NULL REFERENCES vehicles(id) ON DELETE CASCADE,
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            is_blocked INTEGER NOT NULL DEFAULT 1,
            block_type TEXT NOT NULL DEFAULT 'manual'
                CHECK (block_type IN ({_sql_list(BLOCK_TYPES)})),
            reason TEXT,
            notes TEXT,
            recurring_pattern TEXT,
            reservation_id INTEGER REFERENCES reservations(id) ON DELETE CASCADE,
            created_by INTEGER REFERENCES users(id),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            CHECK (start_date <= end_date)
        )
    ''')

    # 5. Host auto-approval policies
    db.execute('''
        CREATE TABLE host_policies (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            host_id INTEGER UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            auto_approval_enabled INTEGER NOT NULL DEFAULT 0,
            max_auto_approve_amount REAL NOT NULL,
            min_advance_hours INTEGER NOT NULL,
            require_verification INTEGER NOT NULL DEFAULT 1,
            min_renter_score INTEGER NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 6. Renter trust signals
    db.execute('''
        CREATE TABLE renter_trust (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            renter_id INTEGER UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            verification_score INTEGER NOT NULL DEFAULT 0,
            booking_history_score INTEGER NOT NULL DEFAULT 50,
            cancellation_rate REAL NOT NULL DEFAULT 0,
            dispute_count INTEGER NOT NULL DEFAULT 0,
            total_bookings INTEGER NOT NULL DEFAULT 0,
            completed_bookings INTEGER NOT NULL DEFAULT 0,
            last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 7. Reservation lifecycle log
    db.execute('''
        CREATE TABLE reservation_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            reservation_id INTEGER NOT NULL REFERENCES reservations(id) ON DELETE CASCADE,
            action_type TEXT NOT NULL,
            action_by INTEGER REFERENCES users(id),
            action_by_type TEXT CHECK (action_by_type IN ('renter', 'host', 'admin', 'system')),
            notes TEXT,
            metadata TEXT,
            created_at TEXT NOT NULL
        )
    ''')

    # 8. Audit log
    db.execute('''
        CREATE TABLE audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER,
            action TEXT NOT NULL,
            entity_type TEXT,
            entity_id INTEGER,
            changes TEXT,
            ip_address TEXT,
            user_agent TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')


def create_indexes(db):
    """Create performance indexes."""

    # Vehicle indexes
    db.execute('CREATE INDEX idx_vehicles_host ON vehicles(host_id)')
    db.execute('CREATE INDEX idx_vehicles_status ON vehicles(status)')

    # Reservation indexes
    db.execute('CREATE INDEX idx_reservations_timeline ON reservations(vehicle_id, status, start_at, end_at)')
    db.execute('CREATE INDEX idx_reservations_renter ON reservations(renter_id)')
    db.execute('CREATE INDEX idx_reservations_host ON reservations(host_id)')

    # Block indexes
    db.execute('CREATE INDEX idx_blocks_lookup ON availability_blocks(vehicle_id, start_date, end_date, is_blocked)')
    db.execute('CREATE INDEX idx_blocks_reservation ON availability_blocks(reservation_id)')

    # Log indexes
    db.execute('CREATE INDEX idx_reservation_logs_reservation ON reservation_logs(reservation_id)')
    db.execute('CREATE INDEX idx_audit_log_entity ON audit_log(entity_type, entity_id)')


def create_triggers(db):
    """
    Create the exclusion triggers on reservations.

    No two active reservations for the same vehicle may overlap. The check
    runs inside SQLite on every insert and on every update that touches the
    interval, vehicle or status, so the guarantee holds even for writers that
    skip the application-level conflict check.
    """
    active = _sql_list(ACTIVE_STATUSES)

    db.execute(f'''
        CREATE TRIGGER reservations_no_overlap_insert
        BEFORE INSERT ON reservations
        WHEN NEW.status IN ({active})
        BEGIN
            SELECT RAISE(ABORT, 'booking_conflict')
            WHERE EXISTS (
                SELECT 1 FROM reservations r
                WHERE r.vehicle_id = NEW.vehicle_id
                  AND r.status IN ({active})
                  AND r.start_at < NEW.end_at
                  AND r.end_at > NEW.start_at
            );
        END
    ''')

    db.execute(f'''
        CREATE TRIGGER reservations_no_overlap_update
        BEFORE UPDATE OF vehicle_id, start_at, end_at, status ON reservations
        WHEN NEW.status IN ({active})
        BEGIN
            SELECT RAISE(ABORT, 'booking_conflict')
            WHERE EXISTS (
                SELECT 1 FROM reservations r
                WHERE r.vehicle_id = NEW.vehicle_id
                  AND r.id != NEW.id
                  AND r.status IN ({active})
                  AND r.start_at < NEW.end_at
                  AND r.end_at > NEW.start_at
            );
        END
    ''')
