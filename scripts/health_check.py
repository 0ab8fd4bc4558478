#!/usr/bin/env python
"""
Reservation database health check.

Scans a database for integrity problems the engine should never produce:
- Data integrity (overlapping active reservations, inverted intervals)
- Business logic (stale cached deadlines, orphaned reservation blocks,
  manual blocks sitting on top of active reservations)

Usage:
    python scripts/health_check.py --db-path instance/rental.db
"""

import sqlite3
import argparse
import os
import sys

ACTIVE_STATUSES = ('PENDING', 'CONFIRMED', 'AUTO_APPROVED', 'IN_PROGRESS')
BLOCK_HOLDING_STATUSES = ('CONFIRMED', 'IN_PROGRESS')
CANCELLATION_WINDOW = '-3 days'
REJECTION_WINDOW = '-1 days'


def get_connection(db_path: str) -> sqlite3.Connection:
    """Open a read-only connection to the SQLite database."""
    conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
    conn.row_factory = sqlite3.Row
    return conn


def issue(category: str, check: str, severity: str, count: int, details: list) -> dict:
    """Create a standardized issue dict."""
    return {
        'category': category,
        'check': check,
        'severity': severity,
        'count': count,
        'details': details[:20]  # Cap at 20 examples
    }


def check_data_integrity(conn: sqlite3.Connection) -> list:
    """
    Check for data integrity issues.

    Returns list of issue dicts.
    """
    results = []
    cur = conn.cursor()
    _placeholders = ','.join('?' * len(ACTIVE_STATUSES))

    # --- 1. Double bookings ---
    cur.execute(f'''
        SELECT a.vehicle_id, a.id as first_id, b.id as second_id,
               a.start_at as first_start, a.end_at as first_end,
               b.start_at as second_start, b.end_at as second_end
        FROM reservations a
        JOIN reservations b
          ON a.vehicle_id = b.vehicle_id
         AND a.id < b.id
         AND a.start_at < b.end_at
         AND a.end_at > b.start_at
        WHERE a.status IN ({_placeholders})
          AND b.status IN ({_placeholders})
    ''', ACTIVE_STATUSES + ACTIVE_STATUSES)
    rows = cur.fetchall()
    results.append(issue(
        category='Data Integrity',
        check='Overlapping active reservations (same vehicle)',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[
            f"vehicle_id={r['vehicle_id']}: reservation {r['first_id']} "
            f"[{r['first_start']}, {r['first_end']}) overlaps {r['second_id']} "
            f"[{r['second_start']}, {r['second_end']})"
            for r in rows
        ]
    ))

    # --- 2. Inverted intervals ---
    cur.execute('''
        SELECT id, vehicle_id, start_at, end_at
        FROM reservations
        WHERE start_at >= end_at
    ''')
    rows = cur.fetchall()
    results.append(issue(
        category='Data Integrity',
        check='Reservations with start >= end',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[f"reservation {r['id']}: {r['start_at']} -> {r['end_at']}" for r in rows]
    ))

    cur.execute('''
        SELECT id, vehicle_id, start_date, end_date
        FROM availability_blocks
        WHERE start_date > end_date
    ''')
    rows = cur.fetchall()
    results.append(issue(
        category='Data Integrity',
        check='Blocks with start_date > end_date',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[f"block {r['id']}: {r['start_date']} -> {r['end_date']}" for r in rows]
    ))

    return results


def check_business_logic(conn: sqlite3.Connection) -> list:
    """
    Check for business logic violations.

    Returns list of issue dicts.
    """
    results = []
    cur = conn.cursor()

    # --- 1. Cached cancellation deadlines that no longer match start ---
    cur.execute('''
        SELECT id, start_at, cancellation_deadline
        FROM reservations
        WHERE cancellation_deadline IS NOT NULL
          AND cancellation_deadline != datetime(start_at, ?)
    ''', (CANCELLATION_WINDOW,))
    rows = cur.fetchall()
    results.append(issue(
        category='Business Logic',
        check='Stale cached cancellation deadlines (start minus 3 days wins)',
        severity='warn' if rows else 'ok',
        count=len(rows),
        details=[
            f"reservation {r['id']}: start {r['start_at']}, cached deadline {r['cancellation_deadline']}"
            for r in rows
        ]
    ))

    # --- 2. Rejection deadlines that do not match start ---
    cur.execute('''
        SELECT id, start_at, rejection_deadline
        FROM reservations
        WHERE rejection_deadline IS NULL
           OR rejection_deadline != datetime(start_at, ?)
    ''', (REJECTION_WINDOW,))
    rows = cur.fetchall()
    results.append(issue(
        category='Business Logic',
        check='Rejection deadlines not equal to start minus 1 day',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[
            f"reservation {r['id']}: start {r['start_at']}, deadline {r['rejection_deadline']}"
            for r in rows
        ]
    ))

    # --- 3. Reservation blocks left behind ---
    _holding = ','.join('?' * len(BLOCK_HOLDING_STATUSES))
    cur.execute(f'''
        SELECT b.id as block_id, b.reservation_id, r.status
        FROM availability_blocks b
        JOIN reservations r ON b.reservation_id = r.id
        WHERE r.status NOT IN ({_holding})
    ''', BLOCK_HOLDING_STATUSES)
    rows = cur.fetchall()
    results.append(issue(
        category='Business Logic',
        check='Reservation-tied blocks whose reservation no longer holds the vehicle',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[
            f"block {r['block_id']} tied to reservation {r['reservation_id']} ({r['status']})"
            for r in rows
        ]
    ))

    # --- 4. Manual blocks overlapping active reservations ---
    _active = ','.join('?' * len(ACTIVE_STATUSES))
    cur.execute(f'''
        SELECT b.id as block_id, b.vehicle_id, b.start_date, b.end_date,
               r.id as reservation_id, r.start_at, r.end_at
        FROM availability_blocks b
        JOIN reservations r ON r.vehicle_id = b.vehicle_id
        WHERE b.reservation_id IS NULL
          AND b.is_blocked = 1
          AND r.status IN ({_active})
          AND substr(r.start_at, 1, 10) <= b.end_date
          AND substr(r.end_at, 1, 10) >= b.start_date
    ''', ACTIVE_STATUSES)
    rows = cur.fetchall()
    results.append(issue(
        category='Business Logic',
        check='Manual blocks overlapping active reservations',
        severity='warn' if rows else 'ok',
        count=len(rows),
        details=[
            f"block {r['block_id']} [{r['start_date']}, {r['end_date']}] on vehicle_id={r['vehicle_id']} "
            f"overlaps reservation {r['reservation_id']} [{r['start_at']}, {r['end_at']})"
            for r in rows
        ]
    ))

    return results


def run_checks(db_path: str) -> list:
    """Run every check against a database file."""
    conn = get_connection(db_path)
    try:
        return check_data_integrity(conn) + check_business_logic(conn)
    finally:
        conn.close()


def main():
    parser = argparse.ArgumentParser(
        description='Run integrity checks on a reservation database'
    )
    parser.add_argument('--db-path', type=str,
                        default=os.environ.get('DATABASE_PATH', 'instance/rental.db'),
                        help='Path to SQLite database file')
    args = parser.parse_args()

    if not os.path.exists(args.db_path):
        print(f"Error: Database not found: {args.db_path}")
        sys.exit(1)

    results = run_checks(args.db_path)

    for r in results:
        icon = {'ok': '[OK]', 'warn': '[WARN]', 'fail': '[FAIL]'}.get(r['severity'], '[?]')
        print(f"{icon} {r['check']} ({r['count']} issues)")
        for d in r['details'][:3]:
            print(f"    -> {d}")

    sys.exit(1 if any(r['severity'] == 'fail' for r in results) else 0)


if __name__ == '__main__':
    main()
