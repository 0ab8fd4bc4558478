"""
Tests for externally driven status transitions and reservation-tied blocks.
"""

import pytest

from models.availability_block import get_blocks_by_vehicle
from models.errors import AuthorizationError, InvalidInputError, StateError
from models.renter_trust import get_renter_trust
from models.reservation_crud import get_reservation
from models.reservation_log import get_reservation_logs
from models.reservation_state import (
    EXTERNAL_TRANSITIONS, TERMINAL_STATUSES, advance_reservation_status, cancel_reservation
)


def tied_blocks(vehicle_id):
    return [b for b in get_blocks_by_vehicle(vehicle_id) if b['reservation_id']]


class TestTransitionTable:
    """The table never leaves a terminal status."""

    def test_terminal_statuses_have_no_exits(self):
        for status in TERMINAL_STATUSES:
            assert status not in EXTERNAL_TRANSITIONS

    def test_nothing_enters_rejected(self):
        for targets in EXTERNAL_TRANSITIONS.values():
            assert 'REJECTED' not in targets


class TestAdvanceReservationStatus:
    """confirm, start, complete, dispute, resolve."""

    def test_host_confirms_pending(self, ctx, actors, make_reservation):
        created = make_reservation()
        result = advance_reservation_status(created.reservation_id, 'CONFIRMED', actors['host'])

        assert (result.previous_status, result.status) == ('PENDING', 'CONFIRMED')
        reservation = get_reservation(created.reservation_id)
        assert reservation['approved_by'] == actors['host']

        blocks = tied_blocks(actors['vehicle'])
        assert len(blocks) == 1
        assert blocks[0]['block_type'] == 'booking'
        assert (blocks[0]['start_date'], blocks[0]['end_date']) == ('2025-06-12', '2025-06-14')

    def test_host_cannot_start_trip(self, ctx, actors, make_reservation):
        created = make_reservation()
        advance_reservation_status(created.reservation_id, 'CONFIRMED', actors['host'])
        with pytest.raises(AuthorizationError):
            advance_reservation_status(created.reservation_id, 'IN_PROGRESS', actors['host'])

    def test_renter_cannot_confirm(self, ctx, actors, make_reservation):
        created = make_reservation()
        with pytest.raises(AuthorizationError):
            advance_reservation_status(created.reservation_id, 'CONFIRMED', actors['renter'])

    def test_full_trip(self, ctx, actors, make_reservation):
        created = make_reservation()
        rid = created.reservation_id

        advance_reservation_status(rid, 'CONFIRMED', actors['admin'])
        advance_reservation_status(rid, 'IN_PROGRESS', actors['admin'])
        assert len(tied_blocks(actors['vehicle'])) == 1

        result = advance_reservation_status(rid, 'COMPLETED', actors['admin'], notes='Returned clean')
        assert result.trust_updated is True
        assert tied_blocks(actors['vehicle']) == []

        trust = get_renter_trust(actors['renter'])
        assert trust['completed_bookings'] == 1

        actions = [log['action_type'] for log in get_reservation_logs(rid)]
        assert actions == ['created', 'confirmed', 'started', 'completed']

    def test_completed_is_immutable(self, ctx, actors, make_reservation):
        created = make_reservation()
        rid = created.reservation_id
        for status in ('CONFIRMED', 'IN_PROGRESS', 'COMPLETED'):
            advance_reservation_status(rid, status, actors['admin'])

        for status in ('CONFIRMED', 'IN_PROGRESS', 'DISPUTED', 'CANCELLED'):
            with pytest.raises(StateError) as exc:
                advance_reservation_status(rid, status, actors['admin'])
            assert exc.value.current_status == 'COMPLETED'

        assert get_reservation(rid)['status'] == 'COMPLETED'

    def test_illegal_skip(self, ctx, actors, make_reservation):
        created = make_reservation()
        with pytest.raises(StateError) as exc:
            advance_reservation_status(created.reservation_id, 'COMPLETED', actors['admin'])
        assert exc.value.details['allowed'] == ['CONFIRMED']

    def test_unknown_target(self, ctx, actors, make_reservation):
        created = make_reservation()
        with pytest.raises(InvalidInputError) as exc:
            advance_reservation_status(created.reservation_id, 'REJECTED', actors['admin'])
        assert exc.value.code == 'invalid_status'

    def test_dispute_then_cancel(self, ctx, actors, make_reservation):
        created = make_reservation(total_amount=900.0)
        rid = created.reservation_id
        for status in ('CONFIRMED', 'IN_PROGRESS', 'DISPUTED'):
            advance_reservation_status(rid, status, actors['admin'])

        assert get_renter_trust(actors['renter'])['dispute_count'] == 1

        advance_reservation_status(rid, 'CANCELLED', actors['admin'], notes='Damage claim upheld')
        reservation = get_reservation(rid)
        assert reservation['status'] == 'CANCELLED'
        assert reservation['cancelled_by_type'] == 'admin'
        assert reservation['refund_amount'] == 900.0
        assert tied_blocks(actors['vehicle']) == []

        # A resolved dispute still counts against the renter
        assert get_renter_trust(actors['renter'])['dispute_count'] == 1


class TestCancellationReleasesBlocks:
    """Cancelling a confirmed reservation frees its tied block."""

    def test_cancel_confirmed(self, ctx, actors, make_reservation):
        created = make_reservation()
        advance_reservation_status(created.reservation_id, 'CONFIRMED', actors['host'])
        assert len(tied_blocks(actors['vehicle'])) == 1

        cancel_reservation(created.reservation_id, actors['renter'])
        assert tied_blocks(actors['vehicle']) == []
