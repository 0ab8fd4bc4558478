"""
Tests for host policies and renter trust data.
"""

import pytest

from models.errors import InvalidInputError
from models.host_policy import ensure_host_policy, get_host_policy, update_host_policy
from models.renter_trust import (
    get_renter_trust, recompute_renter_trust, refresh_trust_best_effort, set_verification_score
)
from models.reservation_state import cancel_reservation


class TestHostPolicy:
    """Lazy defaults and validated updates."""

    def test_missing_policy(self, ctx, actors):
        assert get_host_policy(actors['host']) is None

    def test_ensure_creates_defaults_once(self, ctx, actors):
        first = ensure_host_policy(actors['host'])
        second = ensure_host_policy(actors['host'])
        assert first['id'] == second['id']
        assert first['auto_approval_enabled'] is False
        assert first['require_verification'] is True
        assert first['min_advance_hours'] == 24

    def test_update(self, ctx, actors):
        policy = update_host_policy(actors['host'], {'auto_approval_enabled': True, 'min_advance_hours': 48})
        assert policy['auto_approval_enabled'] is True
        assert policy['min_advance_hours'] == 48
        assert policy['min_renter_score'] == 70

    def test_empty_update_returns_policy(self, ctx, actors):
        assert update_host_policy(actors['host'], {})['host_id'] == actors['host']

    def test_rejects_bad_amount(self, ctx, actors):
        with pytest.raises(InvalidInputError) as exc:
            update_host_policy(actors['host'], {'max_auto_approve_amount': -5})
        assert exc.value.code == 'invalid_policy'


class TestRenterTrust:
    """Defaults, recompute and verification score."""

    def test_defaults_without_row(self, ctx, actors):
        trust = get_renter_trust(actors['renter'])
        assert trust['exists'] is False
        assert trust['booking_history_score'] == 50
        assert trust['verification_score'] == 0

    def test_recompute(self, ctx, actors, make_reservation):
        from datetime import datetime, timedelta, timezone

        start = datetime(2025, 6, 12, 10, tzinfo=timezone.utc)
        first = make_reservation(start=start)
        make_reservation(start=start + timedelta(days=4))
        make_reservation(start=start + timedelta(days=8))
        cancel_reservation(first.reservation_id, actors['renter'])

        trust = recompute_renter_trust(actors['renter'])
        assert trust['total_bookings'] == 3
        assert trust['cancellation_rate'] == 33.33
        assert trust['completed_bookings'] == 0

    def test_recompute_without_reservations(self, ctx, actors):
        trust = recompute_renter_trust(actors['renter'])
        assert trust['exists'] is True
        assert trust['cancellation_rate'] == 0.0

    def test_best_effort_logs_failure(self, ctx, actors, monkeypatch, caplog):
        import models.renter_trust as renter_trust

        def broken(renter_id, cursor=None):
            raise RuntimeError('disk full')

        monkeypatch.setattr(renter_trust, 'recompute_renter_trust', broken)
        assert refresh_trust_best_effort(actors['renter']) is False
        assert 'transition already committed' in caplog.text

    def test_verification_score(self, ctx, actors):
        assert set_verification_score(actors['renter'], 85)['verification_score'] == 85

    @pytest.mark.parametrize('score', [-1, 101, 50.5, True])
    def test_verification_score_range(self, ctx, actors, score):
        with pytest.raises(InvalidInputError):
            set_verification_score(actors['renter'], score)
