"""
Tests for the community incident store

Tests:
- Report creation and lifecycle fields
- Confirm / deny semantics and reputation deltas
- Purging (implicit after votes and explicit)
- Proximity listing
- Listeners and background sweep
"""

import asyncio

import pytest

from roadwatch.incident import (
    IncidentStore,
    IncidentType,
    IncidentEvent,
    ReportNotFoundError,
    ReputationLedger,
    init_incident_store,
    get_incident_store,
    set_incident_store,
)
from roadwatch.models import GPSCoordinate

from conftest import north_of


@pytest.fixture
def deltas():
    return []


@pytest.fixture
def store(clock, deltas):
    return IncidentStore(clock=clock, reputation_sink=deltas.append)


@pytest.fixture
def here():
    return GPSCoordinate(lat=37.7749, lon=-122.4194)


# ============================================
# Creation
# ============================================

class TestAddReport:
    """Tests for report submission"""

    def test_add_defaults(self, store, clock, here):
        """A new report starts with zero votes and a 30 minute lifetime"""
        report = store.add(IncidentType.CRASH, here)

        assert report.id.startswith("rpt-")
        assert report.confirmations == 0
        assert report.denials == 0
        assert report.created_at == clock.now
        assert report.expires_at == clock.now + 1800
        assert report.is_active(clock.now)

    def test_add_emits_submit_delta(self, store, deltas, here):
        store.add(IncidentType.POLICE, here)
        assert deltas == [3]

    def test_ids_are_unique(self, store, here):
        ids = {store.add(IncidentType.POLICE, here).id for _ in range(50)}
        assert len(ids) == 50

    def test_insertion_order(self, store, here):
        kinds = [IncidentType.POLICE, IncidentType.CRASH, IncidentType.ROAD_CLOSED]
        for kind in kinds:
            store.add(kind, here)
        assert [r.incident_type for r in store.list_active()] == kinds

    def test_accepts_type_value(self, store, here):
        report = store.add("SIDE_INCIDENT", here)
        assert report.incident_type is IncidentType.SIDE_INCIDENT

    def test_labels(self):
        assert IncidentType.POLICE.label == "Police Officer"
        assert IncidentType.SIDE_INCIDENT.label == "Car on side"
        assert IncidentType.CRASH.label == "Crash"
        assert IncidentType.ROAD_CLOSED.label == "Closed Road"

    def test_blocking_kinds(self):
        assert IncidentType.CRASH.is_blocking
        assert IncidentType.ROAD_CLOSED.is_blocking
        assert not IncidentType.POLICE.is_blocking
        assert not IncidentType.SIDE_INCIDENT.is_blocking


# ============================================
# Votes
# ============================================

class TestConfirmDeny:
    """Tests for confirm/deny votes"""

    def test_confirm_resets_expiry_exactly(self, store, clock, here):
        report = store.add(IncidentType.CRASH, here)
        clock.advance(600)

        result = store.confirm(report.id, True)

        assert result.report.confirmations == 1
        assert result.report.expires_at == clock.now + 1800
        assert result.reputation_delta == 2
        assert result.is_active

    def test_confirm_strictly_increases(self, store, here):
        report = store.add(IncidentType.CRASH, here)
        counts = [store.confirm(report.id, True).report.confirmations for _ in range(3)]
        assert counts == [1, 2, 3]

    def test_single_denial_keeps_report(self, store, clock, here):
        report = store.add(IncidentType.CRASH, here)

        result = store.confirm(report.id, False)

        assert result.report.denials == 1
        assert result.report.expires_at == report.expires_at
        assert result.reputation_delta == -1
        assert result.is_active
        assert len(store.list_active()) == 1

    def test_second_denial_expires_immediately(self, store, clock, deltas, here):
        """add -> deny -> deny leaves the report absent from list_active"""
        assert store.list_active() == []
        report = store.add(IncidentType.CRASH, here)

        store.confirm(report.id, False)
        result = store.confirm(report.id, False)

        assert result.report.denials == 2
        assert result.report.expires_at == clock.now - 1
        assert not result.is_active
        assert store.list_active() == []
        assert len(store) == 0
        assert deltas == [3, -1, -1]

    def test_vote_after_expiry_raises_not_found(self, store, here):
        report = store.add(IncidentType.CRASH, here)
        store.confirm(report.id, False)
        store.confirm(report.id, False)

        with pytest.raises(ReportNotFoundError):
            store.confirm(report.id, False)

    def test_unknown_id(self, store, deltas):
        with pytest.raises(ReportNotFoundError) as exc_info:
            store.confirm("rpt-missing", True)

        assert exc_info.value.report_id == "rpt-missing"
        assert isinstance(exc_info.value, LookupError)
        assert deltas == []

    def test_vote_purges_unrelated_expired_reports(self, store, clock, here):
        old = store.add(IncidentType.POLICE, here)
        clock.advance(1000)
        fresh = store.add(IncidentType.CRASH, here)
        clock.advance(900)  # old expired, fresh still active

        store.confirm(fresh.id, True)

        with pytest.raises(ReportNotFoundError):
            store.get(old.id)
        assert store.get(fresh.id).confirmations == 1

    def test_is_active_without_sweep(self, store, clock, here):
        report = store.add(IncidentType.CRASH, here)
        clock.advance(1800)

        # expires_at == now is inactive even though nothing was purged
        assert len(store) == 1
        assert store.list_active() == []
        assert not store.get(report.id).is_active(clock.now)

    def test_snapshots_do_not_change(self, store, here):
        report = store.add(IncidentType.CRASH, here)
        listed = store.list_active()

        store.confirm(report.id, True)

        assert report.confirmations == 0
        assert listed[0].confirmations == 0


# ============================================
# Purge
# ============================================

class TestPurge:
    """Tests for expiry purge"""

    def test_purge_removes_only_expired(self, store, clock, here):
        first = store.add(IncidentType.POLICE, here)
        clock.advance(100)
        second = store.add(IncidentType.CRASH, here)
        clock.advance(1700)  # first at exactly expires_at, second 100s left

        removed = store.purge_expired()

        assert removed == [first.id]
        assert [r.id for r in store.list_active()] == [second.id]

    def test_purge_is_idempotent(self, store, clock, here):
        store.add(IncidentType.POLICE, here)
        clock.advance(2000)

        assert len(store.purge_expired()) == 1
        assert store.purge_expired() == []

    def test_statistics(self, store, clock, here):
        report = store.add(IncidentType.CRASH, here)
        store.add(IncidentType.POLICE, here)
        store.confirm(report.id, True)

        stats = store.get_statistics()

        assert stats['totalReports'] == 2
        assert stats['totalConfirmations'] == 1
        assert stats['activeReports'] == 2
        assert stats['activeByType']['CRASH'] == 1
        assert stats['activeByType']['ROAD_CLOSED'] == 0


# ============================================
# Proximity
# ============================================

class TestListNear:
    """Tests for distance-scoped listing"""

    def test_radius_boundary(self, store, here):
        radius = 804.67
        inside = store.add(IncidentType.CRASH, north_of(here, radius - 0.01))
        store.add(IncidentType.CRASH, north_of(here, radius + 0.01))

        near = store.list_near(here, radius)

        assert [r.id for r in near] == [inside.id]

    def test_default_radius(self, store, here):
        store.add(IncidentType.CRASH, north_of(here, 800))
        store.add(IncidentType.CRASH, north_of(here, 810))

        assert len(store.list_near(here)) == 1

    def test_excludes_inactive(self, store, clock, here):
        store.add(IncidentType.CRASH, here)
        clock.advance(1800)
        assert store.list_near(here, 100) == []


# ============================================
# Listeners & Reputation
# ============================================

class TestListeners:
    """Tests for change notifications"""

    def test_events(self, store, here):
        events = []
        store.add_listener(lambda event, ids: events.append((event, ids)))

        report = store.add(IncidentType.CRASH, here)
        store.confirm(report.id, True)
        store.confirm(report.id, False)
        store.confirm(report.id, False)

        assert [e for e, _ in events] == [
            IncidentEvent.ADDED,
            IncidentEvent.CONFIRMED,
            IncidentEvent.DENIED,
            IncidentEvent.DENIED,
            IncidentEvent.PURGED,
        ]
        assert events[-1][1] == [report.id]

    def test_empty_purge_is_silent(self, store):
        events = []
        store.add_listener(lambda event, ids: events.append(event))
        store.purge_expired()
        assert events == []

    def test_failing_listener_does_not_break_store(self, store, here):
        def broken(event, ids):
            raise RuntimeError("boom")

        store.add_listener(broken)
        report = store.add(IncidentType.CRASH, here)
        assert store.get(report.id).id == report.id

    def test_remove_listener(self, store, here):
        events = []
        listener = lambda event, ids: events.append(event)
        store.add_listener(listener)
        store.remove_listener(listener)
        store.add(IncidentType.CRASH, here)
        assert events == []


class TestReputationLedger:
    """Tests for the clamp-at-zero reputation sink"""

    def test_clamps_at_zero(self):
        ledger = ReputationLedger()
        assert ledger.apply(-1) == 0
        assert ledger.apply(3) == 3
        assert ledger.apply(-1) == 2
        assert ledger.score == 2

    def test_store_feeds_ledger(self, clock, here):
        ledger = ReputationLedger()
        store = IncidentStore(clock=clock, reputation_sink=ledger.apply)

        report = store.add(IncidentType.CRASH, here)
        store.confirm(report.id, True)
        store.confirm(report.id, False)

        assert ledger.score == 3 + 2 - 1

    def test_reset(self):
        ledger = ReputationLedger(initial_score=10)
        ledger.reset()
        assert ledger.score == 0


# ============================================
# Background Sweep & Globals
# ============================================

class TestSweeper:
    """Tests for the periodic purge task"""

    @pytest.mark.asyncio
    async def test_sweeper_purges(self, clock, here):
        store = IncidentStore(clock=clock, sweep_interval=0.01)
        store.add(IncidentType.CRASH, here)
        clock.advance(1800)

        await store.start_sweeper()
        assert store.is_sweeping
        await asyncio.sleep(0.05)
        await store.stop_sweeper()

        assert len(store) == 0
        assert not store.is_sweeping

    @pytest.mark.asyncio
    async def test_stop_is_clean(self, clock):
        store = IncidentStore(clock=clock, sweep_interval=0.01)
        await store.start_sweeper()
        await store.stop_sweeper()
        await store.stop_sweeper()
        assert store._sweep_task is None


class TestGlobalStore:
    """Tests for global instance helpers"""

    def test_init_from_config(self):
        previous = get_incident_store()
        try:
            store = init_incident_store({
                'ttlSeconds': 60,
                'denialThreshold': 3,
                'reputation': {'submit': 5},
            })
            assert get_incident_store() is store
            assert store.ttl_seconds == 60
            assert store.denial_threshold == 3
            assert store.submit_delta == 5
            assert store.confirm_delta == 2
        finally:
            set_incident_store(previous)
