"""
Incident Store

Owns the community-sourced road incident reports and their lifecycle.

Features:
- Submit reports (police, car on side, crash, closed road)
- Confirm / deny with reputation deltas
- Time-based decay: a report is active until its expiry timestamp
- Immediate expiry once denials reach the threshold
- Purge after every vote plus a periodic background sweep
- Proximity filtering for display and routing

All mutations go through one lock so no caller ever observes a partial
update. Reports handed out are snapshots and never change afterwards.
"""

import time
import uuid
import asyncio
import threading
from enum import Enum
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from roadwatch.models import GPSCoordinate
from roadwatch.routing.geomath import distance_between


DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_SWEEP_INTERVAL = 30.0
DEFAULT_DENIAL_THRESHOLD = 2
DEFAULT_NEARBY_RADIUS_M = 804.67  # ~0.5 mile

SUBMIT_REPUTATION_DELTA = 3
CONFIRM_REPUTATION_DELTA = 2
DENY_REPUTATION_DELTA = -1


class IncidentType(str, Enum):
    """Kinds of community incident reports"""
    POLICE = "POLICE"
    SIDE_INCIDENT = "SIDE_INCIDENT"
    CRASH = "CRASH"
    ROAD_CLOSED = "ROAD_CLOSED"

    @property
    def is_blocking(self) -> bool:
        """Blocking kinds can compromise a route"""
        return self in (IncidentType.CRASH, IncidentType.ROAD_CLOSED)

    @property
    def label(self) -> str:
        return _INCIDENT_LABELS[self]


_INCIDENT_LABELS = {
    IncidentType.POLICE: "Police Officer",
    IncidentType.SIDE_INCIDENT: "Car on side",
    IncidentType.CRASH: "Crash",
    IncidentType.ROAD_CLOSED: "Closed Road",
}


class IncidentEvent(str, Enum):
    """Change notifications emitted to store listeners"""
    ADDED = "incident:added"
    CONFIRMED = "incident:confirmed"
    DENIED = "incident:denied"
    PURGED = "incident:purged"


class ReportNotFoundError(LookupError):
    """Confirm/deny referenced an unknown report id"""

    def __init__(self, report_id: str):
        super().__init__(f"Incident report not found: {report_id}")
        self.report_id = report_id


@dataclass
class IncidentReport:
    """Community incident report"""
    id: str
    incident_type: IncidentType
    coordinate: GPSCoordinate
    created_at: float
    expires_at: float
    confirmations: int = 0
    denials: int = 0

    def is_active(self, now: Optional[float] = None) -> bool:
        """Active while the current time is before the expiry timestamp"""
        if now is None:
            now = time.time()
        return now < self.expires_at


@dataclass(frozen=True)
class VoteResult:
    """Outcome of a confirm/deny vote"""
    report: IncidentReport   # snapshot taken right after the vote
    reputation_delta: int
    is_active: bool


# listener(event, report_ids)
IncidentListener = Callable[[IncidentEvent, List[str]], None]
ReputationSink = Callable[[int], None]


class IncidentStore:
    """
    Manage community incident reports

    Responsibilities:
    - Create reports with default lifecycle fields
    - Apply confirm/deny votes and emit reputation deltas
    - Evict inactive reports (after each vote and on a fixed cadence)
    - Provide snapshot listings, optionally scoped by distance

    Usage:
        store = IncidentStore(reputation_sink=ledger.apply)
        await store.start_sweeper()
        report = store.add(IncidentType.CRASH, coordinate)
        store.confirm(report.id, is_positive=False)
        nearby = store.list_near(user_location, 804.67)
        await store.stop_sweeper()
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        denial_threshold: int = DEFAULT_DENIAL_THRESHOLD,
        nearby_radius_m: float = DEFAULT_NEARBY_RADIUS_M,
        reputation_sink: Optional[ReputationSink] = None,
        reputation_deltas: Optional[Dict[str, int]] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize incident store

        Args:
            ttl_seconds: Lifetime granted on creation and on each confirmation
            sweep_interval: Seconds between background purges
            denial_threshold: Denials that force a report to expire
            nearby_radius_m: Default radius for list_near
            reputation_sink: Receives raw signed reputation deltas
            reputation_deltas: Overrides for the submit/confirm/deny deltas
            clock: Source of "now" in epoch seconds (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self.sweep_interval = sweep_interval
        self.denial_threshold = denial_threshold
        self.nearby_radius_m = nearby_radius_m
        self.reputation_sink = reputation_sink
        deltas = reputation_deltas or {}
        self.submit_delta = deltas.get("submit", SUBMIT_REPUTATION_DELTA)
        self.confirm_delta = deltas.get("confirm", CONFIRM_REPUTATION_DELTA)
        self.deny_delta = deltas.get("deny", DENY_REPUTATION_DELTA)
        self.clock = clock

        # Insertion-ordered collection guarded by a single lock
        self._reports: List[IncidentReport] = []
        self._lock = threading.RLock()

        self._listeners: List[IncidentListener] = []

        # Background sweep
        self._sweeping = False
        self._sweep_task: Optional[asyncio.Task] = None

        # Statistics
        self.total_reports = 0
        self.total_confirmations = 0
        self.total_denials = 0
        self.total_expired = 0

        print("[OK] Incident store initialized")

    # ============================================
    # Listeners
    # ============================================

    def add_listener(self, listener: IncidentListener):
        """Register a change listener"""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: IncidentListener):
        """Unregister a change listener"""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, event: IncidentEvent, report_ids: List[str]):
        # Called outside the lock so listeners may read the store
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, list(report_ids))
            except Exception as e:
                print(f"[WARN] [INCIDENT] Listener failed on {event.value}: {e}")

    def _emit_reputation(self, delta: int):
        if self.reputation_sink:
            self.reputation_sink(delta)

    # ============================================
    # Mutations
    # ============================================

    def add(self, incident_type: IncidentType, coordinate: GPSCoordinate) -> IncidentReport:
        """
        Submit a new report

        Args:
            incident_type: Kind of incident
            coordinate: Where it was observed

        Returns:
            Snapshot of the created report
        """
        incident_type = IncidentType(incident_type)
        now = self.clock()
        report = IncidentReport(
            id=f"rpt-{uuid.uuid4().hex}",
            incident_type=incident_type,
            coordinate=coordinate,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )

        with self._lock:
            self._reports.append(report)
            self.total_reports += 1
            snapshot = replace(report)

        print(f"📍 [INCIDENT] Added {report.id} ({incident_type.label}) "
              f"at {coordinate.lat:.5f},{coordinate.lon:.5f}")

        self._emit_reputation(self.submit_delta)
        self._notify(IncidentEvent.ADDED, [report.id])
        return snapshot

    def confirm(self, report_id: str, is_positive: bool) -> VoteResult:
        """
        Vote on whether a report is still there

        Positive: confirmations += 1 and expiry moves to now + ttl.
        Negative: denials += 1, and once denials reach the threshold the
        report expires one second in the past. Expired reports are purged
        before returning, which may also evict unrelated reports.

        Raises:
            ReportNotFoundError: if no report has this id
        """
        with self._lock:
            report = self._find(report_id)
            if report is None:
                raise ReportNotFoundError(report_id)

            now = self.clock()
            if is_positive:
                report.confirmations += 1
                report.expires_at = now + self.ttl_seconds
                self.total_confirmations += 1
                delta = self.confirm_delta
                event = IncidentEvent.CONFIRMED
            else:
                report.denials += 1
                self.total_denials += 1
                delta = self.deny_delta
                event = IncidentEvent.DENIED
                if report.denials >= self.denial_threshold:
                    report.expires_at = now - 1

            snapshot = replace(report)
            is_active = report.is_active(now)
            removed = self._purge_locked(now)

        if is_positive:
            print(f"[INCIDENT] {report_id} confirmed ({snapshot.confirmations})")
        else:
            print(f"[INCIDENT] {report_id} denied ({snapshot.denials})"
                  f"{' - expired' if not is_active else ''}")

        self._emit_reputation(delta)
        self._notify(event, [report_id])
        if removed:
            self._notify(IncidentEvent.PURGED, removed)

        return VoteResult(report=snapshot, reputation_delta=delta, is_active=is_active)

    def purge_expired(self) -> List[str]:
        """
        Remove every inactive report

        Idempotent and safe to call at any time.

        Returns:
            Ids of the removed reports (empty when nothing expired)
        """
        with self._lock:
            removed = self._purge_locked(self.clock())

        if removed:
            self._notify(IncidentEvent.PURGED, removed)
        return removed

    def _purge_locked(self, now: float) -> List[str]:
        removed = [r.id for r in self._reports if not r.is_active(now)]
        if removed:
            self._reports[:] = [r for r in self._reports if r.is_active(now)]
            self.total_expired += len(removed)
            print(f"🧹 [INCIDENT] Purged {len(removed)} expired report(s)")
        return removed

    def _find(self, report_id: str) -> Optional[IncidentReport]:
        for r in self._reports:
            if r.id == report_id:
                return r
        return None

    # ============================================
    # Queries
    # ============================================

    def get(self, report_id: str) -> IncidentReport:
        """Get a snapshot of a stored report (active or not yet swept)"""
        with self._lock:
            report = self._find(report_id)
            if report is None:
                raise ReportNotFoundError(report_id)
            return replace(report)

    def list_active(self) -> List[IncidentReport]:
        """Snapshots of the currently active reports, in insertion order"""
        with self._lock:
            now = self.clock()
            return [replace(r) for r in self._reports if r.is_active(now)]

    def list_near(
        self,
        center: GPSCoordinate,
        radius_m: Optional[float] = None
    ) -> List[IncidentReport]:
        """Active reports within radius_m meters (great-circle) of center"""
        if radius_m is None:
            radius_m = self.nearby_radius_m
        return [
            r for r in self.list_active()
            if distance_between(center, r.coordinate) <= radius_m
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._reports)

    # ============================================
    # Background Sweep
    # ============================================

    async def start_sweeper(self):
        """Start the periodic purge task"""
        if self._sweeping:
            return

        self._sweeping = True
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        print(f"[OK] Incident sweep started (every {self.sweep_interval}s)")

    async def stop_sweeper(self):
        """Stop the periodic purge task"""
        self._sweeping = False

        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
            print("🛑 Incident sweep stopped")

    @property
    def is_sweeping(self) -> bool:
        return self._sweeping

    async def _sweep_loop(self):
        while self._sweeping:
            await asyncio.sleep(self.sweep_interval)
            self.purge_expired()

    def get_statistics(self) -> dict:
        """Get incident store statistics"""
        with self._lock:
            now = self.clock()
            active = [r for r in self._reports if r.is_active(now)]
            by_type = {t.value: 0 for t in IncidentType}
            for r in active:
                by_type[r.incident_type.value] += 1

            return {
                'totalReports': self.total_reports,
                'totalConfirmations': self.total_confirmations,
                'totalDenials': self.total_denials,
                'totalExpired': self.total_expired,
                'activeReports': len(active),
                'activeByType': by_type,
                'sweeping': self._sweeping,
            }


# ============================================
# Global Instance Management
# ============================================

_incident_store: Optional[IncidentStore] = None


def init_incident_store(
    config: Optional[dict] = None,
    reputation_sink: Optional[ReputationSink] = None
) -> IncidentStore:
    """Initialize global incident store from the incidents config section"""
    global _incident_store
    config = config or {}

    _incident_store = IncidentStore(
        ttl_seconds=config.get('ttlSeconds', DEFAULT_TTL_SECONDS),
        sweep_interval=config.get('sweepIntervalSeconds', DEFAULT_SWEEP_INTERVAL),
        denial_threshold=config.get('denialThreshold', DEFAULT_DENIAL_THRESHOLD),
        nearby_radius_m=config.get('nearbyRadiusMeters', DEFAULT_NEARBY_RADIUS_M),
        reputation_sink=reputation_sink,
        reputation_deltas=config.get('reputation'),
    )

    return _incident_store


def get_incident_store() -> Optional[IncidentStore]:
    """Get global incident store"""
    return _incident_store


def set_incident_store(store: Optional[IncidentStore]):
    """Set global incident store"""
    global _incident_store
    _incident_store = store
