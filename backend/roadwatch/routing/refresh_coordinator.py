"""
Refresh Coordinator

Background driver deciding when the guarded route is recomputed for the
active navigation session.

Triggers:
- Destination set or changed
- Fixed cadence (20 seconds) while a destination is active
- Any change to the incident collection while a destination is active
- Explicit user refresh

Every request carries a monotonically increasing token. A result is
applied only if its token is still the latest issued one, so a slow,
superseded request can never overwrite a newer route (last request wins).
Superseded network calls are left to finish; only their effect is dropped.
"""

import asyncio
import time
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from roadwatch.models import GPSCoordinate
from roadwatch.routing.route_guard import RouteGuard, RouteUnavailableError
from roadwatch.routing.route_provider import RouteCandidate

if TYPE_CHECKING:
    from roadwatch.incident.incident_store import IncidentStore, IncidentEvent


DEFAULT_REFRESH_INTERVAL = 20.0


@dataclass(frozen=True)
class RouteState:
    """Externally visible navigation route state"""
    token: int                       # request token that produced this state
    route: Optional[RouteCandidate]  # None means "no route available"
    error: Optional[str]
    reason: str                      # what triggered the request
    applied_at: float


# listener(state); may return an awaitable
RouteListener = Callable[[RouteState], Any]


class RefreshCoordinator:
    """
    Re-invoke the route guard for the active destination

    Single writer of the current route state. All scheduling happens on the
    event loop captured by start(); incident-store notifications arriving
    from other threads are marshalled onto it.

    Usage:
        coordinator = RefreshCoordinator(guard, store)
        await coordinator.start()
        coordinator.set_origin(user_location)
        token = coordinator.set_destination(destination)
        await coordinator.wait_for(token)
        print(coordinator.current_route)
        await coordinator.stop()
    """

    def __init__(
        self,
        route_guard: RouteGuard,
        incident_store: "IncidentStore",
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        incident_radius_m: Optional[float] = None
    ):
        """
        Initialize refresh coordinator

        Args:
            route_guard: Engine computing guarded routes
            incident_store: Source of active incidents and change notifications
            refresh_interval: Seconds between timer-driven refreshes
            incident_radius_m: Radius around the origin whose incidents are in
                               play (defaults to the store's nearby radius)
        """
        self.route_guard = route_guard
        self.incident_store = incident_store
        self.refresh_interval = refresh_interval
        self.incident_radius_m = incident_radius_m

        self.origin: Optional[GPSCoordinate] = None
        self.destination: Optional[GPSCoordinate] = None

        self._state: Optional[RouteState] = None
        self._latest_token = 0
        self._token_lock = threading.Lock()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._pending: Dict[int, asyncio.Task] = {}
        self._listeners: List[RouteListener] = []
        self._running = False

        # Statistics
        self.total_issued = 0
        self.total_applied = 0
        self.total_superseded = 0
        self.total_failed = 0

        print("[OK] Refresh coordinator initialized")

    # ============================================
    # Lifecycle
    # ============================================

    async def start(self):
        """Bind to the running loop and subscribe to incident changes"""
        if self._running:
            return
        self._loop = asyncio.get_running_loop()
        self._running = True
        self.incident_store.add_listener(self._on_incidents_changed)
        print("[OK] Refresh coordinator started")

    async def stop(self):
        """Tear down: stop the timer, drop pending work, unsubscribe"""
        if not self._running:
            return
        self._running = False
        self.incident_store.remove_listener(self._on_incidents_changed)
        self._supersede_all()
        timer = self._stop_timer()
        if timer:
            await asyncio.gather(timer, return_exceptions=True)

        pending = list(self._pending.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()

        print("🛑 Refresh coordinator stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # ============================================
    # Session Inputs
    # ============================================

    def set_origin(self, origin: Optional[GPSCoordinate]):
        """Update the user position used by subsequent requests"""
        self.origin = origin

    def set_destination(self, destination: Optional[GPSCoordinate]) -> Optional[int]:
        """
        Set or clear the active destination

        Setting issues a request immediately and (re)starts the refresh
        timer. Clearing stops the timer, drops pending results and clears
        the current route.

        Returns:
            Token of the issued request, or None if nothing was issued
        """
        self._require_running()
        self.destination = destination

        if destination is None:
            self._supersede_all()
            self._state = None
            self._stop_timer()
            print("[REFRESH] Destination cleared")
            return None

        self._restart_timer()
        return self.request_refresh("destination")

    def request_refresh(self, reason: str = "user") -> Optional[int]:
        """
        Issue a new guarded-route request, superseding any pending one

        Returns:
            Token of the issued request, or None without origin/destination
        """
        self._require_running()
        if self.origin is None or self.destination is None:
            return None

        origin, destination = self.origin, self.destination
        incidents = self.incident_store.list_near(origin, self.incident_radius_m)

        with self._token_lock:
            self._latest_token += 1
            token = self._latest_token
        self.total_issued += 1

        task = self._loop.create_task(self._run(token, reason, origin, destination, incidents))
        self._pending[token] = task
        task.add_done_callback(lambda t, tok=token: self._on_request_done(tok, t))
        return token

    async def wait_for(self, token: Optional[int]) -> Optional[RouteState]:
        """Wait until the request with this token settles; return the current state"""
        task = self._pending.get(token) if token is not None else None
        if task is not None:
            await asyncio.shield(task)
        return self._state

    # ============================================
    # State
    # ============================================

    @property
    def state(self) -> Optional[RouteState]:
        return self._state

    @property
    def current_route(self) -> Optional[RouteCandidate]:
        return self._state.route if self._state else None

    @property
    def latest_token(self) -> int:
        return self._latest_token

    @property
    def has_destination(self) -> bool:
        return self.destination is not None

    def add_listener(self, listener: RouteListener):
        """Register a callback invoked whenever a result is applied"""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: RouteListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ============================================
    # Internals
    # ============================================

    def _require_running(self):
        if not self._running:
            raise RuntimeError("RefreshCoordinator is not started")

    def _supersede_all(self):
        with self._token_lock:
            self._latest_token += 1

    def _on_request_done(self, token: int, task: asyncio.Task):
        self._pending.pop(token, None)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.total_failed += 1
            print(f"[ERROR] [REFRESH] Request #{token} failed: {error!r}")

    async def _run(self, token, reason, origin, destination, incidents):
        try:
            route = await self.route_guard.compute_guarded_route(origin, destination, incidents)
            error = None
        except RouteUnavailableError as e:
            route = None
            error = str(e)

        if token != self._latest_token:
            self.total_superseded += 1
            print(f"[REFRESH] Discarding superseded result #{token} (latest #{self._latest_token})")
            return

        self._state = RouteState(
            token=token,
            route=route,
            error=error,
            reason=reason,
            applied_at=time.time(),
        )
        self.total_applied += 1

        if route is None:
            print(f"[REFRESH] #{token} ({reason}): no route available")
        else:
            print(f"[REFRESH] #{token} ({reason}): route applied, "
                  f"{route.expected_travel_time:.0f}s")

        await self._notify(self._state)

    async def _notify(self, state: RouteState):
        for listener in list(self._listeners):
            try:
                result = listener(state)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                print(f"[WARN] [REFRESH] Route listener failed: {e}")

    def _on_incidents_changed(self, event: "IncidentEvent", report_ids: List[str]):
        if not self._running or self._loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._refresh_for_incidents()
        else:
            self._loop.call_soon_threadsafe(self._refresh_for_incidents)

    def _refresh_for_incidents(self):
        if self._running and self.destination is not None:
            self.request_refresh("incidents")

    def _restart_timer(self):
        if self._timer_task:
            self._timer_task.cancel()
        self._timer_task = self._loop.create_task(self._refresh_loop())

    def _stop_timer(self) -> Optional[asyncio.Task]:
        task, self._timer_task = self._timer_task, None
        if task:
            task.cancel()
            print("[REFRESH] Refresh timer stopped")
        return task

    async def _refresh_loop(self):
        print(f"[REFRESH] Refresh timer started (every {self.refresh_interval}s)")
        while self._running and self.destination is not None:
            await asyncio.sleep(self.refresh_interval)
            if self.destination is None:
                break
            self.request_refresh("timer")

    def get_statistics(self) -> dict:
        """Get refresh coordinator statistics"""
        return {
            'running': self._running,
            'hasDestination': self.destination is not None,
            'timerActive': self._timer_task is not None and not self._timer_task.done(),
            'latestToken': self._latest_token,
            'pendingRequests': len(self._pending),
            'totalIssued': self.total_issued,
            'totalApplied': self.total_applied,
            'totalSuperseded': self.total_superseded,
            'totalFailed': self.total_failed,
        }


# ============================================
# Global Instance Management
# ============================================

_refresh_coordinator: Optional[RefreshCoordinator] = None


def init_refresh_coordinator(
    route_guard: RouteGuard,
    incident_store: "IncidentStore",
    config: Optional[dict] = None
) -> RefreshCoordinator:
    """Initialize global refresh coordinator from the routing config section"""
    global _refresh_coordinator
    config = config or {}

    _refresh_coordinator = RefreshCoordinator(
        route_guard,
        incident_store,
        refresh_interval=config.get('refreshIntervalSeconds', DEFAULT_REFRESH_INTERVAL),
    )

    return _refresh_coordinator


def get_refresh_coordinator() -> Optional[RefreshCoordinator]:
    """Get global refresh coordinator"""
    return _refresh_coordinator


def set_refresh_coordinator(coordinator: Optional[RefreshCoordinator]):
    """Set global refresh coordinator"""
    global _refresh_coordinator
    _refresh_coordinator = coordinator
