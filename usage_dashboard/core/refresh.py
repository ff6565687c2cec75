"""
Refresh cycle orchestration.

One cycle runs scan -> aggregate -> pricing -> tips -> quota, persists the
cache, and publishes the new snapshot. Each failure kind degrades according
to the policy in `RefreshOrchestrator.refresh`; none of them abort a cycle.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from usage_dashboard.config.loader import DashboardConfig
from usage_dashboard.storage.cache import CacheSnapshot, CacheStore, DashboardSnapshot
from .aggregator import aggregate_usage
from .pricing import PricingTable, load_pricing_table
from .quota import QuotaReport, fetch_provider_quotas
from .result import ErrorKind, Result
from .scanner import scan_sessions
from .tips import generate_tips

logger = logging.getLogger(__name__)


class SnapshotCell:
    """Holder of the latest published snapshot.

    Publishing rebinds a single reference, so readers always see a complete
    snapshot and never wait for a refresh in progress.
    """

    def __init__(self, snapshot: Optional[DashboardSnapshot] = None):
        self._snapshot = snapshot

    def get(self) -> Optional[DashboardSnapshot]:
        return self._snapshot

    def publish(self, snapshot: DashboardSnapshot) -> None:
        self._snapshot = snapshot


class RefreshOrchestrator:
    """Runs refresh cycles, at most one at a time."""

    def __init__(
        self,
        config: DashboardConfig,
        store: Optional[CacheStore] = None,
        cell: Optional[SnapshotCell] = None,
        clock: Optional[Callable[[], datetime]] = None,
        quota_fetcher: Optional[Callable[..., Result]] = None,
        pricing_loader: Optional[Callable[[str], Result]] = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Dashboard configuration
            store: Cache store (defaults to one at `config.cache_path`)
            cell: Snapshot cell shared with the serving layer
            clock: Returns the current time (defaults to `datetime.now`)
            quota_fetcher: Called as `fetcher(command, timeout)`
            pricing_loader: Called as `loader(path)`
        """
        self.config = config
        self.store = store or CacheStore(config.cache_path)
        self.cell = cell or SnapshotCell()
        self.clock = clock or datetime.now
        self.quota_fetcher = quota_fetcher or fetch_provider_quotas
        self.pricing_loader = pricing_loader or load_pricing_table
        self._lock = threading.Lock()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    def prime(self) -> Optional[DashboardSnapshot]:
        """Publish the persisted snapshot, if any, without scanning."""
        if self.cell.get() is None:
            cached = self.store.cached_result()
            if cached is not None:
                self.cell.publish(cached)
        return self.cell.get()

    def refresh(self) -> Optional[DashboardSnapshot]:
        """Run one refresh cycle.

        Returns:
            The published snapshot, or None if another cycle was running
        """
        if not self._lock.acquire(blocking=False):
            logger.info("Refresh already in progress; skipping")
            return None
        try:
            return self._run_cycle()
        finally:
            self._lock.release()

    def _load_state(self) -> CacheSnapshot:
        loaded = self.store.load()
        if loaded.ok:
            return loaded.value
        if loaded.error == ErrorKind.CACHE_CORRUPT:
            logger.warning("Discarding cache (%s): %s", loaded.error.value, loaded.detail)
        else:
            logger.info("Starting from empty state: %s", loaded.detail)
        return CacheSnapshot()

    def _load_pricing(self) -> PricingTable:
        loaded = self.pricing_loader(self.config.pricing_path)
        if not loaded.ok:
            logger.warning("Using empty pricing table (%s): %s", loaded.error.value, loaded.detail)
        return loaded.unwrap_or(PricingTable())

    def _fetch_quotas(self) -> Optional[QuotaReport]:
        if not self.config.quota_command:
            return None
        fetched = self.quota_fetcher(self.config.quota_command, self.config.quota_timeout)
        if not fetched.ok:
            logger.warning("Provider quotas unavailable (%s): %s", fetched.error.value, fetched.detail)
            return QuotaReport.unavailable(fetched.detail or "Could not fetch provider quotas")
        return fetched.value

    def _run_cycle(self) -> DashboardSnapshot:
        state = self._load_state()

        scan = scan_sessions(self.config.sessions_path, state.file_offsets, state.records)
        if not scan.ok:
            logger.warning("Session scan incomplete (%s): %s", scan.failure.value, scan.detail)

        now = self.clock()
        aggregate = aggregate_usage(scan.records, now=now)
        pricing = self._load_pricing()
        tips = generate_tips(aggregate, pricing, daily_alert=self.config.daily_spend_alert)
        quotas = self._fetch_quotas()

        snapshot = DashboardSnapshot(
            aggregate=aggregate,
            tips=tips,
            quotas=quotas,
            pricing=pricing,
            updated_at=now.astimezone(),
        )

        try:
            self.store.save(CacheSnapshot(
                file_offsets=scan.file_offsets,
                records=scan.records,
                result=snapshot,
            ))
        except OSError as e:
            logger.error("Failed to write cache %s: %s", self.store.path, e)

        self.cell.publish(snapshot)
        logger.info(
            "Data refreshed: %d calls (%d new), $%.4f",
            aggregate.summary.total_calls, scan.new_records, aggregate.summary.total_cost,
        )
        return snapshot


class RefreshScheduler:
    """Single background worker running refresh cycles on a fixed interval."""

    def __init__(self, orchestrator: RefreshOrchestrator, interval: float):
        self.orchestrator = orchestrator
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Run one cycle now and then every `interval` seconds."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="usage-refresh", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.orchestrator.refresh()
            except Exception:
                # Retried at the next interval
                logger.exception("Refresh error")
            if self._stop.wait(self.interval):
                break
