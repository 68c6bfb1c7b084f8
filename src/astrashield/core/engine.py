"""Pipeline orchestration over an object store.

``ConjunctionEngine`` owns the configuration and the single-flight token of
the detection run. It reads snapshots from the store, runs the numeric
pipeline and writes the results back.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from astrashield.core.clustering import AltitudeCluster, cluster_by_altitude, find_high_density_regions
from astrashield.core.maneuvers import ManeuverAnalysis, analyze_maneuvers
from astrashield.core.reentry import ReentryPrediction, active_reentry_alerts, predict_reentries
from astrashield.core.risk import RiskScore, RiskStatistics, high_risk_objects, risk_statistics, score_risks
from astrashield.core.screening import RISK_LEVELS, Conjunction, DetectionStats, detect_conjunctions
from astrashield.core.tle import SpaceObject
from astrashield.data.store import ObjectStore
from astrashield.utils.config import EngineConfig
from astrashield.utils.constants import HIGH_RISK_OBJECT_MIN_SCORE
from astrashield.utils.errors import ConjunctionPersistError, DetectionCancelled, ObjectNotFoundError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked by a detection run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str, partial: list | None = None) -> None:
        """Raise DetectionCancelled if cancellation was requested.

        Args:
            stage: Pipeline stage being entered.
            partial: Results gathered so far, attached to the exception.
        """
        if self._event.is_set():
            logger.info("Detection cancelled during %s", stage)
            raise DetectionCancelled(stage, list(partial) if partial else [])


@dataclass
class ConjunctionStatistics:
    """Counts of active conjunctions.

    Attributes:
        total: Conjunctions created within the freshness window.
        by_risk: Count per risk level, every level present.
        last_updated: Reference time of the query.
    """

    total: int
    by_risk: dict[str, int] = field(default_factory=dict)
    last_updated: datetime | None = None

class ConjunctionEngine:
    """Runs detection, scoring, clustering and reentry over a store.

    At most one detection run executes at a time. A caller that triggers a
    run while another is in flight waits for that run and receives its
    result instead of starting a second one.

    Attributes:
        store: Persistence collaborator.
        config: Pipeline tunables.
        last_stats: Statistics of the most recent completed detection run.
    """

    def __init__(self, store: ObjectStore, config: EngineConfig | None = None) -> None:
        self.store = store
        self.config = config or EngineConfig()
        self.last_stats: DetectionStats | None = None
        self._lock = threading.Lock()
        self._in_flight: Future | None = None
        self._token: CancellationToken | None = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._in_flight is not None

    def cancel(self) -> bool:
        """Request cancellation of the in-flight detection run.

        Returns:
            True if a run was in flight.
        """
        with self._lock:
            if self._token is None:
                return False
            self._token.cancel()
            return True

    def run_conjunction_detection(self, now: datetime | None = None) -> list[Conjunction]:
        """Detect and persist conjunctions for the current population.

        Args:
            now: Start of the forecast window (UTC). Defaults to the current
                time. Ignored when joining a run already in flight.

        Returns:
            Conjunctions found by the run.

        Raises:
            DetectionCancelled: If the run was cancelled.
            ConjunctionPersistError: If conjunctions could not be stored.
        """
        with self._lock:
            future = self._in_flight
            leader = future is None
            if leader:
                future = Future()
                token = CancellationToken()
                self._in_flight = future
                self._token = token

        if not leader:
            logger.info("Conjunction detection already in progress; joining it")
            return future.result()

        try:
            conjunctions = self._detect(now, token)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(conjunctions)
            return conjunctions
        finally:
            with self._lock:
                self._in_flight = None
                self._token = None

    def _detect(self, now: datetime | None, token: CancellationToken) -> list[Conjunction]:
        now = now or datetime.now(timezone.utc)
        snapshot = self.store.list_objects(limit=self.config.max_objects)
        result = detect_conjunctions(snapshot, now, self.config, token)
        self.persist_conjunctions(result.conjunctions)
        self.last_stats = result.stats
        return result.conjunctions

    def persist_conjunctions(self, conjunctions: list[Conjunction]) -> int:
        """Upsert conjunctions in one batch, falling back to single writes.

        Any exception from the bulk write triggers the fallback, and any
        exception from a single write counts as a failed record.

        Returns:
            Number of conjunctions persisted.

        Raises:
            ConjunctionPersistError: If any record still fails individually.
        """
        if not conjunctions:
            return 0
        # Backends may surface their own driver errors instead of StoreError
        try:
            written = self.store.bulk_upsert_conjunctions(conjunctions)
            logger.info("Stored %d conjunctions", written)
            return written
        except Exception as e:
            logger.warning("Bulk conjunction upsert failed (%s); writing individually", e)

        persisted = 0
        failed = 0
        last_error: Exception | None = None
        for conjunction in conjunctions:
            try:
                self.store.upsert_conjunction(conjunction)
                persisted += 1
            except Exception as e:
                failed += 1
                last_error = e
                logger.warning("Could not store conjunction %s: %s", conjunction.key, e)

        if failed:
            logger.error("%d of %d conjunctions could not be stored", failed, len(conjunctions))
            raise ConjunctionPersistError(persisted, failed) from last_error
        return persisted

    def active_conjunctions(
        self,
        now: datetime | None = None,
        min_level: str = "low",
        limit: int | None = 100,
    ) -> list[Conjunction]:
        """Conjunctions created within the freshness window, closest first.

        Args:
            now: Reference time (UTC). Defaults to the current time.
            min_level: Lowest risk level to include.
            limit: Maximum number of conjunctions returned.
        """
        if min_level not in RISK_LEVELS:
            raise ValueError(f"Unknown risk level: {min_level!r}")
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(hours=self.config.freshness_window_hours)
        floor = RISK_LEVELS.index(min_level)
        conjunctions = [
            c for c in self.store.list_conjunctions(since=since)
            if RISK_LEVELS.index(c.risk_level) >= floor
        ]
        conjunctions.sort(key=lambda c: c.closest_approach_km)
        return conjunctions[:limit] if limit is not None else conjunctions

    def high_risk_conjunctions(
        self, now: datetime | None = None, min_level: str = "high"
    ) -> list[Conjunction]:
        """Active high or critical conjunctions, closest first."""
        if min_level not in ("high", "critical"):
            raise ValueError(f"min_level must be 'high' or 'critical', got {min_level!r}")
        return self.active_conjunctions(now, min_level=min_level, limit=None)

    def conjunction_statistics(self, now: datetime | None = None) -> ConjunctionStatistics:
        """Count active conjunctions per risk level."""
        now = now or datetime.now(timezone.utc)
        active = self.active_conjunctions(now, limit=None)
        by_risk = {level: 0 for level in RISK_LEVELS}
        for c in active:
            by_risk[c.risk_level] += 1
        return ConjunctionStatistics(total=len(active), by_risk=by_risk, last_updated=now)

    def score_risks(self, now: datetime | None = None) -> list[RiskScore]:
        """Score every stored object and write the scores back in one upsert."""
        now = now or datetime.now(timezone.utc)
        snapshot = self.store.list_objects()
        since = now - timedelta(hours=self.config.freshness_window_hours)
        recent = self.store.list_conjunctions(since=since)
        logger.info("Scoring %d objects against %d active conjunctions", len(snapshot), len(recent))

        scores = score_risks(snapshot, recent, now, self.config.freshness_window_hours)
        by_id = {s.catalog_id: s.risk_score for s in scores}
        updated = []
        for obj in snapshot:
            if obj.catalog_id in by_id:
                obj.risk_score = by_id[obj.catalog_id]
                obj.last_updated = now
                updated.append(obj)
        if updated:
            self.store.bulk_upsert_objects(updated)
        return scores

    def congestion_clusters(self) -> list[AltitudeCluster]:
        return cluster_by_altitude(self.store.list_objects(), self.config.num_bands)

    def high_density_regions(self) -> list[AltitudeCluster]:
        return find_high_density_regions(
            self.store.list_objects(), self.config.density_threshold, self.config.num_bands
        )

    def predict_reentries(self, now: datetime | None = None) -> list[ReentryPrediction]:
        """Reentry forecasts for stored objects below the reentry threshold."""
        return predict_reentries(
            self.store.list_objects(),
            now,
            self.config.reentry_horizon_days,
            self.config.solar_flux_sfu,
            self.config.reentry_threshold_km,
        )

    def reentry_alerts(self, now: datetime | None = None) -> list[ReentryPrediction]:
        return active_reentry_alerts(self.predict_reentries(now))

    def risk_statistics(self) -> RiskStatistics:
        return risk_statistics(self.store.list_objects())

    def high_risk_objects(
        self, min_risk: float = HIGH_RISK_OBJECT_MIN_SCORE, limit: int | None = 10
    ) -> list[SpaceObject]:
        return high_risk_objects(self.store.list_objects(), min_risk, limit)

    def analyze_maneuvers(self, catalog_id: int) -> ManeuverAnalysis:
        """Ranked avoidance maneuvers for a stored object.

        Raises:
            ObjectNotFoundError: If no object has ``catalog_id``.
        """
        obj = self.store.find_by_id(catalog_id)
        if obj is None:
            raise ObjectNotFoundError(f"No stored object with catalog id {catalog_id}")
        return analyze_maneuvers(obj)
