"""Per-object composite risk scoring.

Each object gets a congestion risk from its nearest neighbour at the
scoring time and a conjunction risk from its closest recent conjunction.
The composite is a 0.4 / 0.6 weighted blend of the two.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import numpy as np
from scipy.spatial import cKDTree

from astrashield.core.propagation import propagate_state
from astrashield.core.screening import BANDS, Conjunction, altitude_band
from astrashield.core.tle import SpaceObject
from astrashield.utils.constants import (
    CLOSE_APPROACH_THRESHOLD_KM,
    CONGESTION_RISK_WEIGHT,
    CONJUNCTION_RISK_WEIGHT,
    FRESHNESS_WINDOW_HOURS,
    HIGH_RISK_OBJECT_MIN_SCORE,
    HIGH_VELOCITY_KM_S,
    RISK_SCORE_HIGH,
    RISK_SCORE_MEDIUM,
    STORAGE_THRESHOLD_KM,
)

logger = logging.getLogger(__name__)


@dataclass
class RiskScore:
    """Risk breakdown for one object.

    Attributes:
        catalog_id: NORAD catalog number.
        name: Object name.
        risk_score: Composite risk in [0, 1].
        congestion_risk: Nearest-neighbour risk in [0, 1].
        conjunction_risk: Risk from the closest recent conjunction in [0, 1].
        closest_distance_km: Distance to the nearest neighbour (inf if none).
        closest_velocity_km_s: Relative speed to the nearest neighbour.
        close_approach_count: Neighbours within the close-approach threshold.
        orbital_altitude_km: Stored mean altitude.
        active_conjunctions: Recent conjunctions involving the object.
    """

    catalog_id: int
    name: str
    risk_score: float
    congestion_risk: float
    conjunction_risk: float
    closest_distance_km: float
    closest_velocity_km_s: float
    close_approach_count: int
    orbital_altitude_km: float
    active_conjunctions: int = 0

    @property
    def has_active_conjunction(self) -> bool:
        return self.active_conjunctions > 0


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)


def congestion_factor(count: int) -> float:
    """Congestion multiplier for the number of objects in a regime."""
    return _clamp(count / 100.0 * 2.0, 0.0, 3.0)


def congestion_risk(closest_distance_km: float, relative_velocity_km_s: float, factor: float) -> float:
    """Risk from the nearest neighbour.

    Args:
        closest_distance_km: Distance to the nearest neighbour.
        relative_velocity_km_s: Relative speed to that neighbour.
        factor: Congestion factor of the object's regime.

    Returns:
        Risk in [0, 1]; 1 when the distance is zero or negative.
    """
    if closest_distance_km <= 0:
        return 1.0
    if math.isinf(closest_distance_km):
        return 0.0
    velocity_factor = min(relative_velocity_km_s / HIGH_VELOCITY_KM_S, 1.0)
    distance_factor = 1.0 / (closest_distance_km + 1.0)
    return _clamp(100.0 * distance_factor * velocity_factor * factor)


def conjunction_risk(closest_conjunction_km: float | None) -> float:
    """Risk from the closest recent conjunction; 0 if there is none."""
    if closest_conjunction_km is None:
        return 0.0
    return _clamp(1.0 - closest_conjunction_km / STORAGE_THRESHOLD_KM)


def composite_risk(congestion: float, conjunction: float) -> float:
    return _clamp(CONGESTION_RISK_WEIGHT * congestion + CONJUNCTION_RISK_WEIGHT * conjunction)


def nearest_neighbours(
    positions_km: np.ndarray,
    velocities_km_s: np.ndarray,
    threshold_km: float = CLOSE_APPROACH_THRESHOLD_KM,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Nearest neighbour of every point using a KD-tree.

    Args:
        positions_km: Array of shape (n, 3).
        velocities_km_s: Array of shape (n, 3).
        threshold_km: Radius for counting close approaches.

    Returns:
        Tuple of (distance_km, relative_speed_km_s, close_approach_count),
        each of shape (n,). With fewer than two points the distance is inf.
    """
    n = len(positions_km)
    distances = np.full(n, np.inf)
    speeds = np.zeros(n)
    counts = np.zeros(n, dtype=np.int64)
    if n < 2:
        return distances, speeds, counts

    tree = cKDTree(positions_km)
    dist, idx = tree.query(positions_km, k=2)
    for i in range(n):
        # A coincident point may be returned ahead of the query point itself
        j = idx[i, 1] if idx[i, 0] == i else idx[i, 0]
        d = dist[i, 1] if idx[i, 0] == i else dist[i, 0]
        distances[i] = d
        speeds[i] = float(np.linalg.norm(velocities_km_s[i] - velocities_km_s[j]))

    within = tree.query_ball_point(positions_km, r=threshold_km, return_length=True)
    counts = np.asarray(within, dtype=np.int64) - 1
    return distances, speeds, counts


def closest_recent_conjunctions(
    conjunctions: list[Conjunction],
    now: datetime,
    window_hours: float = FRESHNESS_WINDOW_HOURS,
) -> dict[int, tuple[float, int]]:
    """Closest conjunction distance and conjunction count per catalog id.

    Only conjunctions created within ``window_hours`` of ``now`` count.
    """
    since = now - timedelta(hours=window_hours)
    closest: dict[int, tuple[float, int]] = {}
    for conjunction in conjunctions:
        if conjunction.created_at is not None and conjunction.created_at < since:
            continue
        for catalog_id in conjunction.key:
            best, count = closest.get(catalog_id, (math.inf, 0))
            closest[catalog_id] = (min(best, conjunction.closest_approach_km), count + 1)
    return closest


def score_risks(
    store_snapshot: list[SpaceObject],
    recent_conjunctions: list[Conjunction],
    now: datetime | None = None,
    window_hours: float = FRESHNESS_WINDOW_HOURS,
) -> list[RiskScore]:
    """Score every object in a population snapshot.

    Objects are propagated to ``now``; objects SGP4 cannot place are left
    out. The congestion factor counts the snapshot objects that share the
    object's orbit regime.

    Args:
        store_snapshot: Population snapshot.
        recent_conjunctions: Conjunctions to draw conjunction risk from.
        now: Scoring time (UTC). Defaults to the current time.
        window_hours: Freshness window for conjunctions.

    Returns:
        RiskScore per propagated object, in snapshot order.
    """
    now = now or datetime.now(timezone.utc)

    band_counts: dict[str, int] = {}
    for obj in store_snapshot:
        band = altitude_band(obj.orbital_altitude_km)
        band_counts[band] = band_counts.get(band, 0) + 1

    placed: list[SpaceObject] = []
    positions = []
    velocities = []
    for obj in store_snapshot:
        state = propagate_state(obj, now)
        if state is None:
            logger.warning("Could not propagate catalog %d for risk scoring", obj.catalog_id)
            continue
        placed.append(obj)
        positions.append(state.position_km)
        velocities.append(state.velocity_km_s)

    if not placed:
        return []

    distances, speeds, counts = nearest_neighbours(np.array(positions), np.array(velocities))
    conjunction_index = closest_recent_conjunctions(recent_conjunctions, now, window_hours)

    scores = []
    for i, obj in enumerate(placed):
        factor = congestion_factor(band_counts.get(altitude_band(obj.orbital_altitude_km), 0))
        # Co-moving neighbours fall back to 1 km/s
        v_rel = float(speeds[i]) or 1.0
        congestion = congestion_risk(float(distances[i]), v_rel, factor)

        closest_km, active = conjunction_index.get(obj.catalog_id, (None, 0))
        conjunction = conjunction_risk(closest_km)

        scores.append(
            RiskScore(
                catalog_id=obj.catalog_id,
                name=obj.name,
                risk_score=composite_risk(congestion, conjunction),
                congestion_risk=congestion,
                conjunction_risk=conjunction,
                closest_distance_km=float(distances[i]),
                closest_velocity_km_s=v_rel,
                close_approach_count=int(counts[i]),
                orbital_altitude_km=obj.orbital_altitude_km,
                active_conjunctions=active,
            )
        )

    logger.info(
        "Scored %d objects (%d with active conjunctions)",
        len(scores),
        sum(1 for s in scores if s.has_active_conjunction),
    )
    return scores


@dataclass
class RiskStatistics:
    """Population summary of stored risk scores.

    Attributes:
        total: Number of objects.
        high: Objects scoring at least 0.6.
        medium: Objects scoring in [0.3, 0.6).
        low: Objects scoring below 0.3.
        by_band: Object count per orbit regime.
        average_risk: Bucket-weighted mean (0.8 high, 0.4 medium, 0.1 low).
    """

    total: int
    high: int
    medium: int
    low: int
    by_band: dict[str, int]
    average_risk: float


def risk_statistics(objects: list[SpaceObject]) -> RiskStatistics:
    """Summarize the stored risk scores of a population."""
    high = sum(1 for o in objects if o.risk_score >= RISK_SCORE_HIGH)
    medium = sum(1 for o in objects if RISK_SCORE_MEDIUM <= o.risk_score < RISK_SCORE_HIGH)
    low = len(objects) - high - medium

    by_band = {band: 0 for band in BANDS}
    for obj in objects:
        by_band[altitude_band(obj.orbital_altitude_km)] += 1

    average = (high * 0.8 + medium * 0.4 + low * 0.1) / len(objects) if objects else 0.0
    return RiskStatistics(
        total=len(objects),
        high=high,
        medium=medium,
        low=low,
        by_band=by_band,
        average_risk=average,
    )


def high_risk_objects(
    objects: list[SpaceObject],
    min_risk: float = HIGH_RISK_OBJECT_MIN_SCORE,
    limit: int | None = 10,
) -> list[SpaceObject]:
    """Objects whose stored risk score is at least ``min_risk``, riskiest first."""
    selected = sorted(
        (o for o in objects if o.risk_score >= min_risk),
        key=lambda o: o.risk_score,
        reverse=True,
    )
    return selected[:limit] if limit is not None else selected
