"""Conjunction screening: identify close approaches within a population.

A detection run samples every object over a shared time grid, buckets the
objects by orbit regime, compares each pair inside a regime on the commonly
valid samples and keeps the pairs whose minimum separation falls below the
storage threshold. Surviving pairs are augmented with a collision probability.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import NDArray

from astrashield.core.probability import (
    PcOptions,
    compute_pc,
    format_probability,
    risk_level_from_pc,
)
from astrashield.core.propagation import propagate_grid
from astrashield.core.tle import SpaceObject
from astrashield.core.uncertainty import ConjunctionUncertainty, conjunction_uncertainty
from astrashield.utils.config import EngineConfig
from astrashield.utils.constants import (
    LEO_MAX_ALT_KM,
    MEAN_ORBITAL_SPEED_KM_S,
    MEO_MAX_ALT_KM,
    RISK_DISTANCE_CRITICAL_KM,
    RISK_DISTANCE_HIGH_KM,
    RISK_DISTANCE_MODERATE_KM,
)
from astrashield.utils.errors import PropagationError

if TYPE_CHECKING:
    from astrashield.core.engine import CancellationToken

logger = logging.getLogger(__name__)

BANDS = ("leo", "meo", "geo")
RISK_LEVELS = ("low", "moderate", "high", "critical")


def altitude_band(altitude_km: float) -> str:
    """Orbit regime of an altitude: 'leo', 'meo' or 'geo'."""
    if altitude_km <= LEO_MAX_ALT_KM:
        return "leo"
    if altitude_km <= MEO_MAX_ALT_KM:
        return "meo"
    return "geo"


def distance_risk_level(distance_km: float) -> str:
    """Risk level from miss distance alone."""
    if distance_km < RISK_DISTANCE_CRITICAL_KM:
        return "critical"
    if distance_km < RISK_DISTANCE_HIGH_KM:
        return "high"
    if distance_km < RISK_DISTANCE_MODERATE_KM:
        return "moderate"
    return "low"


def approximate_relative_velocity() -> float:
    """Relative speed recorded for a conjunction, in km/s.

    Sampled screening carries no velocities, so two objects at the mean
    orbital speed meeting head-on are assumed.
    """
    return 2.0 * MEAN_ORBITAL_SPEED_KM_S


@dataclass
class Trajectory:
    """Sampled positions of one object during a detection run.

    Attributes:
        obj: The sampled object.
        times: Sample times (UTC).
        positions_km: ECI positions, shape (n_samples, 3).
        valid: Mask of samples SGP4 produced, shape (n_samples,).
        altitude_km: Stored mean altitude used for banding and prefiltering.
        band: Orbit regime.
    """

    obj: SpaceObject
    times: list[datetime]
    positions_km: NDArray[np.float64]
    valid: NDArray[np.bool_]
    altitude_km: float
    band: str

    @property
    def catalog_id(self) -> int:
        return self.obj.catalog_id


@dataclass
class CandidateConjunction:
    """A sampled close approach before Pc is attached.

    Attributes:
        cat_a: First catalog id as compared.
        cat_b: Second catalog id as compared.
        distance_km: Minimum sampled separation.
        tca: Sample time of the minimum.
        risk_level: Level from the distance ladder.
        band: Orbit regime the pair was compared in.
        relative_velocity_km_s: Recorded relative speed.
    """

    cat_a: int
    cat_b: int
    distance_km: float
    tca: datetime
    risk_level: str
    band: str = "leo"
    relative_velocity_km_s: float = field(default_factory=approximate_relative_velocity)


@dataclass
class Conjunction:
    """A persisted close approach between two objects.

    Keyed by the canonical pair ``(cat_low, cat_high)``.
    """

    cat_low: int
    cat_high: int
    closest_approach_km: float
    tca: datetime
    relative_velocity_km_s: float
    risk_level: str
    probability_of_collision: float = 0.0
    probability_formatted: str = "0"
    uncertainty: ConjunctionUncertainty | None = None
    primary_radius_m: float = 0.0
    secondary_radius_m: float = 0.0
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.cat_low >= self.cat_high:
            raise ValueError(f"Pair not canonical: ({self.cat_low}, {self.cat_high})")
        if not math.isfinite(self.closest_approach_km) or self.closest_approach_km < 0:
            raise ValueError(f"Invalid closest approach: {self.closest_approach_km}")
        if not 0.0 <= self.probability_of_collision <= 1.0:
            raise ValueError(f"Probability out of range: {self.probability_of_collision}")
        if self.risk_level not in RISK_LEVELS:
            raise ValueError(f"Unknown risk level: {self.risk_level!r}")

    @property
    def key(self) -> tuple[int, int]:
        return self.cat_low, self.cat_high

    def involves(self, catalog_id: int) -> bool:
        return catalog_id in (self.cat_low, self.cat_high)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted conjunction schema."""
        return {
            "cat_low": self.cat_low,
            "cat_high": self.cat_high,
            "closest_approach_km": self.closest_approach_km,
            "tca": self.tca,
            "relative_velocity_km_s": self.relative_velocity_km_s,
            "risk_level": self.risk_level,
            "probability_of_collision": self.probability_of_collision,
            "probability_formatted": self.probability_formatted,
            "uncertainty": self.uncertainty.to_record() if self.uncertainty else None,
            "primary_radius_m": self.primary_radius_m,
            "secondary_radius_m": self.secondary_radius_m,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Conjunction:
        return cls(
            cat_low=int(record["cat_low"]),
            cat_high=int(record["cat_high"]),
            closest_approach_km=float(record["closest_approach_km"]),
            tca=record["tca"],
            relative_velocity_km_s=float(record["relative_velocity_km_s"]),
            risk_level=record["risk_level"],
            probability_of_collision=float(record.get("probability_of_collision") or 0.0),
            probability_formatted=record.get("probability_formatted") or "0",
            uncertainty=ConjunctionUncertainty.from_record(record.get("uncertainty")),
            primary_radius_m=float(record.get("primary_radius_m") or 0.0),
            secondary_radius_m=float(record.get("secondary_radius_m") or 0.0),
            created_at=record.get("created_at"),
        )


@dataclass
class DetectionStats:
    """Counters describing one detection run."""

    loaded: int = 0
    propagated: int = 0
    by_band: dict[str, int] = field(default_factory=dict)
    comparisons: int = 0
    candidates: int = 0
    pc_failures: int = 0
    duration_s: float = 0.0


@dataclass
class DetectionResult:
    """Conjunctions found by a run together with its statistics."""

    conjunctions: list[Conjunction]
    stats: DetectionStats


def sample_trajectories(
    objects: list[SpaceObject],
    start: datetime,
    steps: int,
    step_minutes: float,
    batch_size: int = 100,
    token: CancellationToken | None = None,
) -> dict[int, Trajectory]:
    """Sample every object over a regular time grid.

    Objects are propagated in batches; cancellation is checked before each
    batch. Failed samples are masked and objects without a single valid
    sample are left out.

    Args:
        objects: Objects to sample.
        start: First sample time (UTC).
        steps: Samples per object.
        step_minutes: Spacing between samples.
        batch_size: Objects per propagation batch.
        token: Optional cancellation token.

    Returns:
        Trajectories keyed by catalog id, in input order.
    """
    trajectories: dict[int, Trajectory] = {}
    for offset in range(0, len(objects), batch_size):
        if token is not None:
            token.raise_if_cancelled("propagation")
        batch = objects[offset:offset + batch_size]
        grid = propagate_grid(batch, start, steps, step_minutes)
        for i, obj in enumerate(batch):
            valid = grid.valid[i]
            if not valid.any():
                logger.debug("Catalog %d produced no valid samples; omitted", obj.catalog_id)
                continue
            altitude = obj.orbital_altitude_km
            trajectories[obj.catalog_id] = Trajectory(
                obj=obj,
                times=grid.times,
                positions_km=grid.positions_km[i],
                valid=valid,
                altitude_km=altitude,
                band=altitude_band(altitude),
            )
    return trajectories


def closest_approach(a: Trajectory, b: Trajectory) -> tuple[float, datetime] | None:
    """Minimum separation of two trajectories over their common samples.

    Returns:
        Tuple of (distance_km, sample_time), or None if the trajectories
        share no valid sample. Ties go to the earliest sample.
    """
    n = min(len(a.valid), len(b.valid))
    common = a.valid[:n] & b.valid[:n]
    if not common.any():
        return None
    diff = a.positions_km[:n] - b.positions_km[:n]
    dist_sq = np.einsum("ij,ij->i", diff, diff)
    dist_sq = np.where(common, dist_sq, np.inf)
    # argmin returns the first occurrence of the minimum
    idx = int(np.argmin(dist_sq))
    return math.sqrt(float(dist_sq[idx])), a.times[idx]


def find_candidates(
    trajectories: dict[int, Trajectory],
    altitude_prefilter_km: float,
    storage_threshold_km: float,
    token: CancellationToken | None = None,
    stats: DetectionStats | None = None,
) -> list[CandidateConjunction]:
    """Compare all in-band pairs and keep those below the storage threshold.

    Pairs whose stored altitudes differ by more than ``altitude_prefilter_km``
    are never compared. Cancellation is checked at each band boundary.

    Args:
        trajectories: Trajectories keyed by catalog id.
        altitude_prefilter_km: Maximum altitude difference of a compared pair.
        storage_threshold_km: Exclusive distance threshold.
        token: Optional cancellation token.
        stats: Optional counters to update.

    Returns:
        Candidates in discovery order.
    """
    by_band: dict[str, list[Trajectory]] = {band: [] for band in BANDS}
    for trajectory in trajectories.values():
        by_band[trajectory.band].append(trajectory)
    if stats is not None:
        stats.by_band = {band: len(members) for band, members in by_band.items()}

    candidates: list[CandidateConjunction] = []
    comparisons = 0
    for band in BANDS:
        if token is not None:
            token.raise_if_cancelled("screening", candidates)
        members = by_band[band]
        for i in range(len(members)):
            a = members[i]
            for j in range(i + 1, len(members)):
                b = members[j]
                if abs(a.altitude_km - b.altitude_km) > altitude_prefilter_km:
                    continue
                comparisons += 1
                approach = closest_approach(a, b)
                if approach is None:
                    continue
                distance_km, tca = approach
                if distance_km < storage_threshold_km:
                    candidates.append(
                        CandidateConjunction(
                            cat_a=a.catalog_id,
                            cat_b=b.catalog_id,
                            distance_km=distance_km,
                            tca=tca,
                            risk_level=distance_risk_level(distance_km),
                            band=band,
                        )
                    )

    if stats is not None:
        stats.comparisons += comparisons
        stats.candidates += len(candidates)
    logger.debug("%d comparisons, %d candidates", comparisons, len(candidates))
    return candidates


def canonical_pair(cat_a: int, cat_b: int) -> tuple[int, int]:
    """Order a pair of catalog ids as (low, high)."""
    if cat_a == cat_b:
        raise ValueError(f"A conjunction needs two distinct objects, got {cat_a} twice")
    return (cat_a, cat_b) if cat_a < cat_b else (cat_b, cat_a)


def canonicalize_candidates(candidates: list[CandidateConjunction]) -> list[CandidateConjunction]:
    """Key candidates by canonical pair; a later candidate replaces an earlier one.

    Returned candidates have ``cat_a < cat_b``.
    """
    by_pair: dict[tuple[int, int], CandidateConjunction] = {}
    for candidate in candidates:
        low, high = canonical_pair(candidate.cat_a, candidate.cat_b)
        by_pair[(low, high)] = CandidateConjunction(
            cat_a=low,
            cat_b=high,
            distance_km=candidate.distance_km,
            tca=candidate.tca,
            risk_level=candidate.risk_level,
            band=candidate.band,
            relative_velocity_km_s=candidate.relative_velocity_km_s,
        )
    return list(by_pair.values())


def assess_candidate(
    candidate: CandidateConjunction,
    objects: dict[int, SpaceObject],
    pc_options: PcOptions,
    created_at: datetime,
) -> tuple[Conjunction, bool]:
    """Attach Pc and uncertainty to a canonical candidate.

    A failed Pc evaluation never aborts the run: the conjunction keeps its
    distance-ladder level with ``Pc = 0`` and no uncertainty.

    Returns:
        Tuple of (conjunction, pc_ok).
    """
    low, high = canonical_pair(candidate.cat_a, candidate.cat_b)
    probability = 0.0
    risk_level = candidate.risk_level
    uncertainty = None
    pc_ok = True
    try:
        result = compute_pc(objects[low], objects[high], candidate.tca, pc_options)
        if not math.isfinite(result.probability):
            raise ValueError(f"Non-finite Pc for {low}/{high}")
        uncertainty = conjunction_uncertainty(result.combined_covariance)
        probability = result.probability
        risk_level = risk_level_from_pc(probability)
    except (PropagationError, ValueError, KeyError, np.linalg.LinAlgError) as e:
        logger.warning("Pc evaluation failed for %d/%d: %s", low, high, e)
        probability = 0.0
        risk_level = candidate.risk_level
        uncertainty = None
        pc_ok = False

    conjunction = Conjunction(
        cat_low=low,
        cat_high=high,
        closest_approach_km=candidate.distance_km,
        tca=candidate.tca,
        relative_velocity_km_s=candidate.relative_velocity_km_s,
        risk_level=risk_level,
        probability_of_collision=probability,
        probability_formatted=format_probability(probability),
        uncertainty=uncertainty,
        primary_radius_m=pc_options.primary_radius_m,
        secondary_radius_m=pc_options.secondary_radius_m,
        created_at=created_at,
    )
    return conjunction, pc_ok


def detect_conjunctions(
    objects: list[SpaceObject],
    now: datetime,
    config: EngineConfig | None = None,
    token: CancellationToken | None = None,
) -> DetectionResult:
    """Run the full screening pipeline over a population snapshot.

    Args:
        objects: Population snapshot; only the first ``max_objects`` are used.
        now: Start of the forecast window, also stamped as ``created_at``.
        config: Engine configuration; defaults apply if omitted.
        token: Optional cancellation token.

    Returns:
        DetectionResult with canonical conjunctions.

    Raises:
        DetectionCancelled: If the token was set during the run.
    """
    config = config or EngineConfig()
    started = time.perf_counter()
    stats = DetectionStats()

    population = list(objects)[:config.max_objects]
    stats.loaded = len(population)
    logger.info("Loaded %d objects for conjunction detection", stats.loaded)

    trajectories = sample_trajectories(
        population,
        now,
        config.sample_count,
        config.sample_interval_min,
        config.propagation_batch_size,
        token,
    )
    stats.propagated = len(trajectories)

    candidates = find_candidates(
        trajectories,
        config.altitude_prefilter_km,
        config.storage_threshold_km,
        token,
        stats,
    )
    canonical = canonicalize_candidates(candidates)

    by_id = {catalog_id: t.obj for catalog_id, t in trajectories.items()}
    pc_options = config.pc_options()
    conjunctions: list[Conjunction] = []
    for candidate in canonical:
        if token is not None:
            token.raise_if_cancelled("probability", conjunctions)
        conjunction, pc_ok = assess_candidate(candidate, by_id, pc_options, now)
        if not pc_ok:
            stats.pc_failures += 1
        conjunctions.append(conjunction)

    stats.duration_s = time.perf_counter() - started
    logger.info(
        "Conjunction detection: %d propagated (LEO %d, MEO %d, GEO %d), "
        "%d comparisons, %d conjunctions in %.2f s",
        stats.propagated,
        stats.by_band.get("leo", 0),
        stats.by_band.get("meo", 0),
        stats.by_band.get("geo", 0),
        stats.comparisons,
        len(conjunctions),
        stats.duration_s,
    )
    return DetectionResult(conjunctions=conjunctions, stats=stats)


def run_conjunction_detection(
    store_snapshot: list[SpaceObject],
    now: datetime,
    config: EngineConfig | None = None,
    token: CancellationToken | None = None,
) -> list[Conjunction]:
    """Detect conjunctions in a population snapshot.

    Pure with respect to the store: persistence is the caller's concern.

    Returns:
        Canonical conjunctions with Pc and uncertainty attached.
    """
    return detect_conjunctions(store_snapshot, now, config, token).conjunctions
