"""Collision probability estimation.

Pc is estimated in the in-plane (radial / tangential) block of the combined
RTN covariance of the two objects at the time of closest approach. Miss
distance, hard-body radii and covariance are all in meters / m².
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import numpy as np
from numpy.typing import NDArray
from scipy.integrate import dblquad

from astrashield.core.covariance import combine_covariances, default_covariance, to_rtn
from astrashield.core.propagation import StateVector, propagate_state
from astrashield.core.tle import SpaceObject
from astrashield.utils.constants import (
    DEFAULT_COVARIANCE_AGE_DAYS,
    DEFAULT_MONTE_CARLO_SAMPLES,
    DEFAULT_MONTE_CARLO_SEED,
    DEFAULT_PRIMARY_RADIUS_M,
    DEFAULT_SECONDARY_RADIUS_M,
    EARTH_RADIUS_KM,
    FAR_FIELD_RADIUS_MULTIPLE,
    PC_AGE_STEP_DAYS,
    PC_CRITICAL,
    PC_HIGH,
    PC_MODERATE,
)
from astrashield.utils.errors import PropagationError

logger = logging.getLogger(__name__)


class PcMethod(Enum):
    """Collision probability calculation methods."""

    MONTE_CARLO = "monte_carlo"
    FOSTER_1992 = "foster_1992"


@dataclass(frozen=True)
class PcOptions:
    """Tunables for a single Pc evaluation.

    Attributes:
        primary_radius_m: Hard-body radius of the first object.
        secondary_radius_m: Hard-body radius of the second object.
        covariance_age_days: Element-set age fed to the covariance model.
        monte_carlo_samples: Sample count for the Monte-Carlo method.
        method: Estimation method.
        seed: Seed for the Monte-Carlo generator. Fixed by default so that
            repeated evaluations of the same geometry agree.
        cross_section_scaling: Apply the cross-section ratio scaling to the
            Monte-Carlo fraction. Has no effect on FOSTER_1992.
    """

    primary_radius_m: float = DEFAULT_PRIMARY_RADIUS_M
    secondary_radius_m: float = DEFAULT_SECONDARY_RADIUS_M
    covariance_age_days: float = DEFAULT_COVARIANCE_AGE_DAYS
    monte_carlo_samples: int = DEFAULT_MONTE_CARLO_SAMPLES
    method: PcMethod = PcMethod.MONTE_CARLO
    seed: int | None = DEFAULT_MONTE_CARLO_SEED
    cross_section_scaling: bool = True

    @property
    def combined_radius_m(self) -> float:
        return self.primary_radius_m + self.secondary_radius_m


@dataclass
class PcResult:
    """Result of a collision probability calculation.

    Attributes:
        probability: Estimated collision probability in [0, 1].
        method: Method used for calculation.
        miss_distance_m: Separation of the two objects at TCA in meters.
        combined_hard_body_radius_m: Sum of the two hard-body radii.
        combined_covariance: Combined 3x3 RTN covariance in m².
        relative_velocity_km_s: Magnitude of the velocity difference at TCA.
        samples: Number of samples used (Monte-Carlo only).
        degenerate: True if the 1-D gaussian fallback was used.
    """

    probability: float
    method: PcMethod
    miss_distance_m: float
    combined_hard_body_radius_m: float
    combined_covariance: NDArray[np.float64] = field(repr=False)
    relative_velocity_km_s: float = 0.0
    samples: int | None = None
    degenerate: bool = False

    @property
    def risk_level(self) -> str:
        return risk_level_from_pc(self.probability)

    @property
    def probability_formatted(self) -> str:
        return format_probability(self.probability)


def monte_carlo_disk_fraction(
    miss_distance_m: float,
    sigma_rr: float,
    sigma_tt: float,
    radius_m: float,
    samples: int = DEFAULT_MONTE_CARLO_SAMPLES,
    seed: int | None = DEFAULT_MONTE_CARLO_SEED,
) -> float:
    """Fraction of gaussian samples that land inside the hard-body disk.

    Samples are drawn from diag(sigma_rr, sigma_tt) by the Box-Muller
    transform and offset by the miss distance along the radial axis.

    Args:
        miss_distance_m: Radial offset of the distribution center.
        sigma_rr: Radial variance (m²).
        sigma_tt: Tangential variance (m²).
        radius_m: Combined hard-body radius.
        samples: Number of samples.
        seed: Generator seed.

    Returns:
        Hit fraction in [0, 1].
    """
    if samples <= 0:
        raise ValueError("samples must be positive")
    rng = np.random.default_rng(seed)
    # 1 - u keeps the logarithm argument in (0, 1]
    u1, u2, u3, u4 = 1.0 - rng.random((4, samples))
    z1 = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
    z2 = np.sqrt(-2.0 * np.log(u3)) * np.cos(2.0 * np.pi * u4)

    r = miss_distance_m + z1 * math.sqrt(max(sigma_rr, 0.0))
    t = z2 * math.sqrt(max(sigma_tt, 0.0))
    hits = np.count_nonzero(r * r + t * t <= radius_m * radius_m)
    return hits / samples


def foster_disk_integral(
    miss_distance_m: float,
    cov_2d: NDArray,
    radius_m: float,
) -> float:
    """Integrate the correlated 2-D gaussian over the hard-body disk.

    The distribution is centered at (miss_distance_m, 0) in the R-T plane and
    the disk at the origin. Integration is done in polar coordinates with
    scipy's dblquad.

    Args:
        miss_distance_m: Radial offset of the distribution center.
        cov_2d: 2x2 in-plane covariance (m²).
        radius_m: Combined hard-body radius.

    Returns:
        Collision probability (0 to 1).
    """
    cov_2d = np.asarray(cov_2d, dtype=np.float64)
    det = float(np.linalg.det(cov_2d))
    if not math.isfinite(det) or det <= 0:
        return 0.0

    cov_inv = np.linalg.inv(cov_2d)
    norm_factor = 1.0 / (2.0 * np.pi * math.sqrt(det))

    def integrand_polar(theta, r):
        dx = r * np.cos(theta) - miss_distance_m
        dy = r * np.sin(theta)
        exponent = -0.5 * (
            cov_inv[0, 0] * dx * dx + 2.0 * cov_inv[0, 1] * dx * dy + cov_inv[1, 1] * dy * dy
        )
        return norm_factor * np.exp(exponent) * r

    result, _ = dblquad(
        integrand_polar,
        0.0, radius_m,
        lambda r: 0.0, lambda r: 2.0 * np.pi,
        epsabs=1e-12, epsrel=1e-8,
    )
    return float(np.clip(result, 0.0, 1.0))


def _gaussian_fallback(miss_distance_m: float, sigma_rr: float, sigma_tt: float, radius_m: float) -> float:
    variance = (sigma_rr + sigma_tt) / 2.0
    if not math.isfinite(variance) or variance <= 0:
        return 0.0
    z = (radius_m - miss_distance_m) / math.sqrt(variance)
    if z < 0:
        return 0.0
    return math.exp(-0.5 * z * z)


def collision_probability(
    miss_distance_m: float,
    combined_cov_rtn: NDArray,
    primary_radius_m: float = DEFAULT_PRIMARY_RADIUS_M,
    secondary_radius_m: float = DEFAULT_SECONDARY_RADIUS_M,
    *,
    method: PcMethod = PcMethod.MONTE_CARLO,
    samples: int = DEFAULT_MONTE_CARLO_SAMPLES,
    seed: int | None = DEFAULT_MONTE_CARLO_SEED,
    cross_section_scaling: bool = True,
) -> tuple[float, bool]:
    """Pc for a miss distance and combined RTN covariance.

    Returns zero once the miss distance exceeds ten combined radii. A
    non-positive or non-finite in-plane determinant falls back to a 1-D
    gaussian ``exp(-z²/2)`` with ``z = (R - d) / sigma``.

    Args:
        miss_distance_m: Separation at TCA in meters.
        combined_cov_rtn: Combined 3x3 RTN covariance in m².
        primary_radius_m: Hard-body radius of the first object.
        secondary_radius_m: Hard-body radius of the second object.
        method: Estimation method.
        samples: Monte-Carlo sample count.
        seed: Monte-Carlo seed.
        cross_section_scaling: Scale the Monte-Carlo fraction by
            ``min(1, pi R² / (2 pi sqrt(det))) * 2``.

    Returns:
        Tuple of (probability clamped to [0, 1], degenerate flag).
    """
    radius = primary_radius_m + secondary_radius_m
    if miss_distance_m > radius * FAR_FIELD_RADIUS_MULTIPLE:
        return 0.0, False

    cov = np.asarray(combined_cov_rtn, dtype=np.float64)
    sigma_rr = float(cov[0, 0])
    sigma_rt = float(cov[0, 1])
    sigma_tt = float(cov[1, 1])
    det = sigma_rr * sigma_tt - sigma_rt * sigma_rt

    if not math.isfinite(det) or det <= 0:
        logger.debug("Degenerate in-plane covariance (det=%s); using 1-D fallback", det)
        pc = _gaussian_fallback(miss_distance_m, sigma_rr, sigma_tt, radius)
        return float(min(max(pc, 0.0), 1.0)), True

    if method is PcMethod.FOSTER_1992:
        cov_2d = np.array([[sigma_rr, sigma_rt], [sigma_rt, sigma_tt]])
        return foster_disk_integral(miss_distance_m, cov_2d, radius), False

    pc = monte_carlo_disk_fraction(miss_distance_m, sigma_rr, sigma_tt, radius, samples, seed)
    if cross_section_scaling:
        uncertainty_area = 2.0 * math.pi * math.sqrt(det)
        collision_area = math.pi * radius * radius
        pc = pc * min(collision_area / uncertainty_area, 1.0) * 2.0
    return float(min(max(pc, 0.0), 1.0)), False


def covariance_ages(age_days: float) -> list[float]:
    """Ages scanned for the worst-case Pc at a given element-set age.

    The grid runs from 0 to ``age_days`` in fixed steps, so the grid of an
    older element set always contains the grid of a fresher one.
    """
    steps = int(math.floor(max(age_days, 0.0) / PC_AGE_STEP_DAYS + 1e-9))
    return [i * PC_AGE_STEP_DAYS for i in range(steps + 1)]


def _combined_rtn_covariance(states: tuple[StateVector, StateVector], age_days: float) -> NDArray[np.float64]:
    covariances = []
    for state in states:
        altitude_km = state.radius_km - EARTH_RADIUS_KM
        cov = default_covariance(altitude_km, age_days)
        covariances.append(to_rtn(cov, state.position_km, state.velocity_km_s))
    return combine_covariances(*covariances)


def compute_pc(
    object_a: SpaceObject,
    object_b: SpaceObject,
    tca: datetime,
    opts: PcOptions | None = None,
) -> PcResult:
    """Collision probability of two tracked objects at a given TCA.

    Both objects are propagated to TCA, a covariance is synthesized for each
    from its altitude and rotated into its RTN frame, and the sum is used as
    the combined covariance.

    Older data only ever widens the covariance, and a wider covariance can
    lower Pc for a close miss. The reported Pc is therefore the maximum over
    the covariance ages from :func:`covariance_ages`, which makes it
    non-decreasing in ``opts.covariance_age_days``. The returned covariance
    is the one at the requested age.

    Args:
        object_a: First object.
        object_b: Second object.
        tca: Time of closest approach (UTC).
        opts: Pc options; defaults apply if omitted.

    Returns:
        PcResult.

    Raises:
        PropagationError: If either object cannot be propagated to TCA.
    """
    opts = opts or PcOptions()

    state_a = propagate_state(object_a, tca)
    if state_a is None:
        raise PropagationError(f"Cannot propagate catalog {object_a.catalog_id} to {tca}")
    state_b = propagate_state(object_b, tca)
    if state_b is None:
        raise PropagationError(f"Cannot propagate catalog {object_b.catalog_id} to {tca}")

    states = (state_a, state_b)
    miss_distance_m = float(np.linalg.norm(state_b.position_m - state_a.position_m))
    relative_velocity_km_s = float(np.linalg.norm(state_b.velocity_km_s - state_a.velocity_km_s))

    probability, degenerate = 0.0, False
    for age_days in covariance_ages(opts.covariance_age_days):
        pc, flag = collision_probability(
            miss_distance_m,
            _combined_rtn_covariance(states, age_days),
            opts.primary_radius_m,
            opts.secondary_radius_m,
            method=opts.method,
            samples=opts.monte_carlo_samples,
            seed=opts.seed,
            cross_section_scaling=opts.cross_section_scaling,
        )
        if age_days == 0.0 or pc > probability:
            probability, degenerate = pc, flag
    combined = _combined_rtn_covariance(states, opts.covariance_age_days)

    logger.debug(
        "Pc %d/%d at %s: d=%.1f m, Pc=%.3e",
        object_a.catalog_id, object_b.catalog_id, tca, miss_distance_m, probability,
    )
    return PcResult(
        probability=probability,
        method=opts.method,
        miss_distance_m=miss_distance_m,
        combined_hard_body_radius_m=opts.combined_radius_m,
        combined_covariance=combined,
        relative_velocity_km_s=relative_velocity_km_s,
        samples=opts.monte_carlo_samples if opts.method is PcMethod.MONTE_CARLO and not degenerate else None,
        degenerate=degenerate,
    )


def risk_level_from_pc(probability: float) -> str:
    """Map a collision probability onto the risk ladder."""
    if probability >= PC_CRITICAL:
        return "critical"
    if probability >= PC_HIGH:
        return "high"
    if probability >= PC_MODERATE:
        return "moderate"
    return "low"


def format_probability(probability: float) -> str:
    """Human-readable rendering of a collision probability.

    Examples:
        >>> format_probability(0)
        '0'
        >>> format_probability(2.5e-3)
        '0.25%'
        >>> format_probability(3e-5)
        '0.03‰'
    """
    if probability <= 0:
        return "0"
    if probability >= 1:
        return "100%"
    if probability >= 1e-3:
        return f"{probability * 100:.2f}%"
    if probability >= 1e-5:
        return f"{probability * 1000:.2f}‰"
    if probability >= 1e-9:
        return f"{probability * 1e6:.2f} ppm"
    return f"{probability:.2e}"


def risk_score_from_pc(probability: float) -> float:
    """Logarithmic 0-1 risk score for a Pc (1e-3 maps to 0.8)."""
    if probability <= 0:
        return 0.0
    score = 0.8 + 0.3 * (math.log10(probability) + 3.0)
    return min(max(score, 0.0), 1.0)
