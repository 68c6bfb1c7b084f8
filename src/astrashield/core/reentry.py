"""Orbital decay and reentry prediction for low objects.

Decay is integrated with a simple drag model over a tabulated exponential
atmosphere. The model assumes a circular orbit and re-derives the orbital
speed from altitude at every step.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from astrashield.core.propagation import mean_elements, propagate_state
from astrashield.core.tle import SpaceObject
from astrashield.utils.constants import (
    ATMOSPHERE_ENTRY_ALTITUDE_KM,
    BALLISTIC_COEFFICIENT_TYPICAL,
    CRITICAL_REENTRY_ALTITUDE_KM,
    DECAY_PREDICTION_DAYS,
    DECAY_TIME_STEP_DAYS,
    EARTH_MU_KM3_S2 as MU,
    EARTH_RADIUS_KM as RE,
    REENTRY_ALTITUDE_THRESHOLD_KM,
    SECONDS_PER_DAY,
    SOLAR_FLUX_AVG_SFU,
)

logger = logging.getLogger(__name__)

# (altitude km, density kg/m³)
ATMOSPHERE_TABLE: tuple[tuple[float, float], ...] = (
    (100.0, 5.6e-7),
    (120.0, 2.8e-8),
    (150.0, 3.7e-9),
    (200.0, 2.8e-10),
    (300.0, 2.4e-11),
    (400.0, 3.7e-12),
    (500.0, 1.5e-12),
    (600.0, 6.0e-13),
    (700.0, 2.5e-13),
    (800.0, 1.1e-13),
)

DENSITY_ABOVE_TABLE = 1e-14
DENSITY_BELOW_TABLE = 1e-6
DRAG_CEILING_KM = 500.0

MIN_BALLISTIC_COEFFICIENT = 0.001
MAX_BALLISTIC_COEFFICIENT = 0.1

LARGE_OBJECT_PATTERNS = ("station", "模块", "module", "tiangong", "iss", "skylab", "salyut", "mir")

STATUS_CONFIDENCE = {
    "critical": "high",
    "warning": "medium",
    "elevated": "low-medium",
    "normal": "medium",
}


@dataclass
class OrbitalState:
    """Current orbit of an object as used by the decay model.

    Attributes:
        altitude_km: Altitude above the mean Earth radius.
        velocity_km_s: Orbital speed.
        period_min: Circular-orbit period at the current radius.
        semi_major_axis_km: Current orbital radius.
        eccentricity: Eccentricity.
        inclination_deg: Inclination in degrees.
        raan_deg: Right ascension of the ascending node in degrees.
        mean_motion_rev_per_day: Mean motion.
        bstar: BSTAR drag term.
        mean_motion_dot: First derivative of mean motion (rev/day²).
    """

    altitude_km: float
    velocity_km_s: float
    period_min: float
    semi_major_axis_km: float
    eccentricity: float
    inclination_deg: float
    raan_deg: float = 0.0
    mean_motion_rev_per_day: float = 0.0
    bstar: float = 0.0
    mean_motion_dot: float = 0.0


@dataclass
class DecayIntegration:
    """Outcome of integrating the decay model.

    Attributes:
        days: Elapsed days when integration stopped.
        final_altitude_km: Altitude at that time.
        reached_entry: True if the entry altitude was reached within the horizon.
    """

    days: float
    final_altitude_km: float
    reached_entry: bool


@dataclass
class UncontrolledAssessment:
    """Heuristic score for an uncontrolled reentry."""

    is_uncontrolled: bool
    score: int
    reasons: list[str] = field(default_factory=list)
    risk_level: str = "low"


@dataclass
class ReentryWindow:
    """Latitude band where reentry may occur.

    Attributes:
        possible_latitude_range: (min, max) latitude in degrees.
        likely_latitude_range: (min, max) latitude in degrees.
        earth_rotation_per_orbit_deg: Ground-track shift per revolution.
    """

    possible_latitude_range: tuple[float, float]
    likely_latitude_range: tuple[float, float]
    earth_rotation_per_orbit_deg: float
    orbital_plane_fixed: bool = True


@dataclass
class ReentryPrediction:
    """Reentry forecast for one object."""

    catalog_id: int
    name: str
    predictable: bool
    reason: str = ""
    current_altitude_km: float | None = None
    current_velocity_km_s: float | None = None
    decay_rate_km_per_day: float | None = None
    predicted_reentry_utc: datetime | None = None
    days_until_reentry: float | None = None
    status: str = "normal"
    confidence: str = "medium"
    ballistic_coefficient: float | None = None
    reentry_within_horizon: bool = False
    uncontrolled_assessment: UncontrolledAssessment | None = None
    window: ReentryWindow | None = None

    @property
    def is_alert(self) -> bool:
        if not self.predictable:
            return False
        if self.status in ("critical", "warning"):
            return True
        return bool(self.uncontrolled_assessment and self.uncontrolled_assessment.is_uncontrolled)


def atmospheric_density(altitude_km: float, solar_flux_sfu: float = SOLAR_FLUX_AVG_SFU) -> float:
    """Atmospheric density in kg/m³.

    Log-linear interpolation in the 100-800 km table, scaled by a solar
    activity factor clamped to [0.5, 2].
    """
    if altitude_km >= ATMOSPHERE_TABLE[-1][0]:
        return DENSITY_ABOVE_TABLE
    if altitude_km <= ATMOSPHERE_TABLE[0][0]:
        return DENSITY_BELOW_TABLE

    for (alt_lo, rho_lo), (alt_hi, rho_hi) in zip(ATMOSPHERE_TABLE, ATMOSPHERE_TABLE[1:]):
        if alt_lo <= altitude_km < alt_hi:
            t = (altitude_km - alt_lo) / (alt_hi - alt_lo)
            density = rho_lo * (rho_hi / rho_lo) ** t
            solar_factor = 1.0 + (solar_flux_sfu - SOLAR_FLUX_AVG_SFU) / SOLAR_FLUX_AVG_SFU * 0.5
            return density * min(max(solar_factor, 0.5), 2.0)
    raise ValueError(f"Altitude not covered by the atmosphere table: {altitude_km}")


def decay_rate(
    altitude_km: float,
    velocity_km_s: float,
    ballistic_coefficient: float = BALLISTIC_COEFFICIENT_TYPICAL,
    solar_flux_sfu: float = SOLAR_FLUX_AVG_SFU,
) -> float:
    """Altitude loss in km/day from ``0.5 * rho * v² / BC``.

    Returns 0 above the drag ceiling of 500 km.
    """
    if altitude_km > DRAG_CEILING_KM:
        return 0.0
    density = atmospheric_density(altitude_km, solar_flux_sfu)
    velocity_m_s = velocity_km_s * 1000.0
    drag_acceleration = 0.5 * density * velocity_m_s * velocity_m_s / ballistic_coefficient
    return max(0.0, drag_acceleration / 1000.0 * SECONDS_PER_DAY)


def estimate_ballistic_coefficient(mean_motion_dot: float, bstar: float) -> float:
    """Ballistic coefficient proxy in m²/kg.

    Taken from the mean-motion derivative when present, otherwise from
    BSTAR, clamped to [0.001, 0.1]; 0.01 if neither is available.
    """
    if mean_motion_dot:
        estimate = 1.0 / (abs(mean_motion_dot) * 100.0 + 1.0)
    elif bstar:
        estimate = abs(bstar) * 100.0
    else:
        return BALLISTIC_COEFFICIENT_TYPICAL
    return min(max(estimate, MIN_BALLISTIC_COEFFICIENT), MAX_BALLISTIC_COEFFICIENT)


def circular_velocity(altitude_km: float) -> float:
    return math.sqrt(MU / (RE + altitude_km))


def orbital_state(obj: SpaceObject, t: datetime) -> OrbitalState | None:
    """Current orbit of an object from SGP4 and its mean elements.

    Returns:
        OrbitalState, or None if the object cannot be propagated to ``t``.
    """
    state = propagate_state(obj, t)
    elements = mean_elements(obj.line1, obj.line2)
    if state is None or elements is None:
        return None
    radius = state.radius_km
    return OrbitalState(
        altitude_km=radius - RE,
        velocity_km_s=state.speed_km_s,
        period_min=2.0 * math.pi * math.sqrt(radius**3 / MU) / 60.0,
        semi_major_axis_km=radius,
        eccentricity=elements.eccentricity,
        inclination_deg=elements.inclination_deg,
        raan_deg=elements.raan_deg,
        mean_motion_rev_per_day=elements.mean_motion_rev_per_day,
        bstar=elements.bstar,
        mean_motion_dot=elements.mean_motion_dot,
    )


def integrate_decay(
    altitude_km: float,
    velocity_km_s: float,
    ballistic_coefficient: float = BALLISTIC_COEFFICIENT_TYPICAL,
    horizon_days: float = DECAY_PREDICTION_DAYS,
    step_days: float = DECAY_TIME_STEP_DAYS,
    solar_flux_sfu: float = SOLAR_FLUX_AVG_SFU,
) -> DecayIntegration:
    """Step the decay model until the entry altitude or the horizon.

    Args:
        altitude_km: Starting altitude.
        velocity_km_s: Starting orbital speed.
        ballistic_coefficient: Ballistic coefficient in m²/kg.
        horizon_days: Maximum integration time.
        step_days: Integration step.
        solar_flux_sfu: Solar flux for the density model.

    Returns:
        DecayIntegration.
    """
    if step_days <= 0:
        raise ValueError("step_days must be positive")
    altitude = altitude_km
    velocity = velocity_km_s
    max_steps = int(round(horizon_days / step_days))
    steps = 0
    while altitude > ATMOSPHERE_ENTRY_ALTITUDE_KM and steps < max_steps:
        altitude -= decay_rate(altitude, velocity, ballistic_coefficient, solar_flux_sfu) * step_days
        steps += 1
        if altitude > CRITICAL_REENTRY_ALTITUDE_KM:
            velocity = circular_velocity(altitude)

    return DecayIntegration(
        days=steps * step_days,
        final_altitude_km=altitude,
        reached_entry=altitude <= ATMOSPHERE_ENTRY_ALTITUDE_KM,
    )


def classify_reentry(days_until_reentry: float) -> tuple[str, str]:
    """Status and confidence for a predicted time to reentry.

    Returns:
        Tuple of (status, confidence).
    """
    if days_until_reentry <= 1:
        status = "critical"
    elif days_until_reentry <= 7:
        status = "warning"
    elif days_until_reentry <= 14:
        status = "elevated"
    else:
        status = "normal"
    return status, STATUS_CONFIDENCE[status]


def assess_uncontrolled_reentry(name: str, state: OrbitalState | None) -> UncontrolledAssessment:
    """Score how likely an object is to make a hazardous uncontrolled reentry."""
    if state is None:
        return UncontrolledAssessment(is_uncontrolled=False, score=0, reasons=["Insufficient data"])

    score = 0
    reasons = []
    if state.altitude_km < REENTRY_ALTITUDE_THRESHOLD_KM:
        score += 2
        reasons.append("Below 400 km altitude")
    if state.eccentricity > 0.01:
        score += 1
        reasons.append("Elevated orbital eccentricity")
    if 80.0 < state.inclination_deg < 100.0:
        score += 1
        reasons.append("Polar or sun-synchronous orbit")
    lowered = name.lower()
    if any(pattern in lowered for pattern in LARGE_OBJECT_PATTERNS):
        score += 3
        reasons.append("Known large object")

    if score >= 5:
        level = "critical"
    elif score >= 3:
        level = "high"
    elif score >= 2:
        level = "medium"
    else:
        level = "low"
    return UncontrolledAssessment(is_uncontrolled=score >= 4, score=score, reasons=reasons, risk_level=level)


def reentry_window(inclination_deg: float, period_min: float) -> ReentryWindow:
    """Latitude band swept by the ground track of a decaying orbit."""
    max_latitude = math.degrees(math.asin(math.sin(math.radians(inclination_deg))))
    likely = 0.7 * max_latitude
    return ReentryWindow(
        possible_latitude_range=(-max_latitude, max_latitude),
        likely_latitude_range=(-likely, likely),
        earth_rotation_per_orbit_deg=360.0 * period_min / 1440.0,
    )


def predict_reentry(
    obj: SpaceObject,
    horizon_days: float = DECAY_PREDICTION_DAYS,
    now: datetime | None = None,
    solar_flux_sfu: float = SOLAR_FLUX_AVG_SFU,
    threshold_km: float = REENTRY_ALTITUDE_THRESHOLD_KM,
) -> ReentryPrediction:
    """Forecast when an object will reach the entry altitude.

    Objects above ``threshold_km`` are reported as not predictable. Below
    100 km reentry is treated as immediate. If the horizon passes before the
    entry altitude is reached, the horizon is reported as the time to
    reentry with ``reentry_within_horizon`` False.

    Args:
        obj: Object to forecast.
        horizon_days: Integration horizon.
        now: Forecast start (UTC). Defaults to the current time.
        solar_flux_sfu: Solar flux for the density model.
        threshold_km: Altitude above which no forecast is made.

    Returns:
        ReentryPrediction.
    """
    now = now or datetime.now(timezone.utc)
    state = orbital_state(obj, now)
    if state is None:
        logger.warning("Could not derive orbital state for catalog %d", obj.catalog_id)
        return ReentryPrediction(
            catalog_id=obj.catalog_id,
            name=obj.name,
            predictable=False,
            reason="Invalid orbital parameters",
        )

    assessment = assess_uncontrolled_reentry(obj.name, state)
    window = reentry_window(state.inclination_deg, state.period_min)
    base = dict(
        catalog_id=obj.catalog_id,
        name=obj.name,
        current_altitude_km=state.altitude_km,
        current_velocity_km_s=state.velocity_km_s,
        uncontrolled_assessment=assessment,
        window=window,
    )

    if state.altitude_km > threshold_km:
        return ReentryPrediction(predictable=False, reason="Altitude above tracking threshold", **base)

    if state.altitude_km < CRITICAL_REENTRY_ALTITUDE_KM:
        return ReentryPrediction(
            predictable=True,
            predicted_reentry_utc=now,
            days_until_reentry=0.0,
            status="critical",
            confidence="high",
            reentry_within_horizon=True,
            **base,
        )

    bc = estimate_ballistic_coefficient(state.mean_motion_dot, state.bstar)
    result = integrate_decay(
        state.altitude_km,
        state.velocity_km_s,
        bc,
        horizon_days,
        DECAY_TIME_STEP_DAYS,
        solar_flux_sfu,
    )
    status, confidence = classify_reentry(result.days)
    logger.debug(
        "Catalog %d: %.1f km, %.1f days to entry (%s)",
        obj.catalog_id, state.altitude_km, result.days, status,
    )
    return ReentryPrediction(
        predictable=True,
        decay_rate_km_per_day=decay_rate(state.altitude_km, state.velocity_km_s, bc, solar_flux_sfu),
        predicted_reentry_utc=now + timedelta(days=result.days),
        days_until_reentry=round(result.days, 1),
        status=status,
        confidence=confidence,
        ballistic_coefficient=bc,
        reentry_within_horizon=result.reached_entry,
        **base,
    )


def predict_reentries(
    objects: list[SpaceObject],
    now: datetime | None = None,
    horizon_days: float = DECAY_PREDICTION_DAYS,
    solar_flux_sfu: float = SOLAR_FLUX_AVG_SFU,
    threshold_km: float = REENTRY_ALTITUDE_THRESHOLD_KM,
) -> list[ReentryPrediction]:
    """Forecast every object whose stored altitude is below the threshold.

    Returns:
        Predictions sorted soonest first; unpredictable objects last.
    """
    now = now or datetime.now(timezone.utc)
    candidates = [o for o in objects if o.orbital_altitude_km < threshold_km]
    predictions = [
        predict_reentry(obj, horizon_days, now, solar_flux_sfu, threshold_km) for obj in candidates
    ]
    predictions.sort(
        key=lambda p: (p.days_until_reentry is None, p.days_until_reentry or 0.0)
    )
    logger.info("Processed %d reentry predictions", len(predictions))
    return predictions


def active_reentry_alerts(predictions: list[ReentryPrediction]) -> list[ReentryPrediction]:
    """Predictions that are critical, warning or flagged as uncontrolled."""
    return [p for p in predictions if p.is_alert]
