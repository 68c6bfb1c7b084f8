"""Orbital propagation via SGP4.

Thin adapter over the ``sgp4`` library. The library works in kilometers;
state vectors are normalized to meters here and converted back to
kilometers at the points where callers expect them.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

import numpy as np
from numpy.typing import NDArray
from sgp4.api import Satrec, SatrecArray, WGS72, jday

from astrashield.core.tle import SpaceObject

logger = logging.getLogger(__name__)

KM_TO_M = 1000.0


@dataclass
class StateVector:
    """Position and velocity in the TEME (ECI) frame.

    Attributes:
        position_m: [x, y, z] position in meters.
        velocity_m_s: [vx, vy, vz] velocity in m/s.
        epoch: Time of this state vector.
    """

    position_m: NDArray[np.float64]  # shape (3,)
    velocity_m_s: NDArray[np.float64]  # shape (3,)
    epoch: datetime

    @property
    def position_km(self) -> NDArray[np.float64]:
        return self.position_m / KM_TO_M

    @property
    def velocity_km_s(self) -> NDArray[np.float64]:
        return self.velocity_m_s / KM_TO_M

    @property
    def radius_km(self) -> float:
        return float(np.linalg.norm(self.position_m)) / KM_TO_M

    @property
    def speed_km_s(self) -> float:
        return float(np.linalg.norm(self.velocity_m_s)) / KM_TO_M


@dataclass
class MeanElements:
    """Mean elements as seen by SGP4 after initialization.

    Attributes:
        inclination_deg: Inclination in degrees.
        raan_deg: Right ascension of ascending node in degrees.
        eccentricity: Eccentricity.
        mean_motion_rad_min: Kozai mean motion in rad/min.
        bstar: BSTAR drag term.
        mean_motion_dot: First derivative of mean motion (rev/day²).
    """

    inclination_deg: float
    raan_deg: float
    eccentricity: float
    mean_motion_rad_min: float
    bstar: float
    mean_motion_dot: float

    @property
    def mean_motion_rev_per_day(self) -> float:
        return self.mean_motion_rad_min * 1440.0 / (2 * math.pi)


@dataclass
class TrajectoryGrid:
    """Positions of many objects over a shared time grid.

    Attributes:
        times: Sample times, shape (n_times,).
        positions_km: Array of shape (n_objects, n_times, 3).
        velocities_km_s: Array of shape (n_objects, n_times, 3).
        valid: Boolean array of shape (n_objects, n_times).
    """

    times: list[datetime]
    positions_km: NDArray[np.float64]
    velocities_km_s: NDArray[np.float64]
    valid: NDArray[np.bool_]


def _julian(t: datetime) -> tuple[float, float]:
    return jday(t.year, t.month, t.day, t.hour, t.minute, t.second + t.microsecond / 1e6)


def load_satrec(line1: str, line2: str) -> Satrec | None:
    """Initialize an SGP4 record, returning None if the lines are unusable."""
    try:
        satrec = Satrec.twoline2rv(line1, line2, WGS72)
    except (ValueError, IndexError) as e:
        logger.debug("Could not initialize SGP4 record: %s", e)
        return None
    if satrec.error != 0:
        logger.debug("SGP4 initialization error %d", satrec.error)
        return None
    return satrec


def _sgp4_state(satrec: Satrec, t: datetime) -> tuple[NDArray, NDArray] | None:
    jd, fr = _julian(t)
    error_code, pos, vel = satrec.sgp4(jd, fr)
    if error_code != 0:
        return None
    position = np.array(pos, dtype=np.float64) * KM_TO_M
    velocity = np.array(vel, dtype=np.float64) * KM_TO_M
    if not (np.all(np.isfinite(position)) and np.all(np.isfinite(velocity))):
        return None
    return position, velocity


def propagate(line1: str, line2: str, t: datetime) -> tuple[NDArray[np.float64], NDArray[np.float64]] | None:
    """Propagate an element set to a single time.

    Args:
        line1: Element-set line 1.
        line2: Element-set line 2.
        t: UTC datetime to propagate to.

    Returns:
        Tuple of (position_m, velocity_m_s) in the ECI frame, or None if the
        element set is unusable or SGP4 reports an error.
    """
    satrec = load_satrec(line1, line2)
    if satrec is None:
        return None
    state = _sgp4_state(satrec, t)
    if state is None:
        logger.debug("SGP4 propagation failed for %s at %s", line1[2:7].strip(), t)
    return state


def propagate_state(obj: SpaceObject, t: datetime) -> StateVector | None:
    """Propagate a tracked object to a single time.

    Args:
        obj: Object to propagate.
        t: UTC datetime to propagate to.

    Returns:
        StateVector in meters, or None on failure.
    """
    try:
        satrec = obj.satrec
    except (ValueError, IndexError):
        return None
    if satrec.error != 0:
        return None
    state = _sgp4_state(satrec, t)
    if state is None:
        logger.debug("SGP4 propagation failed for catalog %d at %s", obj.catalog_id, t)
        return None
    return StateVector(position_m=state[0], velocity_m_s=state[1], epoch=t)


def propagate_grid(
    objects: list[SpaceObject],
    start: datetime,
    steps: int,
    step_minutes: float,
) -> TrajectoryGrid:
    """Propagate many objects over a regular time grid using vectorized SGP4.

    Uses SatrecArray for C-level batch propagation. Samples that fail are
    marked invalid rather than raising.

    Args:
        objects: Objects to propagate.
        start: First sample time (UTC).
        steps: Number of samples.
        step_minutes: Spacing between samples in minutes.

    Returns:
        A TrajectoryGrid with km / km/s arrays.
    """
    times = [start + timedelta(minutes=i * step_minutes) for i in range(steps)]
    n = len(objects)
    if n == 0 or steps == 0:
        return TrajectoryGrid(
            times=times,
            positions_km=np.empty((n, steps, 3), dtype=np.float64),
            velocities_km_s=np.empty((n, steps, 3), dtype=np.float64),
            valid=np.zeros((n, steps), dtype=np.bool_),
        )

    positions = np.full((n, steps, 3), np.nan, dtype=np.float64)
    velocities = np.full((n, steps, 3), np.nan, dtype=np.float64)
    valid = np.zeros((n, steps), dtype=np.bool_)

    satrecs = []
    rows = []
    for i, obj in enumerate(objects):
        satrec = load_satrec(obj.line1, obj.line2)
        if satrec is None:
            logger.debug("Skipping catalog %d: unusable element set", obj.catalog_id)
            continue
        satrecs.append(satrec)
        rows.append(i)

    if satrecs:
        base_jd, base_fr = _julian(start)
        jd = np.full(steps, base_jd)
        fr = base_fr + np.arange(steps) * (step_minutes / 1440.0)

        # Output shape: errors (k, steps), positions/velocities (k, steps, 3)
        errors, r_arr, v_arr = SatrecArray(satrecs).sgp4(jd, fr)
        positions[rows] = r_arr
        velocities[rows] = v_arr
        valid[rows] = (errors == 0) & np.all(np.isfinite(r_arr), axis=2)

    logger.debug("Propagated %d objects × %d timesteps", len(satrecs), steps)
    return TrajectoryGrid(times=times, positions_km=positions, velocities_km_s=velocities, valid=valid)


def mean_elements(line1: str, line2: str) -> MeanElements | None:
    """Inspect the mean elements SGP4 derived from an element set.

    Returns:
        MeanElements, or None if the element set cannot be initialized.
    """
    satrec = load_satrec(line1, line2)
    if satrec is None:
        return None
    return MeanElements(
        inclination_deg=math.degrees(satrec.inclo),
        raan_deg=math.degrees(satrec.nodeo),
        eccentricity=satrec.ecco,
        mean_motion_rad_min=satrec.no_kozai,
        bstar=satrec.bstar,
        # ndot is stored in rad/min²
        mean_motion_dot=satrec.ndot * (1440.0**2) / (2 * math.pi),
    )
