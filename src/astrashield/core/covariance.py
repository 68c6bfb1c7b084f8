"""Parametric position covariance and frame rotation.

Element sets carry no covariance, so a 3x3 position covariance is
synthesized from altitude and element-set age. The matrix is expressed in
the local RTN (radial, tangential, normal) frame. Units are m².
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from astrashield.utils.constants import (
    COVARIANCE_ALTITUDE_SCALE_KM,
    COVARIANCE_GROWTH_RATE,
    DEFAULT_COVARIANCE_AGE_DAYS,
    DEFAULT_VARIANCE_M2,
)

logger = logging.getLogger(__name__)

# Relative weights applied to the scalar variance: (RR, TT, NN) on the
# diagonal, (RT, RN, TN) off it.
DIAGONAL_WEIGHTS = (1.0, 1.2, 0.8)
OFF_DIAGONAL_WEIGHTS = (0.3, 0.1, 0.2)

_EPS = 1e-6


def covariance_variance(altitude_km: float, age_days: float = DEFAULT_COVARIANCE_AGE_DAYS) -> float:
    """Scalar position variance in m² for a given altitude and data age."""
    growth = (1.0 + COVARIANCE_GROWTH_RATE) ** max(age_days, 0.0)
    altitude_factor = 1.0 + max(altitude_km, 0.0) / COVARIANCE_ALTITUDE_SCALE_KM
    return DEFAULT_VARIANCE_M2 * growth * altitude_factor


def default_covariance(
    altitude_km: float, age_days: float = DEFAULT_COVARIANCE_AGE_DAYS
) -> NDArray[np.float64]:
    """Synthesize a symmetric positive-definite 3x3 position covariance.

    Args:
        altitude_km: Object altitude in km. Higher orbits get more uncertainty.
        age_days: Age of the element set in days. Variance grows 5% per day.

    Returns:
        3x3 covariance matrix in m².
    """
    variance = covariance_variance(altitude_km, age_days)
    rr, tt, nn = DIAGONAL_WEIGHTS
    rt, rn, tn = OFF_DIAGONAL_WEIGHTS
    return variance * np.array(
        [
            [rr, rt, rn],
            [rt, tt, tn],
            [rn, tn, nn],
        ],
        dtype=np.float64,
    )


def rtn_basis(position: NDArray, velocity: NDArray) -> NDArray[np.float64] | None:
    """Orthonormal RTN basis with R, T, N as rows.

    R points along the position vector, T along the part of the velocity
    orthogonal to R, and N = R × T. When the velocity is zero or parallel to
    R, T falls back to R × z.

    Returns:
        3x3 matrix of row vectors, or None if the geometry is degenerate.
    """
    position = np.asarray(position, dtype=np.float64)
    velocity = np.asarray(velocity, dtype=np.float64)
    if not (np.all(np.isfinite(position)) and np.all(np.isfinite(velocity))):
        return None

    r_norm = np.linalg.norm(position)
    if r_norm < _EPS:
        return None
    r_hat = position / r_norm

    t_vec = velocity - np.dot(velocity, r_hat) * r_hat
    t_norm = np.linalg.norm(t_vec)
    if np.linalg.norm(velocity) < _EPS or t_norm < _EPS:
        t_vec = np.cross(r_hat, np.array([0.0, 0.0, 1.0]))
        t_norm = np.linalg.norm(t_vec)
        if t_norm < _EPS:
            return None
    t_hat = t_vec / t_norm

    n_hat = np.cross(r_hat, t_hat)
    return np.vstack([r_hat, t_hat, n_hat])


def to_rtn(cov_eci: NDArray, position: NDArray, velocity: NDArray) -> NDArray[np.float64]:
    """Rotate a position covariance into the RTN frame.

    Computes ``M.T @ cov @ M`` where M holds the R, T, N unit vectors as
    rows. Degenerate geometry or non-finite input returns the input
    unchanged.

    Args:
        cov_eci: 3x3 covariance.
        position: ECI position (any length unit).
        velocity: ECI velocity (any consistent unit).

    Returns:
        3x3 covariance in the RTN frame.
    """
    cov_eci = np.asarray(cov_eci, dtype=np.float64)
    if not np.all(np.isfinite(cov_eci)):
        return cov_eci

    m = rtn_basis(position, velocity)
    if m is None:
        logger.debug("Degenerate RTN geometry; covariance left unrotated")
        return cov_eci

    cov_rtn = m.T @ cov_eci @ m
    if not np.all(np.isfinite(cov_rtn)):
        return cov_eci
    # Remove round-off asymmetry
    return 0.5 * (cov_rtn + cov_rtn.T)


def combine_covariances(*covariances: NDArray) -> NDArray[np.float64]:
    """Combined covariance of independent objects (element-wise sum)."""
    if not covariances:
        raise ValueError("At least one covariance is required")
    total = np.zeros((3, 3), dtype=np.float64)
    for cov in covariances:
        total = total + np.asarray(cov, dtype=np.float64)
    return total
