"""Uncertainty ellipsoids derived from position covariance.

Covariances are in m²; ellipsoid semi-axes are reported in km.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from astrashield.utils.constants import SIGMA_LEVELS

logger = logging.getLogger(__name__)

M_TO_KM = 1e-3


@dataclass
class UncertaintyEllipsoid:
    """Principal axes of a position covariance at one sigma level.

    Attributes:
        sigma: Sigma level the axes are scaled to.
        semi_axes_km: (a, b, c) semi-axis lengths in km, descending.
        orientation: 3x3 matrix whose columns are the principal directions.
        eigenvalues_m2: Covariance eigenvalues in m², descending.
        volume_km3: Ellipsoid volume in km³.
    """

    sigma: float
    semi_axes_km: tuple[float, float, float]
    orientation: NDArray[np.float64]
    eigenvalues_m2: NDArray[np.float64]
    volume_km3: float

    def axes_record(self) -> dict[str, float]:
        a, b, c = self.semi_axes_km
        return {"a": a, "b": b, "c": c}


@dataclass
class EllipsoidSurface:
    """Triangulated ellipsoid surface for rendering.

    Attributes:
        sigma: Sigma level.
        vertices: Array of shape (resolution * resolution, 3) in km.
        faces: Array of vertex index triples.
    """

    sigma: float
    vertices: NDArray[np.float64]
    faces: NDArray[np.int64]


@dataclass
class ConjunctionUncertainty:
    """Persisted uncertainty payload of a conjunction.

    Attributes:
        covariance: Flattened 3x3 combined covariance (m²), row-major.
        ellipsoid_1_sigma: Semi-axes {a, b, c} at 1 sigma (km).
        ellipsoid_3_sigma: Semi-axes {a, b, c} at 3 sigma (km).
        position_uncertainty_1_sigma_km: RMS position uncertainty at 1 sigma.
        position_uncertainty_3_sigma_km: Three times the 1 sigma value.
    """

    covariance: list[float]
    ellipsoid_1_sigma: dict[str, float]
    ellipsoid_3_sigma: dict[str, float]
    position_uncertainty_1_sigma_km: float
    position_uncertainty_3_sigma_km: float

    def to_record(self) -> dict[str, Any]:
        return {
            "covariance": list(self.covariance),
            "ellipsoid_1_sigma": dict(self.ellipsoid_1_sigma),
            "ellipsoid_3_sigma": dict(self.ellipsoid_3_sigma),
            "position_uncertainty_1_sigma_km": self.position_uncertainty_1_sigma_km,
            "position_uncertainty_3_sigma_km": self.position_uncertainty_3_sigma_km,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any] | None) -> ConjunctionUncertainty | None:
        if not record:
            return None
        return cls(
            covariance=[float(v) for v in record["covariance"]],
            ellipsoid_1_sigma={k: float(v) for k, v in record["ellipsoid_1_sigma"].items()},
            ellipsoid_3_sigma={k: float(v) for k, v in record["ellipsoid_3_sigma"].items()},
            position_uncertainty_1_sigma_km=float(record["position_uncertainty_1_sigma_km"]),
            position_uncertainty_3_sigma_km=float(record["position_uncertainty_3_sigma_km"]),
        )


def _principal_axes(cov: NDArray) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Eigen-decomposition sorted descending, negative eigenvalues clipped."""
    cov = np.asarray(cov, dtype=np.float64)
    sym = 0.5 * (cov + cov.T)
    eigenvalues, eigenvectors = np.linalg.eigh(sym)
    order = np.argsort(eigenvalues)[::-1]
    eigenvalues = np.clip(eigenvalues[order], 0.0, None)
    return eigenvalues, eigenvectors[:, order]


def uncertainty_ellipsoid(cov: NDArray, sigma: float = 1.0) -> UncertaintyEllipsoid:
    """Ellipsoid of a 3x3 position covariance at a sigma level.

    Semi-axes are ``sqrt(eigenvalue * sigma**2)``, sorted so that a ≥ b ≥ c.

    Args:
        cov: 3x3 covariance in m².
        sigma: Sigma scaling.

    Returns:
        UncertaintyEllipsoid with semi-axes in km.

    Raises:
        ValueError: If the covariance is not a finite 3x3 matrix.
    """
    cov = np.asarray(cov, dtype=np.float64)
    if cov.shape != (3, 3) or not np.all(np.isfinite(cov)):
        raise ValueError("Covariance must be a finite 3x3 matrix")

    eigenvalues, eigenvectors = _principal_axes(cov)
    axes_m = np.sqrt(eigenvalues * sigma**2)
    axes_km = axes_m * M_TO_KM
    volume = 4.0 / 3.0 * math.pi * float(np.prod(axes_km))

    return UncertaintyEllipsoid(
        sigma=sigma,
        semi_axes_km=(float(axes_km[0]), float(axes_km[1]), float(axes_km[2])),
        orientation=eigenvectors,
        eigenvalues_m2=eigenvalues,
        volume_km3=volume,
    )


def ellipsoid_surface(
    cov: NDArray,
    center: NDArray | None = None,
    sigma: float = 1.0,
    resolution: int = 32,
) -> EllipsoidSurface:
    """Parametric surface of the uncertainty ellipsoid.

    The unit sphere is sampled on a ``resolution x resolution`` (u, v) grid,
    scaled by the semi-axes, rotated into the principal frame and shifted
    to ``center``. Adjacent grid cells are split into two triangles.

    Args:
        cov: 3x3 covariance in m².
        center: Ellipsoid center in km (origin if omitted).
        sigma: Sigma scaling.
        resolution: Grid points per parametric direction (at least 2).

    Returns:
        EllipsoidSurface with km vertices.
    """
    if resolution < 2:
        raise ValueError("resolution must be at least 2")
    ellipsoid = uncertainty_ellipsoid(cov, sigma)
    center = np.zeros(3) if center is None else np.asarray(center, dtype=np.float64)

    u = np.linspace(0.0, 2.0 * np.pi, resolution)
    v = np.linspace(0.0, np.pi, resolution)
    uu, vv = np.meshgrid(u, v, indexing="ij")
    a, b, c = ellipsoid.semi_axes_km
    local = np.stack(
        [
            a * np.cos(uu) * np.sin(vv),
            b * np.sin(uu) * np.sin(vv),
            c * np.cos(vv),
        ],
        axis=-1,
    ).reshape(-1, 3)
    vertices = local @ ellipsoid.orientation.T + center

    faces = []
    for i in range(resolution - 1):
        for j in range(resolution - 1):
            p0 = i * resolution + j
            p1 = p0 + 1
            p2 = p0 + resolution
            p3 = p2 + 1
            faces.append((p0, p2, p1))
            faces.append((p1, p2, p3))

    return EllipsoidSurface(
        sigma=sigma,
        vertices=vertices,
        faces=np.asarray(faces, dtype=np.int64),
    )


def ellipsoid_visualization(
    cov: NDArray,
    center: NDArray | None = None,
    sigmas: tuple[float, ...] = SIGMA_LEVELS,
    resolution: int = 32,
) -> list[EllipsoidSurface]:
    """Surfaces for several sigma levels, innermost first."""
    return [ellipsoid_surface(cov, center, sigma, resolution) for sigma in sigmas]


def position_uncertainty_km(cov: NDArray) -> float:
    """RMS position uncertainty ``sqrt(trace) / 1000`` in km."""
    trace = float(np.trace(np.asarray(cov, dtype=np.float64)))
    return math.sqrt(max(trace, 0.0)) * M_TO_KM


def conjunction_uncertainty(cov: NDArray) -> ConjunctionUncertainty:
    """Build the persisted uncertainty payload for a combined covariance.

    Args:
        cov: Combined 3x3 RTN covariance in m².

    Returns:
        ConjunctionUncertainty with 1 and 3 sigma ellipsoids.
    """
    cov = np.asarray(cov, dtype=np.float64)
    one_sigma = uncertainty_ellipsoid(cov, 1.0)
    three_sigma = uncertainty_ellipsoid(cov, 3.0)
    sigma_1 = position_uncertainty_km(cov)
    return ConjunctionUncertainty(
        covariance=[float(x) for x in cov.ravel()],
        ellipsoid_1_sigma=one_sigma.axes_record(),
        ellipsoid_3_sigma=three_sigma.axes_record(),
        position_uncertainty_1_sigma_km=sigma_1,
        position_uncertainty_3_sigma_km=3.0 * sigma_1,
    )
