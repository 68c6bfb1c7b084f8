"""Altitude-band congestion clustering."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from astrashield.core.tle import SpaceObject
from astrashield.utils.constants import (
    CLUSTER_MAX_ALTITUDE_KM,
    CLUSTER_MIN_ALTITUDE_KM,
    DEFAULT_BANDS,
    DENSITY_THRESHOLD,
)

logger = logging.getLogger(__name__)


@dataclass
class AltitudeCluster:
    """Objects whose mean altitude falls in one uniform band.

    Attributes:
        band: Band index, 0 being the lowest.
        altitude_min_km: Lower band edge (inclusive).
        altitude_max_km: Upper band edge (exclusive, except for the last band).
        members: Objects in the band.
        density: Member count relative to the most populated band.
    """

    band: int
    altitude_min_km: float
    altitude_max_km: float
    members: list[SpaceObject] = field(default_factory=list)
    density: float = 0.0

    @property
    def count(self) -> int:
        return len(self.members)


def cluster_by_altitude(
    objects: list[SpaceObject],
    num_bands: int = DEFAULT_BANDS,
    min_altitude_km: float = CLUSTER_MIN_ALTITUDE_KM,
    max_altitude_km: float = CLUSTER_MAX_ALTITUDE_KM,
) -> list[AltitudeCluster]:
    """Partition objects into uniform altitude bands.

    Objects outside [min_altitude_km, max_altitude_km] are ignored; an
    object exactly at the top edge belongs to the last band.

    Args:
        objects: Objects to cluster.
        num_bands: Number of bands.
        min_altitude_km: Bottom of the lowest band.
        max_altitude_km: Top of the highest band.

    Returns:
        Non-empty clusters, lowest band first.
    """
    if num_bands <= 0:
        raise ValueError("num_bands must be positive")
    band_size = (max_altitude_km - min_altitude_km) / num_bands

    clusters = [
        AltitudeCluster(
            band=i,
            altitude_min_km=min_altitude_km + i * band_size,
            altitude_max_km=min_altitude_km + (i + 1) * band_size,
        )
        for i in range(num_bands)
    ]

    for obj in objects:
        altitude = obj.orbital_altitude_km
        if not min_altitude_km <= altitude <= max_altitude_km:
            continue
        index = min(int((altitude - min_altitude_km) // band_size), num_bands - 1)
        clusters[index].members.append(obj)

    max_count = max((c.count for c in clusters), default=0) or 1
    for cluster in clusters:
        cluster.density = cluster.count / max_count

    populated = [c for c in clusters if c.members]
    logger.debug("Clustered %d objects into %d populated bands", sum(c.count for c in populated), len(populated))
    return populated


def find_high_density_regions(
    objects: list[SpaceObject],
    threshold: float = DENSITY_THRESHOLD,
    num_bands: int = DEFAULT_BANDS,
) -> list[AltitudeCluster]:
    """Bands whose relative density is at least ``threshold``."""
    return [c for c in cluster_by_altitude(objects, num_bands) if c.density >= threshold]
