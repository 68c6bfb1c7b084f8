"""Builders for synthetic, checksum-correct element sets used in tests."""

from __future__ import annotations

import math
from datetime import datetime, timezone

from astrashield.core.tle import SpaceObject, tle_checksum

MU = 398600.4418
RE = 6371.0

# Epoch of every synthetic element set: 2024 day 45.5
EPOCH = datetime(2024, 2, 14, 12, 0, tzinfo=timezone.utc)

# Real element sets, all with epochs on 2024-02-14
ISS_NAME = "ISS (ZARYA)"
ISS_LINE1 = "1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9993"
ISS_LINE2 = "2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439596"

CSS_NAME = "CSS (TIANHE)"
CSS_LINE1 = "1 48274U 21035A   24045.50261574  .00021540  00000-0  25163-3 0  9993"
CSS_LINE2 = "2 48274  41.4681 279.1498 0005372 149.8847 345.3740 15.62096269157018"

HST_NAME = "HST"
HST_LINE1 = "1 20580U 90037B   24045.55478014  .00001456  00000-0  73052-4 0  9994"
HST_LINE2 = "2 20580  28.4701  41.0696 0002622 348.3544 140.2428 15.09435694872912"


def mean_motion_for_altitude(altitude_km: float) -> float:
    """Mean motion in rev/day of a circular orbit at the given altitude."""
    a = RE + altitude_km
    n_rad_s = math.sqrt(MU / a**3)
    return n_rad_s * 86400.0 / (2 * math.pi)


def _signed_decimal(value: float) -> str:
    sign = "-" if value < 0 else " "
    return sign + f"{abs(value):.8f}"[1:]


def _implied(value: float) -> str:
    if value == 0:
        return " 00000-0"
    sign = "-" if value < 0 else " "
    exponent = math.floor(math.log10(abs(value))) + 1
    digits = round(abs(value) / 10.0**exponent * 1e5)
    if digits >= 100000:
        digits //= 10
        exponent += 1
    return f"{sign}{digits:05d}{exponent:+d}"


def make_lines(
    catalog_id: int,
    *,
    altitude_km: float = 500.0,
    inclination_deg: float = 51.6,
    raan_deg: float = 0.0,
    eccentricity: float = 0.0001,
    argument_of_perigee_deg: float = 0.0,
    mean_anomaly_deg: float = 0.0,
    mean_motion: float | None = None,
    ndot: float = 0.0,
    bstar: float = 0.0,
    epoch_day: float = 45.5,
    epoch_year: int = 24,
    designator: str = "24001A",
) -> tuple[str, str]:
    """Two checksum-correct element-set lines for a synthetic orbit."""
    mm = mean_motion if mean_motion is not None else mean_motion_for_altitude(altitude_km)
    body1 = (
        f"1 {catalog_id:05d}U {designator:<8} {epoch_year:02d}{epoch_day:012.8f} "
        f"{_signed_decimal(ndot)}  00000-0 {_implied(bstar)} 0  999"
    )
    ecc = f"{round(eccentricity * 1e7):07d}"
    body2 = (
        f"2 {catalog_id:05d} {inclination_deg:8.4f} {raan_deg % 360:8.4f} {ecc} "
        f"{argument_of_perigee_deg % 360:8.4f} {mean_anomaly_deg % 360:8.4f} {mm:11.8f}{1:5d}"
    )
    return body1 + str(tle_checksum(body1)), body2 + str(tle_checksum(body2))


def make_object(catalog_id: int, name: str | None = None, **kwargs) -> SpaceObject:
    """A parsed SpaceObject for a synthetic orbit."""
    line1, line2 = make_lines(catalog_id, **kwargs)
    return SpaceObject.from_lines(line1, line2, name=name or f"TEST-{catalog_id}")


def make_text(objects: list[SpaceObject]) -> str:
    """Three-line element-set text for a list of objects."""
    return "\n".join(f"{obj.name}\n{obj.line1}\n{obj.line2}" for obj in objects)
