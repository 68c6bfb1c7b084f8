"""Element-set parsing and the tracked-object record.

Two-line element sets are decoded by fixed column offsets into
``SpaceObject`` records carrying the parsed mean elements and the derived
orbital period and altitude. The parser never raises on bad content:
malformed records are logged and skipped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import cached_property
from typing import Any

from sgp4.api import Satrec, WGS72

from astrashield.utils.constants import (
    EARTH_MU_KM3_S2 as MU,
    EARTH_RADIUS_KM as RE,
    MINUTES_PER_DAY,
    SECONDS_PER_DAY,
)

logger = logging.getLogger(__name__)

TLE_LINE_LENGTH = 69


@dataclass
class SpaceObject:
    """One tracked body and its current element set.

    Attributes:
        catalog_id: NORAD catalog number.
        name: Object name (line 0).
        international_designator: COSPAR designator from line 1.
        line1: Raw element-set line 1 (69 characters).
        line2: Raw element-set line 2 (69 characters).
        epoch_year: Four-digit epoch year.
        epoch_day: Fractional day of year of the epoch (1-based).
        mean_motion_dot: First derivative of mean motion (rev/day²).
        bstar: BSTAR drag term (1/earth radii).
        inclination_deg: Inclination in degrees.
        eccentricity: Eccentricity (dimensionless).
        raan_deg: Right ascension of ascending node in degrees.
        argument_of_perigee_deg: Argument of perigee in degrees.
        mean_anomaly_deg: Mean anomaly in degrees.
        mean_motion_rev_per_day: Mean motion in revolutions per day.
        orbital_period_min: Derived orbital period in minutes.
        orbital_altitude_km: Derived mean altitude (semi-major axis minus Earth radius).
        risk_score: Composite risk written by the scorer, in [0, 1].
        last_updated: When the record was last written.
    """

    catalog_id: int
    name: str
    line1: str
    line2: str
    epoch_year: int
    epoch_day: float
    mean_motion_dot: float
    bstar: float
    inclination_deg: float
    eccentricity: float
    raan_deg: float
    argument_of_perigee_deg: float
    mean_anomaly_deg: float
    mean_motion_rev_per_day: float
    orbital_period_min: float
    orbital_altitude_km: float
    international_designator: str = ""
    classification: str = "U"
    element_set_number: int = 0
    orbit_number: int = 0
    risk_score: float = 0.0
    last_updated: datetime | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if len(self.line1) != TLE_LINE_LENGTH or len(self.line2) != TLE_LINE_LENGTH:
            raise ValueError(f"Element-set lines for {self.catalog_id} must be 69 characters")
        if not 0.0 <= self.eccentricity < 1.0:
            raise ValueError(f"Eccentricity out of range for {self.catalog_id}: {self.eccentricity}")
        if not 0.0 <= self.risk_score <= 1.0:
            raise ValueError(f"Risk score out of range for {self.catalog_id}: {self.risk_score}")

    @property
    def epoch(self) -> datetime:
        """Element-set epoch as a UTC datetime."""
        return datetime(self.epoch_year, 1, 1, tzinfo=timezone.utc) + timedelta(
            days=self.epoch_day - 1
        )

    @cached_property
    def satrec(self) -> Satrec:
        """SGP4 satellite record, built on first use."""
        return Satrec.twoline2rv(self.line1, self.line2, WGS72)

    @classmethod
    def from_lines(cls, line1: str, line2: str, name: str = "") -> SpaceObject:
        """Parse an object from its two element-set lines.

        Args:
            line1: Element-set line 1 (69 characters).
            line2: Element-set line 2 (69 characters).
            name: Optional object name (line 0).

        Returns:
            A fully populated SpaceObject.

        Raises:
            ValueError: If the lines are malformed.
        """
        line1 = line1.strip()
        line2 = line2.strip()

        if len(line1) != TLE_LINE_LENGTH or not line1.startswith("1 "):
            raise ValueError(f"Invalid element-set line 1: {line1!r}")
        if len(line2) != TLE_LINE_LENGTH or not line2.startswith("2 "):
            raise ValueError(f"Invalid element-set line 2: {line2!r}")

        catalog_id = int(line1[2:7])
        if int(line2[2:7]) != catalog_id:
            raise ValueError(
                f"Catalog number mismatch between lines: {line1[2:7]!r} != {line2[2:7]!r}"
            )

        year = int(line1[18:20])
        year = year + 2000 if year < 57 else year + 1900
        epoch_day = float(line1[20:32])

        eccentricity = float("0." + line2[26:33].strip())
        mean_motion = float(line2[52:63])
        if mean_motion <= 0:
            raise ValueError(f"Non-positive mean motion: {mean_motion}")

        period_min, altitude_km = derived_orbit(mean_motion)
        if not math.isfinite(altitude_km) or altitude_km < 0:
            raise ValueError(f"Derived altitude out of range: {altitude_km}")

        return cls(
            catalog_id=catalog_id,
            name=name.strip() or f"SAT-{catalog_id}",
            line1=line1,
            line2=line2,
            epoch_year=year,
            epoch_day=epoch_day,
            mean_motion_dot=float(line1[33:43]),
            bstar=_implied_decimal(line1[53:61]),
            inclination_deg=float(line2[8:16]),
            eccentricity=eccentricity,
            raan_deg=float(line2[17:25]),
            argument_of_perigee_deg=float(line2[34:42]),
            mean_anomaly_deg=float(line2[43:51]),
            mean_motion_rev_per_day=mean_motion,
            orbital_period_min=period_min,
            orbital_altitude_km=altitude_km,
            international_designator=line1[9:17].strip(),
            classification=line1[7],
            element_set_number=_int_or_zero(line1[64:68]),
            orbit_number=_int_or_zero(line2[63:68]),
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted object schema."""
        return {
            "catalog_id": self.catalog_id,
            "name": self.name,
            "international_designator": self.international_designator,
            "line1": self.line1,
            "line2": self.line2,
            "epoch_year": self.epoch_year,
            "epoch_day": self.epoch_day,
            "mean_motion_dot": self.mean_motion_dot,
            "bstar": self.bstar,
            "inclination_deg": self.inclination_deg,
            "eccentricity": self.eccentricity,
            "raan_deg": self.raan_deg,
            "argument_of_perigee_deg": self.argument_of_perigee_deg,
            "mean_anomaly_deg": self.mean_anomaly_deg,
            "mean_motion": self.mean_motion_rev_per_day,
            "orbital_period_min": self.orbital_period_min,
            "orbital_altitude_km": self.orbital_altitude_km,
            "risk_score": self.risk_score,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> SpaceObject:
        """Rebuild an object from a persisted record.

        Element-set fields are re-derived from the stored lines; only the
        cached aggregates are taken from the record itself.
        """
        obj = cls.from_lines(record["line1"], record["line2"], name=record.get("name", ""))
        obj.risk_score = float(record.get("risk_score") or 0.0)
        obj.last_updated = record.get("last_updated")
        return obj

    def __str__(self) -> str:
        return f"0 {self.name}\n{self.line1}\n{self.line2}"


@dataclass
class ParseReport:
    """Outcome of parsing a block of element-set text.

    Attributes:
        objects: Parsed objects, one per catalog id (last occurrence wins).
        skipped: Number of malformed records discarded.
        duplicates: Number of records that replaced an earlier one.
    """

    objects: list[SpaceObject]
    skipped: int = 0
    duplicates: int = 0


def derived_orbit(mean_motion_rev_per_day: float) -> tuple[float, float]:
    """Orbital period (min) and mean altitude (km) from mean motion.

    The semi-major axis follows Kepler's third law, ``a = (mu / n^2)^(1/3)``.
    """
    period_min = MINUTES_PER_DAY / mean_motion_rev_per_day
    n_rad_per_sec = mean_motion_rev_per_day * 2 * math.pi / SECONDS_PER_DAY
    semi_major_axis_km = (MU / n_rad_per_sec**2) ** (1.0 / 3.0)
    return period_min, semi_major_axis_km - RE


def tle_checksum(line: str) -> int:
    """Modulo-10 checksum over the first 68 columns of an element-set line."""
    total = 0
    for ch in line[:68]:
        if ch.isdigit():
            total += int(ch)
        elif ch == "-":
            total += 1
    return total % 10


def parse_element_sets_detailed(
    data: str | bytes, *, verify_checksum: bool = False
) -> ParseReport:
    """Parse element-set text and report what was discarded.

    Handles both 3-line (name + two lines) and bare 2-line records. A record
    whose lines carry the right prefixes but fail validation is skipped as a
    whole; unrecognized lines are skipped one at a time.

    Args:
        data: Raw element-set text or bytes.
        verify_checksum: Also reject lines whose checksum digit is wrong.

    Returns:
        A ParseReport.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")

    lines = [l.rstrip() for l in data.splitlines() if l.strip()]
    parsed: dict[int, SpaceObject] = {}
    skipped = 0
    duplicates = 0
    i = 0

    while i < len(lines):
        if _is_line(lines[i], "1") and i + 1 < len(lines) and _is_line(lines[i + 1], "2"):
            name, line1, line2 = "", lines[i], lines[i + 1]
            i += 2
        elif (
            not _is_line(lines[i], "1")
            and not _is_line(lines[i], "2")
            and i + 2 < len(lines)
            and _is_line(lines[i + 1], "1")
            and _is_line(lines[i + 2], "2")
        ):
            name, line1, line2 = lines[i], lines[i + 1], lines[i + 2]
            i += 3
        else:
            logger.debug("Skipping unrecognized element-set line %r", lines[i])
            i += 1
            continue

        try:
            if verify_checksum:
                _check(line1.strip())
                _check(line2.strip())
            obj = SpaceObject.from_lines(line1, line2, name=name)
        except ValueError as e:
            skipped += 1
            logger.warning("Skipping malformed element set %r: %s", name.strip() or line1[:7], e)
            continue

        if obj.catalog_id in parsed:
            duplicates += 1
        parsed[obj.catalog_id] = obj

    if skipped:
        logger.warning("Discarded %d malformed element set(s)", skipped)
    logger.debug("Parsed %d element sets (%d duplicates)", len(parsed), duplicates)
    return ParseReport(objects=list(parsed.values()), skipped=skipped, duplicates=duplicates)


def parse_element_sets(data: str | bytes, *, verify_checksum: bool = False) -> list[SpaceObject]:
    """Parse element-set text into objects, discarding malformed records.

    Args:
        data: Raw element-set text or bytes.
        verify_checksum: Also reject lines whose checksum digit is wrong.

    Returns:
        List of SpaceObject records, one per catalog id.
    """
    return parse_element_sets_detailed(data, verify_checksum=verify_checksum).objects


def _is_line(line: str, number: str) -> bool:
    return line.startswith(number + " ")


def _check(line: str) -> None:
    if len(line) != TLE_LINE_LENGTH or not line[68].isdigit():
        raise ValueError(f"Missing checksum: {line!r}")
    if int(line[68]) != tle_checksum(line):
        raise ValueError(f"Checksum mismatch: {line!r}")


def _implied_decimal(text: str) -> float:
    """Decode an implied-decimal field such as ``' 30093-3'`` (0.30093e-3)."""
    s = text.strip()
    if not s:
        return 0.0
    sign = -1.0 if s[0] == "-" else 1.0
    s = s.lstrip("+-")
    mantissa, exponent = s[:-2], s[-2:]
    if not mantissa:
        return 0.0
    return sign * float("0." + mantissa) * 10.0 ** int(exponent)


def _int_or_zero(text: str) -> int:
    text = text.strip()
    return int(text) if text.isdigit() else 0
