"""Tests for element-set parsing."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

import pytest

from astrashield.core.tle import (
    SpaceObject,
    derived_orbit,
    parse_element_sets,
    parse_element_sets_detailed,
    tle_checksum,
)
from tle_factory import (
    CSS_LINE1, CSS_LINE2,
    ISS_LINE1, ISS_LINE2,
    make_lines,
    make_object,
    make_text,
    mean_motion_for_altitude,
)

ISS_TEXT = f"ISS (ZARYA)\n{ISS_LINE1}\n{ISS_LINE2}\n"


class TestSpaceObject:
    """Test parsing of a single element set."""

    def test_iss_fields(self):
        obj = SpaceObject.from_lines(ISS_LINE1, ISS_LINE2, "ISS (ZARYA)")

        assert obj.catalog_id == 25544
        assert obj.name == "ISS (ZARYA)"
        assert obj.international_designator == "98067A"
        assert obj.classification == "U"
        assert obj.epoch_year == 2024
        assert obj.epoch_day == pytest.approx(45.54896019)
        assert obj.mean_motion_dot == pytest.approx(0.00016717)
        assert obj.bstar == pytest.approx(3.0093e-4)
        assert obj.inclination_deg == pytest.approx(51.6412)
        assert obj.raan_deg == pytest.approx(207.4925)
        assert obj.eccentricity == pytest.approx(0.0004948)
        assert obj.argument_of_perigee_deg == pytest.approx(290.5508)
        assert obj.mean_anomaly_deg == pytest.approx(178.9792)
        assert obj.mean_motion_rev_per_day == pytest.approx(15.49583488)
        assert obj.orbit_number == 43959

    def test_iss_derived_orbit(self):
        obj = SpaceObject.from_lines(ISS_LINE1, ISS_LINE2)
        assert 400 < obj.orbital_altitude_km < 440
        assert obj.orbital_period_min == pytest.approx(1440.0 / 15.49583488)

    def test_epoch(self):
        obj = SpaceObject.from_lines(ISS_LINE1, ISS_LINE2)
        assert obj.epoch.tzinfo is timezone.utc
        assert obj.epoch.date() == datetime(2024, 2, 14).date()
        assert obj.epoch.hour == 13

    def test_two_digit_year_pivot(self):
        line1, line2 = make_lines(90001, epoch_year=98)
        assert SpaceObject.from_lines(line1, line2).epoch_year == 1998
        line1, line2 = make_lines(90001, epoch_year=56)
        assert SpaceObject.from_lines(line1, line2).epoch_year == 2056

    def test_default_name(self):
        obj = SpaceObject.from_lines(ISS_LINE1, ISS_LINE2)
        assert obj.name == "SAT-25544"

    def test_negative_bstar(self):
        obj = make_object(90002, bstar=-1.5e-5)
        assert obj.bstar == pytest.approx(-1.5e-5)

    def test_invalid_line_length(self):
        with pytest.raises(ValueError, match="line 1"):
            SpaceObject.from_lines(ISS_LINE1[:50], ISS_LINE2)

    def test_catalog_mismatch(self):
        with pytest.raises(ValueError, match="mismatch"):
            SpaceObject.from_lines(ISS_LINE1, CSS_LINE2)

    def test_constructor_validates_eccentricity(self):
        obj = SpaceObject.from_lines(ISS_LINE1, ISS_LINE2)
        with pytest.raises(ValueError, match="Eccentricity"):
            SpaceObject(**{**_fields(obj), "eccentricity": 1.2})

    def test_constructor_validates_risk_score(self):
        obj = SpaceObject.from_lines(ISS_LINE1, ISS_LINE2)
        with pytest.raises(ValueError, match="Risk score"):
            SpaceObject(**{**_fields(obj), "risk_score": 1.5})

    def test_record_round_trip(self):
        obj = SpaceObject.from_lines(ISS_LINE1, ISS_LINE2, "ISS (ZARYA)")
        obj.risk_score = 0.42
        record = obj.to_record()

        assert record["mean_motion"] == obj.mean_motion_rev_per_day
        restored = SpaceObject.from_record(record)
        assert restored == obj
        assert restored.risk_score == 0.42

    def test_str(self):
        obj = SpaceObject.from_lines(ISS_LINE1, ISS_LINE2, "ISS")
        assert str(obj) == f"0 ISS\n{ISS_LINE1}\n{ISS_LINE2}"

    def test_satrec(self):
        obj = SpaceObject.from_lines(ISS_LINE1, ISS_LINE2)
        assert obj.satrec.satnum == 25544
        assert obj.satrec is obj.satrec


def _fields(obj: SpaceObject) -> dict:
    record = obj.to_record()
    record["mean_motion_rev_per_day"] = record.pop("mean_motion")
    return record


class TestDerivedOrbit:
    """Test period and altitude derivation from mean motion."""

    @pytest.mark.parametrize("altitude_km", [300.0, 550.0, 1200.0, 20200.0, 35786.0])
    def test_altitude_recovered(self, altitude_km):
        _, altitude = derived_orbit(mean_motion_for_altitude(altitude_km))
        assert altitude == pytest.approx(altitude_km, abs=1e-6)

    def test_geo_period(self):
        period, _ = derived_orbit(1.00273791)
        assert period == pytest.approx(1436.07, abs=0.01)

    def test_iss_mean_motion(self):
        period, altitude = derived_orbit(15.49583488)
        assert period == pytest.approx(92.928, abs=1e-3)
        assert altitude == pytest.approx(425.08, abs=0.05)


class TestParse:
    """Test parsing of element-set text blocks."""

    def test_three_line(self):
        objects = parse_element_sets(ISS_TEXT)
        assert len(objects) == 1
        assert objects[0].name == "ISS (ZARYA)"

    def test_two_line(self):
        objects = parse_element_sets(f"{ISS_LINE1}\n{ISS_LINE2}\n{CSS_LINE1}\n{CSS_LINE2}")
        assert [o.catalog_id for o in objects] == [25544, 48274]
        assert objects[0].name == "SAT-25544"

    def test_bytes_input(self):
        objects = parse_element_sets(ISS_TEXT.encode("utf-8"))
        assert objects[0].catalog_id == 25544

    def test_blank_lines_and_crlf(self):
        text = "\r\n\r\n" + ISS_TEXT.replace("\n", "\r\n") + "\r\n\r\n"
        assert len(parse_element_sets(text)) == 1

    def test_empty(self):
        assert parse_element_sets("") == []

    def test_malformed_record_skipped(self, caplog):
        text = ISS_TEXT + "BROKEN\n1 99999U 24001A   24045.5\n2 99999  51.6\n"
        with caplog.at_level(logging.WARNING, logger="astrashield"):
            report = parse_element_sets_detailed(text)

        assert [o.catalog_id for o in report.objects] == [25544]
        assert report.skipped == 1
        assert "BROKEN" in caplog.text

    def test_garbage_lines_ignored(self):
        text = "random header\n" + ISS_TEXT + "trailing junk\n"
        objects = parse_element_sets(text)
        assert len(objects) == 1

    def test_duplicates_last_wins(self):
        first = make_object(90003, name="FIRST", altitude_km=500)
        second = make_object(90003, name="SECOND", altitude_km=520)
        report = parse_element_sets_detailed(make_text([first, second]))

        assert len(report.objects) == 1
        assert report.objects[0].name == "SECOND"
        assert report.duplicates == 1

    def test_catalog_ids_unique(self):
        objects = [make_object(90010 + i % 3) for i in range(9)]
        parsed = parse_element_sets(make_text(objects))
        ids = [o.catalog_id for o in parsed]
        assert len(ids) == len(set(ids)) == 3

    def test_altitude_invariant(self):
        objects = [make_object(90020 + i, altitude_km=300 + 100 * i) for i in range(5)]
        for obj in parse_element_sets(make_text(objects)):
            n = obj.mean_motion_rev_per_day * 2 * math.pi / 86400.0
            a = (398600.4418 / n**2) ** (1 / 3)
            assert obj.orbital_altitude_km == pytest.approx(a - 6371.0)
            assert obj.orbital_altitude_km >= 0


class TestChecksum:
    """Test the optional checksum verification."""

    def test_factory_lines_carry_valid_checksums(self):
        line1, line2 = make_lines(90030, bstar=2.5e-4, ndot=-1.2e-5)
        assert int(line1[68]) == tle_checksum(line1)
        assert int(line2[68]) == tle_checksum(line2)

    def test_minus_counts_as_one(self):
        assert tle_checksum("-" * 68) == 8
        assert tle_checksum("1 " + "0" * 66) == 1

    def test_verify_accepts_valid(self):
        obj = make_object(90031, name="VALID")
        assert len(parse_element_sets(make_text([obj]), verify_checksum=True)) == 1

    def test_verify_rejects_corrupt(self):
        line1, line2 = make_lines(90032)
        bad = line1[:68] + str((int(line1[68]) + 1) % 10)
        text = f"BAD\n{bad}\n{line2}\n"

        report = parse_element_sets_detailed(text, verify_checksum=True)
        assert report.objects == []
        assert report.skipped == 1

        # Without verification the same record parses
        assert len(parse_element_sets(text)) == 1
