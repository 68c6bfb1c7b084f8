"""Tests for avoidance maneuver costing and ranking."""

from __future__ import annotations

import math

import pytest

from astrashield.core.maneuvers import (
    analyze_maneuvers,
    combined_delta_v,
    fuel_mass,
    generate_scenarios,
    hohmann_delta_v,
    inclination_change_delta_v,
    orbital_period,
    orbital_velocity,
    projected_risk,
    score_option,
)
from tle_factory import make_object


class TestDeltaV:
    """Test circular-orbit delta-v approximations."""

    def test_orbital_velocity(self):
        assert orbital_velocity(400.0) == pytest.approx(7.6726, abs=1e-4)

    def test_orbital_period(self):
        assert orbital_period(400.0) == pytest.approx(92.414, abs=1e-3)

    def test_hohmann_50_km_raise(self):
        dv1, dv2 = hohmann_delta_v(6771.0, 6821.0)
        assert dv1 == pytest.approx(0.014099, abs=1e-6)
        assert dv2 == pytest.approx(0.014074, abs=1e-6)

    def test_hohmann_symmetric(self):
        up = sum(hohmann_delta_v(6771.0, 7171.0))
        down = sum(hohmann_delta_v(7171.0, 6771.0))
        assert up == pytest.approx(down)

    def test_no_change(self):
        assert hohmann_delta_v(7000.0, 7000.0) == (0.0, 0.0)
        assert inclination_change_delta_v(400.0, 0.0) == 0.0

    def test_sixty_degree_plane_change(self):
        assert inclination_change_delta_v(400.0, 60.0) == pytest.approx(orbital_velocity(400.0))

    def test_combined(self):
        dv = combined_delta_v(400.0, 500.0, 51.6, 56.6)
        assert dv.altitude == pytest.approx(dv.first_burn + dv.second_burn)
        assert dv.inclination == pytest.approx(inclination_change_delta_v(500.0, 5.0))
        assert dv.total == pytest.approx(math.hypot(dv.altitude, dv.inclination))


class TestFuel:
    def test_zero(self):
        assert fuel_mass(0.0) == 0.0

    def test_one_km_s(self):
        assert fuel_mass(1.0) == pytest.approx(33.408, abs=1e-3)

    def test_scales_with_mass(self):
        assert fuel_mass(1.0, initial_mass_kg=500.0) == pytest.approx(fuel_mass(1.0) / 2.0)


class TestScenarios:
    def test_inclined_leo(self):
        ids = [s.id for s in generate_scenarios(400.0, 51.6)]
        assert ids == [
            "alt-raise-small",
            "alt-raise-large",
            "inc-adjust",
            "combined-1",
            "band-edge",
            "drastic-alt",
            "polar-orbit",
            "sso",
        ]

    def test_retrograde_skips_plane_changes(self):
        ids = [s.id for s in generate_scenarios(600.0, 97.8)]
        assert ids == ["alt-raise-small", "alt-raise-large", "combined-1", "band-edge", "drastic-alt"]

    def test_band_edge_skipped_near_target(self):
        ids = [s.id for s in generate_scenarios(1180.0, 51.6)]
        assert "band-edge" not in ids

    def test_drastic_lowers_high_orbits(self):
        drastic = {s.id: s for s in generate_scenarios(1500.0, 51.6)}["drastic-alt"]
        assert drastic.new_altitude_km == 1000.0

    def test_projected_risk(self):
        assert projected_risk(0.5, 400.0, 450.0) == pytest.approx(0.35)
        assert projected_risk(0.5, 400.0, 400.0) == pytest.approx(0.45)

    def test_score(self):
        dv = combined_delta_v(400.0, 450.0, 51.6, 51.6)
        score = score_option(dv, 0.5, 0.35)
        assert score.risk_score == pytest.approx(15.0)
        assert score.total_score == pytest.approx(57.4)


class TestAnalyze:
    """Test ranking of the standard maneuvers."""

    def test_small_raise_ranks_first(self):
        obj = make_object(90950, altitude_km=400.0, inclination_deg=51.6)
        analysis = analyze_maneuvers(obj)

        assert analysis.catalog_id == 90950
        assert len(analysis.options) == 8
        assert analysis.best_option.scenario.id == "alt-raise-small"
        assert analysis.alternatives[0].scenario.id == "alt-raise-large"
        assert len(analysis.alternatives) == 3
        totals = [o.score.total_score for o in analysis.options]
        assert totals == sorted(totals, reverse=True)

    def test_unscored_object_uses_default_risk(self):
        analysis = analyze_maneuvers(make_object(90951, altitude_km=400.0))
        assert analysis.best_option.current_risk == 0.5
        assert analysis.best_option.risk_reduction == pytest.approx(0.15)
        assert analysis.action == "CUSTOM"
        assert analysis.confidence == "MEDIUM"

    def test_stored_risk_used(self):
        obj = make_object(90952, altitude_km=400.0)
        obj.risk_score = 0.8
        analysis = analyze_maneuvers(obj)
        assert analysis.best_option.current_risk == 0.8
