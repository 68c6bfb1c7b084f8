"""Tests for decay modelling and reentry prediction."""

from __future__ import annotations

import math
from datetime import timedelta

import pytest

from astrashield.core.reentry import (
    OrbitalState,
    active_reentry_alerts,
    assess_uncontrolled_reentry,
    atmospheric_density,
    circular_velocity,
    classify_reentry,
    decay_rate,
    estimate_ballistic_coefficient,
    integrate_decay,
    predict_reentries,
    predict_reentry,
    reentry_window,
)
from tle_factory import make_object


def _state(altitude_km=300.0, eccentricity=0.0001, inclination_deg=41.5):
    radius = 6371.0 + altitude_km
    return OrbitalState(
        altitude_km=altitude_km,
        velocity_km_s=circular_velocity(altitude_km),
        period_min=2 * math.pi * math.sqrt(radius**3 / 398600.4418) / 60.0,
        semi_major_axis_km=radius,
        eccentricity=eccentricity,
        inclination_deg=inclination_deg,
    )


class TestAtmosphere:
    """Test the tabulated density model."""

    def test_table_nodes(self):
        assert atmospheric_density(150.0) == pytest.approx(3.7e-9)
        assert atmospheric_density(400.0) == pytest.approx(3.7e-12)

    def test_outside_table(self):
        assert atmospheric_density(800.0) == 1e-14
        assert atmospheric_density(1200.0) == 1e-14
        assert atmospheric_density(100.0) == 1e-6
        assert atmospheric_density(60.0) == 1e-6

    def test_log_linear_interpolation(self):
        assert atmospheric_density(250.0) == pytest.approx(math.sqrt(2.8e-10 * 2.4e-11))

    def test_solar_activity(self):
        base = atmospheric_density(300.0)
        assert atmospheric_density(300.0, solar_flux_sfu=300.0) == pytest.approx(1.5 * base)
        assert atmospheric_density(300.0, solar_flux_sfu=0.0) == pytest.approx(0.5 * base)
        # Clamped to twice the average density
        assert atmospheric_density(300.0, solar_flux_sfu=1000.0) == pytest.approx(2.0 * base)

    def test_monotone_in_altitude(self):
        densities = [atmospheric_density(h) for h in range(100, 800, 25)]
        assert densities == sorted(densities, reverse=True)


class TestDecay:
    def test_no_drag_above_ceiling(self):
        assert decay_rate(600.0, 7.5) == 0.0

    def test_positive_below_ceiling(self):
        assert decay_rate(300.0, circular_velocity(300.0)) > 0.0

    def test_grows_as_altitude_falls(self):
        high = decay_rate(400.0, circular_velocity(400.0))
        low = decay_rate(200.0, circular_velocity(200.0))
        assert low > high

    @pytest.mark.parametrize(
        "ndot, bstar, expected",
        [
            (0.0, 0.0, 0.01),
            (1e-4, 0.0, 0.1),
            (0.5, 0.0, 1.0 / 51.0),
            (0.0, 3e-4, 0.03),
            (0.0, 1e-6, 0.001),
            (-0.5, 0.0, 1.0 / 51.0),
        ],
    )
    def test_ballistic_coefficient(self, ndot, bstar, expected):
        assert estimate_ballistic_coefficient(ndot, bstar) == pytest.approx(expected)

    def test_integration_from_low_orbit(self):
        result = integrate_decay(150.0, circular_velocity(150.0), 0.01)
        assert result.reached_entry
        assert result.final_altitude_km <= 120.0
        assert result.days <= 1.0
        assert classify_reentry(result.days) == ("critical", "high")

    def test_integration_above_ceiling_hits_horizon(self):
        result = integrate_decay(600.0, circular_velocity(600.0), 0.01, horizon_days=30.0)
        assert not result.reached_entry
        assert result.days == pytest.approx(30.0)
        assert result.final_altitude_km == 600.0

    def test_invalid_step(self):
        with pytest.raises(ValueError):
            integrate_decay(300.0, 7.7, step_days=0.0)


class TestClassification:
    """Test status and confidence from days to reentry."""

    @pytest.mark.parametrize(
        "days, status, confidence",
        [
            (0.5, "critical", "high"),
            (1.0, "critical", "high"),
            (3.0, "warning", "medium"),
            (7.0, "warning", "medium"),
            (10.0, "elevated", "low-medium"),
            (14.0, "elevated", "low-medium"),
            (20.0, "normal", "medium"),
        ],
    )
    def test_classify(self, days, status, confidence):
        assert classify_reentry(days) == (status, confidence)


class TestUncontrolled:
    def test_large_station(self):
        assessment = assess_uncontrolled_reentry("TIANGONG", _state(300.0))
        assert assessment.score == 5
        assert assessment.risk_level == "critical"
        assert assessment.is_uncontrolled
        assert "Known large object" in assessment.reasons

    def test_polar_eccentric_debris(self):
        assessment = assess_uncontrolled_reentry("DEB", _state(350.0, eccentricity=0.02, inclination_deg=98.0))
        assert assessment.score == 4
        assert assessment.risk_level == "high"
        assert assessment.is_uncontrolled

    def test_benign(self):
        assessment = assess_uncontrolled_reentry("CUBESAT", _state(450.0))
        assert assessment.score == 0
        assert assessment.risk_level == "low"
        assert not assessment.is_uncontrolled

    def test_no_state(self):
        assessment = assess_uncontrolled_reentry("X", None)
        assert not assessment.is_uncontrolled
        assert assessment.reasons == ["Insufficient data"]


class TestWindow:
    def test_prograde(self):
        window = reentry_window(51.6, 90.0)
        assert window.possible_latitude_range == pytest.approx((-51.6, 51.6))
        assert window.likely_latitude_range == pytest.approx((-36.12, 36.12))
        assert window.earth_rotation_per_orbit_deg == pytest.approx(22.5)

    def test_retrograde(self):
        window = reentry_window(120.0, 90.0)
        assert window.possible_latitude_range == pytest.approx((-60.0, 60.0))


class TestPredictReentry:
    """Test forecasts for tracked objects."""

    def test_above_threshold_not_predictable(self, iss, now):
        prediction = predict_reentry(iss, now=now)
        assert not prediction.predictable
        assert prediction.current_altitude_km > 400.0
        assert prediction.days_until_reentry is None
        assert not prediction.is_alert

    def test_immediate_reentry(self, now):
        obj = make_object(90600, altitude_km=80.0)
        prediction = predict_reentry(obj, now=now)

        assert prediction.predictable
        assert prediction.days_until_reentry == 0.0
        assert prediction.predicted_reentry_utc == now
        assert prediction.status == "critical"
        assert prediction.confidence == "high"
        assert prediction.is_alert

    def test_decaying_station(self, now):
        obj = make_object(90601, name="TIANGONG TEST", altitude_km=300.0, inclination_deg=41.5)
        prediction = predict_reentry(obj, now=now)

        assert prediction.predictable
        assert prediction.ballistic_coefficient == 0.01
        assert prediction.decay_rate_km_per_day > 0
        assert 0.0 < prediction.days_until_reentry <= 30.0
        assert prediction.days_until_reentry == round(prediction.days_until_reentry, 1)
        assert prediction.predicted_reentry_utc > now
        assert prediction.uncontrolled_assessment.risk_level == "critical"
        assert prediction.window.possible_latitude_range[1] == pytest.approx(41.5, abs=1e-3)
        assert prediction.is_alert

    def test_horizon_reported_when_not_reached(self, now):
        obj = make_object(90602, altitude_km=390.0)
        prediction = predict_reentry(obj, horizon_days=1.0, now=now)

        assert prediction.predictable
        assert prediction.days_until_reentry == 1.0
        assert not prediction.reentry_within_horizon
        assert prediction.predicted_reentry_utc == now + timedelta(days=1.0)

    def test_invalid_orbit(self, now, monkeypatch):
        from astrashield.core import reentry

        monkeypatch.setattr(reentry, "orbital_state", lambda obj, t: None)
        prediction = predict_reentry(make_object(90603, altitude_km=300.0), now=now)
        assert not prediction.predictable
        assert prediction.reason == "Invalid orbital parameters"

    def test_batch_sorted_soonest_first(self, iss, now):
        objects = [
            iss,
            make_object(90610, altitude_km=300.0),
            make_object(90611, altitude_km=80.0),
        ]
        predictions = predict_reentries(objects, now)

        assert [p.catalog_id for p in predictions] == [90611, 90610]
        alerts = active_reentry_alerts(predictions)
        assert alerts[0].catalog_id == 90611
