"""Tests for altitude-band congestion clustering."""

from __future__ import annotations

from dataclasses import replace

import pytest

from astrashield.core.clustering import cluster_by_altitude, find_high_density_regions
from tle_factory import make_object


def _at(catalog_id: int, altitude_km: float):
    return replace(make_object(catalog_id), orbital_altitude_km=altitude_km)


@pytest.fixture
def population():
    altitudes = [200.0, 2500.0, 2600.0, 36000.0, 150.0, 40000.0]
    return [_at(90500 + i, alt) for i, alt in enumerate(altitudes)]


def test_band_assignment(population):
    clusters = cluster_by_altitude(population)

    assert [c.band for c in clusters] == [0, 1, 19]
    assert [c.count for c in clusters] == [1, 2, 1]
    assert clusters[1].altitude_min_km == pytest.approx(1990.0)
    assert clusters[1].altitude_max_km == pytest.approx(3780.0)


def test_top_edge_in_last_band(population):
    last = cluster_by_altitude(population)[-1]
    assert last.band == 19
    assert [m.orbital_altitude_km for m in last.members] == [36000.0]
    assert last.altitude_max_km == pytest.approx(36000.0)


def test_closure(population):
    """Every in-range object lands in exactly one band."""
    clusters = cluster_by_altitude(population)
    members = [m.catalog_id for c in clusters for m in c.members]
    in_range = [o.catalog_id for o in population if 200.0 <= o.orbital_altitude_km <= 36000.0]
    assert sorted(members) == sorted(in_range)


def test_density(population):
    clusters = cluster_by_altitude(population)
    assert [c.density for c in clusters] == [0.5, 1.0, 0.5]


def test_high_density_regions(population):
    dense = find_high_density_regions(population, threshold=0.7)
    assert [c.band for c in dense] == [1]


def test_custom_band_count(population):
    clusters = cluster_by_altitude(population, num_bands=2)
    assert [c.count for c in clusters] == [3, 1]


def test_empty():
    assert cluster_by_altitude([]) == []


def test_invalid_band_count():
    with pytest.raises(ValueError):
        cluster_by_altitude([], num_bands=0)
