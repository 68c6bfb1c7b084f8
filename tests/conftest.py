"""Shared fixtures: real element sets and a deterministic reference time."""

from __future__ import annotations

from datetime import datetime

import pytest

from astrashield.core.tle import SpaceObject
from tle_factory import (
    CSS_LINE1, CSS_LINE2, CSS_NAME,
    EPOCH,
    HST_LINE1, HST_LINE2, HST_NAME,
    ISS_LINE1, ISS_LINE2, ISS_NAME,
)


@pytest.fixture
def now() -> datetime:
    """Reference time shared by the synthetic element sets."""
    return EPOCH


@pytest.fixture
def iss() -> SpaceObject:
    """ISS element set for testing."""
    return SpaceObject.from_lines(ISS_LINE1, ISS_LINE2, ISS_NAME)


@pytest.fixture
def css() -> SpaceObject:
    """Chinese Space Station (Tianhe) element set for testing."""
    return SpaceObject.from_lines(CSS_LINE1, CSS_LINE2, CSS_NAME)


@pytest.fixture
def hst() -> SpaceObject:
    """Hubble Space Telescope element set for testing."""
    return SpaceObject.from_lines(HST_LINE1, HST_LINE2, HST_NAME)
