"""Physical constants and default thresholds for the risk pipeline.

Distances in km, hard-body radii in meters, variances in m² unless noted.
"""

from __future__ import annotations

# --- Earth parameters ---
EARTH_RADIUS_KM: float = 6371.0
"""Mean radius of Earth in km (altitude reference)."""

EARTH_MU_KM3_S2: float = 398600.4418
"""Earth gravitational parameter (GM) in km³/s²."""

MINUTES_PER_DAY: float = 1440.0
SECONDS_PER_DAY: float = 86400.0

# --- Orbit regime boundaries ---
LEO_MAX_ALT_KM: float = 2000.0
"""Maximum altitude for Low Earth Orbit in km."""

MEO_MAX_ALT_KM: float = 35786.0
"""Maximum altitude for Medium Earth Orbit in km."""

# --- Conjunction detection ---
MAX_OBJECTS: int = 300
"""Population cap for one detection run."""

FORECAST_HOURS: float = 12.0
SAMPLE_INTERVAL_MIN: float = 5.0

ALTITUDE_PREFILTER_KM: float = 200.0
"""Pairs whose altitudes differ by more than this are never compared."""

STORAGE_THRESHOLD_KM: float = 10.0
"""Only approaches closer than this become conjunctions."""

PROPAGATION_BATCH_SIZE: int = 100

RISK_DISTANCE_CRITICAL_KM: float = 1.0
RISK_DISTANCE_HIGH_KM: float = 5.0
RISK_DISTANCE_MODERATE_KM: float = 10.0

MEAN_ORBITAL_SPEED_KM_S: float = 7.5
"""Nominal LEO orbital speed used by the approximate relative velocity."""

FRESHNESS_WINDOW_HOURS: float = 6.0
"""Conjunctions older than this are no longer considered active."""

# --- Collision probability ---
DEFAULT_PRIMARY_RADIUS_M: float = 5.0
"""Hard-body radius of a large satellite or upper stage in meters."""

DEFAULT_SECONDARY_RADIUS_M: float = 1.0
"""Hard-body radius of small debris in meters."""

DEFAULT_COVARIANCE_AGE_DAYS: float = 1.0
PC_AGE_STEP_DAYS: float = 0.25
"""Spacing of the covariance ages scanned for the worst-case Pc."""

DEFAULT_MONTE_CARLO_SAMPLES: int = 10_000
DEFAULT_MONTE_CARLO_SEED: int = 42

FAR_FIELD_RADIUS_MULTIPLE: float = 10.0
"""Pc is zero once the miss distance exceeds this many combined radii."""

PC_CRITICAL: float = 1e-3
PC_HIGH: float = 1e-4
PC_MODERATE: float = 1e-5

SIGMA_LEVELS: tuple[int, ...] = (1, 2, 3)

# --- Covariance model ---
DEFAULT_VARIANCE_M2: float = 1000.0
"""Base position variance in m² for a fresh element set."""

COVARIANCE_GROWTH_RATE: float = 0.05
"""Fractional variance growth per day of element-set age."""

COVARIANCE_ALTITUDE_SCALE_KM: float = 2000.0

# --- Risk scoring ---
CLOSE_APPROACH_THRESHOLD_KM: float = 10.0
HIGH_VELOCITY_KM_S: float = 7.5
CONGESTION_RISK_WEIGHT: float = 0.4
CONJUNCTION_RISK_WEIGHT: float = 0.6

RISK_SCORE_HIGH: float = 0.6
RISK_SCORE_MEDIUM: float = 0.3
HIGH_RISK_OBJECT_MIN_SCORE: float = 0.7

# --- Congestion clustering ---
DEFAULT_BANDS: int = 20
CLUSTER_MIN_ALTITUDE_KM: float = 200.0
CLUSTER_MAX_ALTITUDE_KM: float = 36000.0
DENSITY_THRESHOLD: float = 0.7

# --- Reentry ---
REENTRY_ALTITUDE_THRESHOLD_KM: float = 400.0
"""Objects below this altitude are reentry candidates."""

ATMOSPHERE_ENTRY_ALTITUDE_KM: float = 120.0
CRITICAL_REENTRY_ALTITUDE_KM: float = 100.0
DECAY_PREDICTION_DAYS: float = 30.0
DECAY_TIME_STEP_DAYS: float = 0.1
SOLAR_FLUX_AVG_SFU: float = 150.0
BALLISTIC_COEFFICIENT_TYPICAL: float = 0.01
"""Fallback ballistic coefficient in m²/kg for typical debris."""
