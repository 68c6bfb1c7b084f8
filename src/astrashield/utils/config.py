"""Engine configuration."""

from __future__ import annotations

from dataclasses import dataclass, replace

from astrashield.core.probability import PcMethod, PcOptions
from astrashield.utils import constants as C


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for a conjunction / risk / reentry pipeline.

    Attributes:
        max_objects: Population cap for one detection run.
        forecast_hours: Forecast horizon of a detection run.
        sample_interval_min: Trajectory sampling cadence.
        altitude_prefilter_km: Maximum altitude difference of a compared pair.
        storage_threshold_km: Approaches closer than this become conjunctions.
        propagation_batch_size: Objects propagated between cancellation checks.
        freshness_window_hours: Age after which a conjunction is no longer active.
        primary_radius_m: Default hard-body radius of the first object.
        secondary_radius_m: Default hard-body radius of the second object.
        covariance_age_days: Element-set age fed to the covariance model.
        monte_carlo_samples: Monte-Carlo sample count.
        monte_carlo_seed: Monte-Carlo seed.
        pc_method: Pc estimation method.
        cross_section_scaling: Apply cross-section scaling to Monte-Carlo Pc.
        reentry_threshold_km: Objects below this altitude are reentry candidates.
        reentry_horizon_days: Decay integration horizon.
        solar_flux_sfu: F10.7 solar flux used for atmospheric density.
        num_bands: Number of altitude bands for congestion clustering.
        density_threshold: Relative density above which a band is congested.
    """

    max_objects: int = C.MAX_OBJECTS
    forecast_hours: float = C.FORECAST_HOURS
    sample_interval_min: float = C.SAMPLE_INTERVAL_MIN
    altitude_prefilter_km: float = C.ALTITUDE_PREFILTER_KM
    storage_threshold_km: float = C.STORAGE_THRESHOLD_KM
    propagation_batch_size: int = C.PROPAGATION_BATCH_SIZE
    freshness_window_hours: float = C.FRESHNESS_WINDOW_HOURS

    primary_radius_m: float = C.DEFAULT_PRIMARY_RADIUS_M
    secondary_radius_m: float = C.DEFAULT_SECONDARY_RADIUS_M
    covariance_age_days: float = C.DEFAULT_COVARIANCE_AGE_DAYS
    monte_carlo_samples: int = C.DEFAULT_MONTE_CARLO_SAMPLES
    monte_carlo_seed: int | None = C.DEFAULT_MONTE_CARLO_SEED
    pc_method: PcMethod = PcMethod.MONTE_CARLO
    cross_section_scaling: bool = True

    reentry_threshold_km: float = C.REENTRY_ALTITUDE_THRESHOLD_KM
    reentry_horizon_days: float = C.DECAY_PREDICTION_DAYS
    solar_flux_sfu: float = C.SOLAR_FLUX_AVG_SFU

    num_bands: int = C.DEFAULT_BANDS
    density_threshold: float = C.DENSITY_THRESHOLD

    def __post_init__(self) -> None:
        if self.max_objects <= 0:
            raise ValueError("max_objects must be positive")
        if self.forecast_hours <= 0 or self.sample_interval_min <= 0:
            raise ValueError("forecast_hours and sample_interval_min must be positive")
        if self.propagation_batch_size <= 0:
            raise ValueError("propagation_batch_size must be positive")
        if self.monte_carlo_samples <= 0:
            raise ValueError("monte_carlo_samples must be positive")

    @property
    def sample_count(self) -> int:
        """Samples per trajectory (144 for 12 h at 5 min)."""
        return int(self.forecast_hours * 60 / self.sample_interval_min)

    def with_overrides(self, **changes) -> EngineConfig:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def pc_options(self) -> PcOptions:
        return PcOptions(
            primary_radius_m=self.primary_radius_m,
            secondary_radius_m=self.secondary_radius_m,
            covariance_age_days=self.covariance_age_days,
            monte_carlo_samples=self.monte_carlo_samples,
            method=self.pc_method,
            seed=self.monte_carlo_seed,
            cross_section_scaling=self.cross_section_scaling,
        )
