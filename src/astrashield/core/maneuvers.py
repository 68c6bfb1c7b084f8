"""Avoidance maneuver costing and ranking.

Delta-v uses circular-orbit approximations: a Hohmann transfer for altitude
changes, ``2 v sin(di/2)`` for plane changes, and the root-sum-square of the
two for combined maneuvers. Fuel follows the rocket equation with an
electric-propulsion exhaust velocity.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from astrashield.core.tle import SpaceObject
from astrashield.utils.constants import EARTH_MU_KM3_S2, EARTH_RADIUS_KM

logger = logging.getLogger(__name__)

EXHAUST_VELOCITY_M_S = 3000.0
STANDARD_GRAVITY_M_S2 = 9.81
DEFAULT_SPACECRAFT_MASS_KG = 1000.0

DEFAULT_ALTITUDE_KM = 400.0
DEFAULT_CURRENT_RISK = 0.5
MAX_SCENARIOS = 8

# Score weights: delta-v, risk reduction, fuel
SCORE_WEIGHTS = (0.3, 0.5, 0.2)


@dataclass(frozen=True)
class DeltaV:
    """Delta-v breakdown of a maneuver in km/s."""

    altitude: float
    inclination: float
    total: float
    first_burn: float = 0.0
    second_burn: float = 0.0


@dataclass(frozen=True)
class ManeuverScenario:
    """A candidate target orbit."""

    id: str
    name: str
    description: str
    new_altitude_km: float
    new_inclination_deg: float
    priority: str


@dataclass
class ScenarioScore:
    dv_score: float
    risk_score: float
    fuel_score: float
    total_score: float


@dataclass
class ManeuverOption:
    """A scenario with its cost, projected risk and score."""

    scenario: ManeuverScenario
    delta_v: DeltaV
    fuel_mass_kg: float
    current_risk: float
    projected_risk: float
    score: ScenarioScore

    @property
    def risk_reduction(self) -> float:
        return self.current_risk - self.projected_risk


@dataclass
class ManeuverAnalysis:
    """Ranked maneuver options for one object.

    Attributes:
        catalog_id: NORAD catalog number.
        name: Object name.
        options: Every evaluated option, best first.
        action: RECOMMENDED, CONSIDER_LOW_COST or CUSTOM.
        reason: Human-readable reason for the action.
        confidence: HIGH or MEDIUM.
    """

    catalog_id: int
    name: str
    options: list[ManeuverOption]
    action: str
    reason: str
    confidence: str

    @property
    def best_option(self) -> ManeuverOption:
        return self.options[0]

    @property
    def alternatives(self) -> list[ManeuverOption]:
        return self.options[1:4]


def orbital_velocity(altitude_km: float) -> float:
    """Circular orbital speed in km/s."""
    return math.sqrt(EARTH_MU_KM3_S2 / (EARTH_RADIUS_KM + altitude_km))


def orbital_period(altitude_km: float) -> float:
    """Circular orbital period in minutes."""
    a = EARTH_RADIUS_KM + altitude_km
    return 2.0 * math.pi * math.sqrt(a**3 / EARTH_MU_KM3_S2) / 60.0


def hohmann_delta_v(r1_km: float, r2_km: float) -> tuple[float, float]:
    """Magnitudes of the two Hohmann burns between circular radii, km/s."""
    v1 = math.sqrt(EARTH_MU_KM3_S2 / r1_km)
    v2 = math.sqrt(EARTH_MU_KM3_S2 / r2_km)
    dv1 = v1 * (math.sqrt(2.0 * r2_km / (r1_km + r2_km)) - 1.0)
    dv2 = v2 * (1.0 - math.sqrt(2.0 * r1_km / (r1_km + r2_km)))
    return abs(dv1), abs(dv2)


def inclination_change_delta_v(altitude_km: float, inclination_change_deg: float) -> float:
    """Single-impulse plane change at circular speed, km/s."""
    half_angle = math.radians(inclination_change_deg) / 2.0
    return 2.0 * orbital_velocity(altitude_km) * abs(math.sin(half_angle))


def combined_delta_v(
    current_altitude_km: float,
    new_altitude_km: float,
    current_inclination_deg: float,
    new_inclination_deg: float,
) -> DeltaV:
    """Altitude change plus plane change, combined root-sum-square.

    The plane change is costed at the new altitude.
    """
    dv1, dv2 = hohmann_delta_v(
        EARTH_RADIUS_KM + current_altitude_km, EARTH_RADIUS_KM + new_altitude_km
    )
    altitude_dv = dv1 + dv2
    inclination_dv = inclination_change_delta_v(
        new_altitude_km, abs(new_inclination_deg - current_inclination_deg)
    )
    return DeltaV(
        altitude=altitude_dv,
        inclination=inclination_dv,
        total=math.hypot(altitude_dv, inclination_dv),
        first_burn=dv1,
        second_burn=dv2,
    )


def fuel_mass(delta_v_km_s: float, initial_mass_kg: float = DEFAULT_SPACECRAFT_MASS_KG) -> float:
    """Propellant mass in kg for a delta-v, from the rocket equation."""
    mass_ratio = math.exp(-(delta_v_km_s * 1000.0) / (EXHAUST_VELOCITY_M_S * STANDARD_GRAVITY_M_S2))
    return initial_mass_kg * (1.0 - mass_ratio)


def generate_scenarios(altitude_km: float, inclination_deg: float) -> list[ManeuverScenario]:
    """Standard candidate maneuvers for an object's current orbit."""
    scenarios = [
        ManeuverScenario(
            "alt-raise-small", "Small Altitude Raise",
            "Raise orbit by 50 km to reduce congestion",
            altitude_km + 50.0, inclination_deg, "low-cost",
        ),
        ManeuverScenario(
            "alt-raise-large", "Large Altitude Raise",
            "Raise orbit by 200 km for significant risk reduction",
            altitude_km + 200.0, inclination_deg, "balanced",
        ),
    ]
    if inclination_deg < 90.0:
        scenarios.append(ManeuverScenario(
            "inc-adjust", "Inclination Change",
            "Adjust inclination to 10 deg for a different orbital plane",
            altitude_km, 10.0, "balanced",
        ))
    scenarios.append(ManeuverScenario(
        "combined-1", "Combined Maneuver",
        "Raise altitude 100 km and adjust inclination",
        altitude_km + 100.0, min(inclination_deg + 5.0, 90.0), "effective",
    ))

    if altitude_km < 1000.0:
        target = 1200.0
    elif altitude_km < 20000.0:
        target = 20000.0
    else:
        target = 35786.0
    if abs(target - altitude_km) > 50.0:
        scenarios.append(ManeuverScenario(
            "band-edge", "Band Edge Transit",
            f"Move to the {target:.0f} km band edge for lower congestion",
            target, inclination_deg, "effective",
        ))

    scenarios.append(ManeuverScenario(
        "drastic-alt", "Drastic Altitude Change",
        "Significant altitude change to escape current congestion",
        altitude_km - 500.0 if altitude_km > 1000.0 else altitude_km + 500.0,
        inclination_deg, "high-risk",
    ))
    if inclination_deg < 90.0:
        scenarios.append(ManeuverScenario(
            "polar-orbit", "Polar Orbit",
            "Move to a 90 deg polar orbit",
            max(altitude_km, 600.0), 90.0, "high-cost",
        ))
    if inclination_deg < 95.0:
        scenarios.append(ManeuverScenario(
            "sso", "Sun-Synchronous Orbit",
            "Move to a sun-synchronous orbit at 98 deg",
            max(altitude_km, 600.0), 98.0, "specialized",
        ))
    return scenarios[:MAX_SCENARIOS]


def projected_risk(current_risk: float, current_altitude_km: float, new_altitude_km: float) -> float:
    """Risk after the maneuver: leaving the altitude shell cuts it by 30%, a plane change by 10%."""
    factor = 0.7 if new_altitude_km != current_altitude_km else 0.9
    return max(0.0, current_risk * factor)


def score_option(delta_v: DeltaV, current_risk: float, projected: float) -> ScenarioScore:
    """Weighted 0-100 score: cheap, risk-reducing, fuel-light maneuvers score high."""
    dv_score = max(0.0, 100.0 - delta_v.total * 10.0)
    risk_score = max(0.0, (current_risk - projected) * 100.0)
    fuel_score = max(0.0, 100.0 - fuel_mass(delta_v.total) / 10.0)
    w_dv, w_risk, w_fuel = SCORE_WEIGHTS
    total = dv_score * w_dv + risk_score * w_risk + fuel_score * w_fuel
    return ScenarioScore(dv_score, risk_score, fuel_score, round(total, 1))


def evaluate_scenario(
    scenario: ManeuverScenario,
    altitude_km: float,
    inclination_deg: float,
    current_risk: float,
) -> ManeuverOption:
    delta_v = combined_delta_v(
        altitude_km, scenario.new_altitude_km, inclination_deg, scenario.new_inclination_deg
    )
    projected = projected_risk(current_risk, altitude_km, scenario.new_altitude_km)
    return ManeuverOption(
        scenario=scenario,
        delta_v=delta_v,
        fuel_mass_kg=fuel_mass(delta_v.total),
        current_risk=current_risk,
        projected_risk=projected,
        score=score_option(delta_v, current_risk, projected),
    )


def _recommend(best: ManeuverOption, options: list[ManeuverOption]) -> tuple[str, str, str]:
    if best.score.risk_score > 30.0 and best.score.dv_score > 50.0:
        return "RECOMMENDED", "Best balance of risk reduction and delta-v efficiency", "HIGH"
    has_low_cost = any(o.scenario.priority == "low-cost" for o in options)
    if has_low_cost and best.scenario.priority != "low-cost":
        return "CONSIDER_LOW_COST", "A lower-cost option exists with moderate risk improvement", "MEDIUM"
    return "CUSTOM", "Custom scenario selected based on specific requirements", "MEDIUM"


def analyze_maneuvers(obj: SpaceObject) -> ManeuverAnalysis:
    """Cost, score and rank the standard maneuvers for one object.

    Objects without a usable altitude are treated as sitting at 400 km, and
    an unscored object as carrying a risk of 0.5.

    Args:
        obj: Object to move.

    Returns:
        ManeuverAnalysis with options sorted best first.
    """
    altitude_km = obj.orbital_altitude_km if obj.orbital_altitude_km > 0 else DEFAULT_ALTITUDE_KM
    inclination_deg = obj.inclination_deg
    current_risk = obj.risk_score or DEFAULT_CURRENT_RISK

    options = [
        evaluate_scenario(s, altitude_km, inclination_deg, current_risk)
        for s in generate_scenarios(altitude_km, inclination_deg)
    ]
    # Stable sort keeps generation order between equal scores
    options.sort(key=lambda o: o.score.total_score, reverse=True)
    action, reason, confidence = _recommend(options[0], options)

    logger.info(
        "Maneuver analysis for %d: best %s (%.3f km/s, score %.1f)",
        obj.catalog_id, options[0].scenario.id, options[0].delta_v.total, options[0].score.total_score,
    )
    return ManeuverAnalysis(
        catalog_id=obj.catalog_id,
        name=obj.name,
        options=options,
        action=action,
        reason=reason,
        confidence=confidence,
    )
