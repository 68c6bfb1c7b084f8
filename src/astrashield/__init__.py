"""
AstraShield: space situational awareness engine for Python.

Parses element sets, screens a population for close approaches, estimates
collision probability, scores per-object risk and forecasts reentries.
"""

from __future__ import annotations

__version__ = "0.1.0.dev0"

from astrashield.core.tle import SpaceObject, parse_element_sets, parse_element_sets_detailed
from astrashield.core.propagation import propagate, propagate_state, StateVector
from astrashield.core.screening import Conjunction, detect_conjunctions, run_conjunction_detection
from astrashield.core.probability import compute_pc, PcMethod, PcOptions, PcResult
from astrashield.core.risk import RiskScore, score_risks
from astrashield.core.reentry import ReentryPrediction, predict_reentry
from astrashield.core.maneuvers import ManeuverAnalysis, analyze_maneuvers
from astrashield.core.engine import CancellationToken, ConjunctionEngine
from astrashield.data.store import InMemoryObjectStore, ObjectStore
from astrashield.data.celestrak import CelesTrakClient
from astrashield.utils.config import EngineConfig

__all__ = [
    "__version__",
    "SpaceObject",
    "parse_element_sets",
    "parse_element_sets_detailed",
    "propagate",
    "propagate_state",
    "StateVector",
    "Conjunction",
    "detect_conjunctions",
    "run_conjunction_detection",
    "compute_pc",
    "PcMethod",
    "PcOptions",
    "PcResult",
    "RiskScore",
    "score_risks",
    "ReentryPrediction",
    "predict_reentry",
    "ManeuverAnalysis",
    "analyze_maneuvers",
    "CancellationToken",
    "ConjunctionEngine",
    "InMemoryObjectStore",
    "ObjectStore",
    "CelesTrakClient",
    "EngineConfig",
]
