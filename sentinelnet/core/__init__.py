"""
Core domain models and pure functions for SentinelNet.

This module contains the domain models and pure business logic
that are independent of external I/O and infrastructure concerns.
"""

from .models import (
    AlertPayload, Coordinate, Decision, DecisionCode, LocationFix, MatchReason,
    Severity, SeverityControlSignals, SOSPhase, SOSState, StepOutcome,
    TrackingContext, WatchOptions, Zone, ZoneMatchResult,
)
from .geo import distance_meters
from .normalize import to_alert_payload
from .severity import compare_severity, signals_for
from .zone_matcher import evaluate

__all__ = [
    "AlertPayload", "Coordinate", "Decision", "DecisionCode", "LocationFix",
    "MatchReason", "Severity", "SeverityControlSignals", "SOSPhase", "SOSState",
    "StepOutcome", "TrackingContext", "WatchOptions", "Zone", "ZoneMatchResult",
    "distance_meters", "to_alert_payload", "compare_severity", "signals_for",
    "evaluate",
]
