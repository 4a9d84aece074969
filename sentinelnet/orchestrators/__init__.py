"""
Orchestrators for SentinelNet.

This module contains the stateful engines that coordinate
the core domain with ports and adapters.
"""
from .severity_controller import SeverityController
from .alert_engine import AlertDecisionEngine
from .location_tracker import AdaptiveLocationTracker
from .sos_engine import SOSTransactionEngine
from .session import EmergencySession

__all__ = [
    "SeverityController", "AlertDecisionEngine", "AdaptiveLocationTracker",
    "SOSTransactionEngine", "EmergencySession",
]
