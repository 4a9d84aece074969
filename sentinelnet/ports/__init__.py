"""
Port interfaces for SentinelNet hexagonal architecture.

This module defines the port interfaces (Protocols) that define
the contracts between the core domain and external collaborators.
"""

from .ingest import AlertFeedPort
from .dispatch import CallInitiatorPort, NotificationDispatcherPort
from .effects import DeviceEffectsPort
from .kvstore import KVStorePort
from .location import LocationSourcePort

__all__ = [
    "AlertFeedPort", "CallInitiatorPort", "NotificationDispatcherPort",
    "DeviceEffectsPort", "KVStorePort", "LocationSourcePort",
]
