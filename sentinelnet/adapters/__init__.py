"""
Adapters for SentinelNet hexagonal architecture.

This module contains the concrete implementations of port interfaces
that handle external I/O and infrastructure concerns.
"""

from .storage import InMemoryKVStore, SQLiteKVStore, SOSStateRecord, LocationHistoryRecord
from .mqtt_remote.client_async import MqttAlertFeed
from .homeassistant import HAClient, HomeAssistantLocationSource, HomeAssistantNotifier
from .device import LoggingDeviceEffects, LoggingCallInitiator

__all__ = [
    "InMemoryKVStore", "SQLiteKVStore", "SOSStateRecord", "LocationHistoryRecord",
    "MqttAlertFeed",
    "HAClient", "HomeAssistantLocationSource", "HomeAssistantNotifier",
    "LoggingDeviceEffects", "LoggingCallInitiator",
]
