"""
Home Assistant adapters for SentinelNet.
"""

from .client import HAClient
from .location_source import HomeAssistantLocationSource
from .notifier import HomeAssistantNotifier

__all__ = ["HAClient", "HomeAssistantLocationSource", "HomeAssistantNotifier"]
