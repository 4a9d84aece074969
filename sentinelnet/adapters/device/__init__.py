"""
Device adapters for SentinelNet.

Headless stand-ins for the phone's vibration motor, speaker and dialer.
"""

from .console import LoggingCallInitiator, LoggingDeviceEffects

__all__ = ["LoggingDeviceEffects", "LoggingCallInitiator"]
