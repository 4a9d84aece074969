"""
Remote MQTT alert feed adapter for SentinelNet.

This module provides the implementation of AlertFeedPort
for receiving alerts from remote MQTT brokers.
"""

from .client_async import MqttAlertFeed

__all__ = ["MqttAlertFeed"]
