"""
Metrics definitions for SentinelNet.

This module defines Prometheus metrics for monitoring
alert decisions, the SOS flow and location tracking.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
alerts_received = Counter(
    "alerts_received_total",
    "Number of raw alerts received",
    ["source"]
)

alert_decisions = Counter(
    "alert_decisions_total",
    "Number of alert decisions by outcome code",
    ["code"]
)

sos_transitions = Counter(
    "sos_transitions_total",
    "SOS state machine transitions",
    ["phase"]
)

sos_step_failures = Counter(
    "sos_step_failures_total",
    "Best-effort SOS steps that failed",
    ["step"]
)

location_fixes = Counter(
    "location_fixes_total",
    "Location fixes delivered to callers",
    ["origin"]
)

persistence_errors = Counter(
    "persistence_errors_total",
    "Persistence store failures",
    ["operation"]
)

# 히스토그램 메트릭
decision_seconds = Histogram(
    "decision_duration_seconds",
    "Time spent deciding on an alert",
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1]
)

gps_capture_seconds = Histogram(
    "gps_capture_seconds",
    "Time spent acquiring the SOS GPS fix",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0]
)

# 게이지 메트릭
sos_active = Gauge(
    "sos_active",
    "1 while an SOS flow is in progress or streaming"
)

tracking_interval_ms = Gauge(
    "tracking_interval_ms",
    "Current adaptive location polling interval"
)

queue_depth = Gauge(
    "internal_queue_depth",
    "Current depth of the alert queue"
)
