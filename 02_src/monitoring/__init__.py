"""
Usage monitoring module.

Tracks per-provider cost, latency and error telemetry and raises usage alerts.
"""
from .cost_monitor import AlertThresholds, CostMonitor
from .models import (
    Alert,
    AlertSeverity,
    AlertType,
    CostOptimization,
    UsageMetrics,
    UsageReport,
    UsageSummary,
)
from .pricing import DEFAULT_RATE, PRICING_TABLE, Pricing, TokenRate
from .telemetry import JsonlTelemetrySink, LoggingTelemetrySink, TelemetrySink

__all__ = [
    "CostMonitor",
    "AlertThresholds",
    "Alert",
    "AlertSeverity",
    "AlertType",
    "CostOptimization",
    "UsageMetrics",
    "UsageReport",
    "UsageSummary",
    "Pricing",
    "TokenRate",
    "PRICING_TABLE",
    "DEFAULT_RATE",
    "TelemetrySink",
    "LoggingTelemetrySink",
    "JsonlTelemetrySink",
]
