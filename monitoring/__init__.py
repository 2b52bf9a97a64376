"""Monitoring sink and AI cost accounting."""

from .pricing import PRICING, ModelPrice, estimate_cost, price_for
from .sink import BestEffortMonitor, LoggingMonitoringSink, MonitoringSink, best_effort

__all__ = [
    "PRICING",
    "ModelPrice",
    "estimate_cost",
    "price_for",
    "BestEffortMonitor",
    "LoggingMonitoringSink",
    "MonitoringSink",
    "best_effort",
]
