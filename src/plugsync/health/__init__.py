"""
Health reporting module for plugsync.

Provides alerting for plug connectivity changes and status tables.
"""

from plugsync.health.alerts import (
    Alert,
    AlertHandler,
    AlertLevel,
    AlertManager,
    ConsoleAlertHandler,
    LogAlertHandler,
    LoggingAlertHandler,
)
from plugsync.health.report import format_discovery_table, format_status_table

__all__ = [
    # Alerts
    "Alert",
    "AlertLevel",
    "AlertHandler",
    "AlertManager",
    "LoggingAlertHandler",
    "LogAlertHandler",
    "ConsoleAlertHandler",
    # Reports
    "format_status_table",
    "format_discovery_table",
]
