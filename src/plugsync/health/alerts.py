"""
Alerting framework for plugsync.

The reconciliation manager reports device connectivity changes, discovery
failures and state corrections through an AlertManager, which fans each
alert out to pluggable handlers (Python logging, a log file, the console).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class AlertLevel(Enum):
    """Alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


_LEVEL_ORDER = {
    AlertLevel.INFO: 0,
    AlertLevel.WARNING: 1,
    AlertLevel.CRITICAL: 2,
}


@dataclass
class Alert:
    """An alert to be sent to handlers."""

    level: AlertLevel
    label: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    details: Optional[str] = None

    def format(self) -> str:
        """Format alert as a string."""
        ts = self.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        level = self.level.value.upper()
        msg = f"[{ts}] [{level}] {self.label}: {self.message}"
        if self.details:
            msg += f" - {self.details}"
        return msg


class AlertHandler(ABC):
    """Abstract base class for alert handlers."""

    @abstractmethod
    def send(self, alert: Alert) -> bool:
        """
        Send an alert.

        Args:
            alert: Alert to send

        Returns:
            True if alert was sent successfully
        """
        pass

    def close(self) -> None:
        """Clean up handler resources."""
        pass


class LoggingAlertHandler(AlertHandler):
    """Alert handler that forwards alerts to a Python logger."""

    _LOG_LEVELS = {
        AlertLevel.INFO: logging.INFO,
        AlertLevel.WARNING: logging.WARNING,
        AlertLevel.CRITICAL: logging.CRITICAL,
    }

    def __init__(self, target: Optional[logging.Logger] = None):
        self.target = target or logging.getLogger("plugsync.alerts")

    def send(self, alert: Alert) -> bool:
        msg = f"{alert.label}: {alert.message}"
        if alert.details:
            msg += f" - {alert.details}"
        self.target.log(self._LOG_LEVELS[alert.level], msg)
        return True


class LogAlertHandler(AlertHandler):
    """Alert handler that appends to a log file."""

    def __init__(self, log_path: Path):
        """
        Initialize log alert handler.

        Args:
            log_path: Path to the alert log file
        """
        self.log_path = log_path
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def send(self, alert: Alert) -> bool:
        """Write alert to log file."""
        try:
            with open(self.log_path, "a") as f:
                f.write(alert.format() + "\n")
            return True
        except OSError as e:
            logger.error(f"Failed to write alert to log: {e}")
            return False


class ConsoleAlertHandler(AlertHandler):
    """Alert handler that prints to console."""

    _COLORS = {
        AlertLevel.INFO: "\033[32m",  # Green
        AlertLevel.WARNING: "\033[33m",  # Yellow
        AlertLevel.CRITICAL: "\033[31m",  # Red
    }

    def __init__(self, min_level: AlertLevel = AlertLevel.INFO):
        """
        Initialize console alert handler.

        Args:
            min_level: Minimum alert level to display
        """
        self.min_level = min_level

    def send(self, alert: Alert) -> bool:
        """Print alert to console if level meets threshold."""
        if _LEVEL_ORDER[alert.level] >= _LEVEL_ORDER[self.min_level]:
            color = self._COLORS.get(alert.level, "")
            print(f"{color}{alert.format()}\033[0m")
        return True


class AlertManager:
    """Manages multiple alert handlers and dispatches alerts."""

    def __init__(self, handlers: Optional[list[AlertHandler]] = None):
        self._handlers: list[AlertHandler] = list(handlers or [])

    @property
    def handlers(self) -> list[AlertHandler]:
        return list(self._handlers)

    def add_handler(self, handler: AlertHandler) -> None:
        """
        Register an alert handler.

        Args:
            handler: Handler to add
        """
        self._handlers.append(handler)

    def remove_handler(self, handler: AlertHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def trigger(self, alert: Alert) -> int:
        """
        Send alert to all registered handlers.

        Handler failures are logged and never propagate to the caller.

        Args:
            alert: Alert to send

        Returns:
            Number of handlers that successfully sent the alert
        """
        success_count = 0
        for handler in self._handlers:
            try:
                if handler.send(alert):
                    success_count += 1
            except Exception as e:
                logger.error(f"Handler {handler.__class__.__name__} failed: {e}")
        return success_count

    def trigger_info(self, label: str, message: str, details: Optional[str] = None) -> int:
        """Convenience method to trigger an INFO alert."""
        return self.trigger(Alert(AlertLevel.INFO, label, message, details=details))

    def trigger_warning(self, label: str, message: str, details: Optional[str] = None) -> int:
        """Convenience method to trigger a WARNING alert."""
        return self.trigger(Alert(AlertLevel.WARNING, label, message, details=details))

    def trigger_critical(self, label: str, message: str, details: Optional[str] = None) -> int:
        """Convenience method to trigger a CRITICAL alert."""
        return self.trigger(Alert(AlertLevel.CRITICAL, label, message, details=details))

    def close(self) -> None:
        """Close all handlers."""
        for handler in self._handlers:
            try:
                handler.close()
            except Exception as e:
                logger.error(f"Error closing handler: {e}")
        self._handlers.clear()
