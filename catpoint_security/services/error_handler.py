"""Error taxonomy and failure bookkeeping for the security services."""

import functools
import threading
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Any

from ..logging_config import get_logger

logger = get_logger("error_handler")


class SecurityError(Exception):
    """Base class for errors raised by the security system."""


class InvalidArgumentError(SecurityError, ValueError):
    """An operation was called with an argument it cannot accept."""


class ConfigurationError(SecurityError):
    """The system configuration is invalid."""


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ComponentStatus(Enum):
    """Component status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass
class ErrorRecord:
    """Record of an error occurrence."""
    component_name: str
    error_type: str
    message: str
    severity: ErrorSeverity
    timestamp: datetime = field(default_factory=datetime.now)
    traceback_str: str = ""


class ErrorHandler:
    """Keeps a history of failures per component.

    The handler only observes: it never swallows, retries or masks an error.
    Callers re-raise after recording.
    """

    def __init__(self, max_error_history: int = 1000):
        self.max_error_history = max_error_history
        self.error_history: List[ErrorRecord] = []
        self.component_error_counts: Dict[str, int] = {}
        self.component_status: Dict[str, ComponentStatus] = {}
        self._lock = threading.Lock()

    def register_component(self, component_name: str) -> None:
        """Register a component for error tracking."""
        with self._lock:
            self.component_error_counts.setdefault(component_name, 0)
            self.component_status.setdefault(component_name, ComponentStatus.HEALTHY)
        logger.debug(f"Component registered: {component_name}")

    def handle_error(self, component_name: str, error: Exception,
                     severity: ErrorSeverity = ErrorSeverity.MEDIUM) -> ErrorRecord:
        """Record an error raised by a component."""
        record = ErrorRecord(
            component_name=component_name,
            error_type=type(error).__name__,
            message=str(error),
            severity=severity,
            traceback_str=traceback.format_exc()
        )

        with self._lock:
            self.error_history.append(record)
            if len(self.error_history) > self.max_error_history:
                del self.error_history[:-self.max_error_history]

            self.component_error_counts[component_name] = \
                self.component_error_counts.get(component_name, 0) + 1

            if severity == ErrorSeverity.CRITICAL:
                self.component_status[component_name] = ComponentStatus.FAILED
            elif severity in (ErrorSeverity.HIGH, ErrorSeverity.MEDIUM):
                self.component_status[component_name] = ComponentStatus.DEGRADED

        logger.error(f"Error in {component_name}: {error} (Severity: {severity.value})")
        return record

    def get_component_health(self) -> Dict[str, ComponentStatus]:
        """Get health status of all tracked components."""
        with self._lock:
            return dict(self.component_status)

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        with self._lock:
            return {
                "total_errors": len(self.error_history),
                "component_error_counts": dict(self.component_error_counts),
                "component_status": {k: v.value for k, v in self.component_status.items()}
            }

    def get_error_summary(self, hours: int = 24) -> Dict[str, Any]:
        """Get summary of errors in the last N hours."""
        cutoff_time = datetime.now() - timedelta(hours=hours)

        with self._lock:
            recent_errors = [e for e in self.error_history if e.timestamp >= cutoff_time]

        component_counts: Dict[str, int] = {}
        severity_counts = {severity.value: 0 for severity in ErrorSeverity}

        for error in recent_errors:
            component_counts[error.component_name] = component_counts.get(error.component_name, 0) + 1
            severity_counts[error.severity.value] += 1

        return {
            "total_errors": len(recent_errors),
            "component_counts": component_counts,
            "severity_counts": severity_counts,
            "time_period_hours": hours
        }

    def reset_error_counts(self, component_name: Optional[str] = None) -> None:
        """Reset error counts for a component or all components."""
        with self._lock:
            names = [component_name] if component_name else list(self.component_error_counts)
            for name in names:
                if name in self.component_error_counts:
                    self.component_error_counts[name] = 0
                    self.component_status[name] = ComponentStatus.HEALTHY

    def clear_error_history(self) -> None:
        """Drop all recorded errors."""
        with self._lock:
            self.error_history.clear()


# Create global error handler instance
global_error_handler = ErrorHandler()


def with_error_handling(component_name: str, severity: ErrorSeverity = ErrorSeverity.MEDIUM,
                        error_handler: Optional[ErrorHandler] = None):
    """Decorator recording failures of the wrapped callable, then re-raising.

    Argument errors are the caller's fault and are re-raised without being
    counted against the component.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except InvalidArgumentError:
                raise
            except Exception as e:
                (error_handler or global_error_handler).handle_error(component_name, e, severity)
                raise
        return wrapper
    return decorator
