"""
Core interfaces and data structures for dqnotify.

This module defines what flows through the notification path:
- LifecycleEvent: the point in a run that may notify
- RunContext: what the run knows when the event happens
- NotificationMessage: what gets delivered
- Dispatcher: how it gets delivered
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class LifecycleEvent(str, Enum):
    """Discrete points of a data-quality run at which a notification may fire."""
    START = "start"
    COMPLETION = "completion"
    FAILURE = "failure"
    ERROR_DROP_THRESHOLD_BREACH = "error_drop_threshold_breach"
    IGNORED_RULE_FAILED = "ignored_rule_failed"


@dataclass(frozen=True)
class RunContext:
    """State of a data-quality run at the time a lifecycle event is raised."""
    table_name: str
    environment: str = "default"
    product_id: str | None = None
    run_id: str | None = None
    # Computed by the rule engine; never derived here
    observed_error_drop_percent: float | None = None
    input_count: int | None = None
    error_count: int | None = None
    output_count: int | None = None
    error: str | None = None
    ignored_rules: tuple[str, ...] = ()


@dataclass(frozen=True)
class NotificationMessage:
    """A notification ready to hand over to a dispatcher."""
    event: LifecycleEvent
    title: str
    table_name: str
    environment: str
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)
    observed_error_drop_percent: float | None = None
    error_drop_threshold_percent: float | None = None

    def fields(self) -> dict[str, Any]:
        """Return every field of the message as an ordered mapping for display."""
        result: dict[str, Any] = {
            "table_name": self.table_name,
            "environment": self.environment,
            "event": self.event.value,
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
        }
        if self.observed_error_drop_percent is not None:
            result["observed_error_drop_percent"] = self.observed_error_drop_percent
        if self.error_drop_threshold_percent is not None:
            result["error_drop_threshold_percent"] = self.error_drop_threshold_percent
        result.update(self.details)
        return result

    def to_text(self) -> str:
        """Render the message as plain text."""
        lines = [self.title, ""]
        for key, value in self.fields().items():
            if isinstance(value, (list, tuple)):
                value = ", ".join(str(v) for v in value)
            lines.append(f"{key}: {value}")
        return "\n".join(lines)


class Dispatcher(ABC):
    """
    Base class for all dispatchers.

    Dispatchers deliver notification messages to an external destination.
    """

    def __init__(self, config: dict[str, Any]):
        """
        Initialize the dispatcher with configuration.

        Args:
            config: Type-specific configuration dictionary
        """
        self.config = config

    @abstractmethod
    def send(self, webhook_url: str, message: NotificationMessage) -> None:
        """
        Deliver a notification message.

        Args:
            webhook_url: Destination webhook URL
            message: The message to deliver

        Raises:
            DispatchError: If the message could not be delivered
        """
        raise NotImplementedError
