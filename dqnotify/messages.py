"""
Message building for lifecycle notifications.
"""

from datetime import datetime, timezone
from typing import Any

from dqnotify.config import NotificationConfig
from dqnotify.core import LifecycleEvent, NotificationMessage, RunContext

TITLES: dict[LifecycleEvent, str] = {
    LifecycleEvent.START: "Data quality run started",
    LifecycleEvent.COMPLETION: "Data quality run completed",
    LifecycleEvent.FAILURE: "Data quality run failed",
    LifecycleEvent.ERROR_DROP_THRESHOLD_BREACH: "Error drop threshold breached",
    LifecycleEvent.IGNORED_RULE_FAILED: "Rules with action 'ignore' failed",
}


def _details(event: LifecycleEvent, context: RunContext) -> dict[str, Any]:
    details: dict[str, Any] = {}

    if context.product_id:
        details["product_id"] = context.product_id
    if context.run_id:
        details["run_id"] = context.run_id

    for name in ("input_count", "error_count", "output_count"):
        value = getattr(context, name)
        if value is not None:
            details[name] = value

    if event == LifecycleEvent.FAILURE and context.error:
        details["error"] = context.error
    if context.ignored_rules:
        details["ignored_rules"] = list(context.ignored_rules)

    return details


def build_message(
    event: LifecycleEvent,
    context: RunContext,
    config: NotificationConfig,
    timestamp: datetime | None = None
) -> NotificationMessage:
    """
    Build the notification message for a lifecycle event.

    Args:
        event: The lifecycle event being notified
        context: State of the run when the event was raised
        config: Validated notification options (for the configured threshold)
        timestamp: Event time (default: now, in UTC)

    Returns:
        NotificationMessage ready for a dispatcher
    """
    event = LifecycleEvent(event)
    breach = event == LifecycleEvent.ERROR_DROP_THRESHOLD_BREACH

    return NotificationMessage(
        event=event,
        title=f"{TITLES[event]}: {context.table_name}",
        table_name=context.table_name,
        environment=context.environment,
        timestamp=timestamp or datetime.now(timezone.utc),
        details=_details(event, context),
        observed_error_drop_percent=context.observed_error_drop_percent if breach else None,
        error_drop_threshold_percent=config.error_drop_threshold_percent if breach else None,
    )
