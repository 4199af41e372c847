"""
Trigger decisions: should a lifecycle event produce a notification.
"""

from collections.abc import Callable

from dqnotify.config import NotificationConfig
from dqnotify.core import LifecycleEvent, RunContext


def _error_drop_breached(config: NotificationConfig, context: RunContext) -> bool:
    """Breach is inclusive: the threshold is a ceiling that must not be reached."""
    if not config.notify_on_error_drop_threshold_breach:
        return False
    observed = context.observed_error_drop_percent
    threshold = config.error_drop_threshold_percent
    if observed is None or threshold is None:
        return False
    return observed >= threshold


_DECISIONS: dict[LifecycleEvent, Callable[[NotificationConfig, RunContext], bool]] = {
    LifecycleEvent.START: lambda c, _: c.notify_on_start,
    LifecycleEvent.COMPLETION: lambda c, _: c.notify_on_completion,
    LifecycleEvent.FAILURE: lambda c, _: c.notify_on_fail,
    LifecycleEvent.ERROR_DROP_THRESHOLD_BREACH: _error_drop_breached,
    LifecycleEvent.IGNORED_RULE_FAILED: lambda c, _: c.notify_on_rules_action_ignore_failed,
}


def should_notify(
    config: NotificationConfig,
    event: LifecycleEvent,
    context: RunContext
) -> bool:
    """
    Decide whether a lifecycle event fires a notification.

    Pure function of its inputs, safe to call from several threads at once.

    Args:
        config: Validated notification options
        event: The lifecycle event being raised
        context: State of the run when the event was raised

    Returns:
        True if a notification should be dispatched
    """
    # Master toggle dominates every per-event flag
    if not config.slack_enabled:
        return False

    event = LifecycleEvent(event)
    return bool(_DECISIONS[event](config, context))
