"""
Run notifier that wires trigger decisions, message building and dispatch.

Delivery runs on a background worker so the caller only waits a bounded
time. Delivery errors are logged and never reach the data-quality run.
"""

from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from dataclasses import replace
from typing import Any

from dqnotify.config import NotificationConfig
from dqnotify.core import Dispatcher, LifecycleEvent, NotificationMessage, RunContext
from dqnotify.errors import DispatchError
from dqnotify.logging_config import get_logger
from dqnotify.messages import build_message
from dqnotify.registry import create_dispatcher
from dqnotify.triggers import should_notify

logger = get_logger(__name__)


class RunHandle:
    """Mutable view of the run context while a tracked run is in progress."""

    def __init__(self, context: RunContext) -> None:
        self.context = context

    def update(self, **changes: Any) -> RunContext:
        """Replace fields of the current context and return the new context."""
        self.context = replace(self.context, **changes)
        return self.context


class RunNotifier:
    """Sends lifecycle notifications for a single data-quality run."""

    def __init__(
        self,
        config: NotificationConfig,
        dispatcher: Dispatcher | None = None,
        dispatch_timeout: float = 30.0
    ) -> None:
        """
        Initialize the notifier.

        Args:
            config: Validated notification options
            dispatcher: Dispatcher to deliver with (default: Slack webhook)
            dispatch_timeout: Seconds a caller waits for a single dispatch
        """
        self.config = config
        self.dispatcher = dispatcher if dispatcher is not None else create_dispatcher("slack")
        self.dispatch_timeout = dispatch_timeout
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dqnotify")

    def __enter__(self) -> "RunNotifier":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        """Wait for pending dispatches and release the worker thread."""
        self._executor.shutdown(wait=True)

    def _deliver(self, message: NotificationMessage) -> None:
        self.dispatcher.send(self.config.slack_webhook_url or "", message)

    def _dispatch(self, message: NotificationMessage) -> bool:
        """Dispatch a message, waiting at most dispatch_timeout seconds."""
        table_name = message.table_name
        event = message.event.value

        try:
            future: Future[None] = self._executor.submit(self._deliver, message)
        except RuntimeError:
            logger.error(
                "Notifier closed, dropping %s notification for '%s'",
                event,
                table_name
            )
            return False

        try:
            future.result(timeout=self.dispatch_timeout)
            return True
        except FutureTimeoutError:
            logger.warning(
                "Timed out after %ss waiting for %s notification for '%s'; "
                "delivery continues in the background",
                self.dispatch_timeout,
                event,
                table_name
            )
        except DispatchError:
            logger.error(
                "Failed to send %s notification for '%s'",
                event,
                table_name,
                exc_info=True
            )
        except Exception:
            logger.error(
                "Error in dispatcher %s for %s notification for '%s'",
                self.dispatcher.__class__.__name__,
                event,
                table_name,
                exc_info=True
            )
        return False

    def notify(self, event: LifecycleEvent, context: RunContext) -> bool:
        """
        Notify about a lifecycle event if the options ask for it.

        Args:
            event: The lifecycle event being raised
            context: State of the run when the event was raised

        Returns:
            True if a notification was delivered, False if it was not
            triggered or delivery failed
        """
        event = LifecycleEvent(event)

        if not should_notify(self.config, event, context):
            logger.debug("No %s notification for '%s'", event.value, context.table_name)
            return False

        message = build_message(event, context, self.config)
        return self._dispatch(message)

    def notify_start(self, context: RunContext) -> bool:
        """Notify that the run started."""
        return self.notify(LifecycleEvent.START, context)

    def notify_completion(self, context: RunContext) -> bool:
        """Notify that the run completed."""
        return self.notify(LifecycleEvent.COMPLETION, context)

    def notify_failure(self, context: RunContext, error: BaseException | str | None = None) -> bool:
        """Notify that the run failed, recording the error on the context."""
        if error is not None:
            context = replace(context, error=str(error) or type(error).__name__)
        return self.notify(LifecycleEvent.FAILURE, context)

    def check_error_drop(self, context: RunContext) -> bool:
        """Notify if the observed error drop reaches the configured threshold."""
        return self.notify(LifecycleEvent.ERROR_DROP_THRESHOLD_BREACH, context)

    def notify_ignored_rule_failures(self, context: RunContext) -> bool:
        """Notify about failed rules whose action is 'ignore', if there are any."""
        if not context.ignored_rules:
            return False
        return self.notify(LifecycleEvent.IGNORED_RULE_FAILED, context)

    @contextmanager
    def track(self, context: RunContext) -> Iterator[RunHandle]:
        """
        Track a run: notify start, then completion or failure.

        Usage:
            with notifier.track(RunContext(table_name="sales.orders")) as run:
                ...
                run.update(observed_error_drop_percent=3.5)
        """
        handle = RunHandle(context)
        self.notify_start(handle.context)

        try:
            yield handle
        except BaseException as e:
            # Aborted runs (interrupts included) still get their failure notification
            self.notify_failure(handle.context, e)
            raise

        self.notify_completion(handle.context)
