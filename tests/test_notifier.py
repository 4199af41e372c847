"""
Tests for the run notifier.
"""

import logging
import threading
from typing import Any

import pytest

from dqnotify.config import NotificationConfig, build
from dqnotify.core import Dispatcher, LifecycleEvent, NotificationMessage, RunContext
from dqnotify.dispatchers import SlackDispatcher
from dqnotify.errors import DispatchError
from dqnotify.notifier import RunNotifier

WEBHOOK_URL = "https://hooks.slack.com/services/T000/B000/XXXX"


class RecordingDispatcher(Dispatcher):
    """Dispatcher that records what it was asked to send."""

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        super().__init__(config or {})
        self.sent: list[tuple[str, NotificationMessage]] = []

    def send(self, webhook_url: str, message: NotificationMessage) -> None:
        self.sent.append((webhook_url, message))

    @property
    def events(self) -> list[LifecycleEvent]:
        return [message.event for _, message in self.sent]


class FailingDispatcher(Dispatcher):
    """Dispatcher that always fails with the configured error."""

    def send(self, webhook_url: str, message: NotificationMessage) -> None:
        raise self.config["error"]


class BlockingDispatcher(Dispatcher):
    """Dispatcher that waits until released."""

    def __init__(self) -> None:
        super().__init__({})
        self.release = threading.Event()
        self.delivered = threading.Event()

    def send(self, webhook_url: str, message: NotificationMessage) -> None:
        self.release.wait(5)
        self.delivered.set()


@pytest.fixture
def config() -> NotificationConfig:
    """Options with every trigger switched on."""
    return build({
        "se_notifications_enable_slack": True,
        "se_notifications_slack_webhook_url": WEBHOOK_URL,
        "se_notifications_on_start": True,
        "se_notifications_on_completion": True,
        "se_notifications_on_fail": True,
        "se_notifications_on_error_drop_exceeds_threshold_breach": True,
        "se_notifications_on_rules_action_if_failed_set_ignore": True,
        "se_notifications_on_error_drop_threshold": 15,
    })


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


class TestNotify:
    """Tests for RunNotifier.notify."""

    def test_notify_sends_message(
        self,
        config: NotificationConfig,
        dispatcher: RecordingDispatcher,
        context: RunContext
    ) -> None:
        """Test that a triggered event is dispatched to the webhook URL."""
        with RunNotifier(config, dispatcher) as notifier:
            assert notifier.notify(LifecycleEvent.START, context) is True

        webhook_url, message = dispatcher.sent[0]
        assert webhook_url == WEBHOOK_URL
        assert message.event is LifecycleEvent.START
        assert message.table_name == "sales.orders"

    def test_notify_not_triggered(
        self,
        dispatcher: RecordingDispatcher,
        context: RunContext
    ) -> None:
        """Test that nothing is dispatched when Slack is disabled."""
        config = build({"se_notifications_on_start": True})

        with RunNotifier(config, dispatcher) as notifier:
            assert notifier.notify(LifecycleEvent.START, context) is False

        assert dispatcher.sent == []

    def test_dispatch_error_is_logged_not_raised(
        self,
        config: NotificationConfig,
        context: RunContext,
        caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that delivery failures never reach the caller."""
        dispatcher = FailingDispatcher({"error": DispatchError("HTTP 500", status_code=500)})

        with caplog.at_level(logging.ERROR, logger="dqnotify"):
            with RunNotifier(config, dispatcher) as notifier:
                assert notifier.notify(LifecycleEvent.FAILURE, context) is False

        assert "Failed to send failure notification for 'sales.orders'" in caplog.text

    def test_unexpected_dispatcher_error_is_swallowed(
        self,
        config: NotificationConfig,
        context: RunContext,
        caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that bugs in a dispatcher do not fail the run either."""
        dispatcher = FailingDispatcher({"error": KeyError("boom")})

        with caplog.at_level(logging.ERROR, logger="dqnotify"):
            with RunNotifier(config, dispatcher) as notifier:
                assert notifier.notify(LifecycleEvent.COMPLETION, context) is False

        assert "FailingDispatcher" in caplog.text

    def test_slow_dispatch_times_out(
        self,
        config: NotificationConfig,
        context: RunContext
    ) -> None:
        """Test that the caller waits no longer than dispatch_timeout."""
        dispatcher = BlockingDispatcher()
        notifier = RunNotifier(config, dispatcher, dispatch_timeout=0.05)

        assert notifier.notify(LifecycleEvent.START, context) is False
        assert not dispatcher.delivered.is_set()

        # Pending delivery still completes before close() returns
        dispatcher.release.set()
        notifier.close()
        assert dispatcher.delivered.is_set()

    def test_notify_after_close(
        self,
        config: NotificationConfig,
        dispatcher: RecordingDispatcher,
        context: RunContext
    ) -> None:
        """Test that a closed notifier drops notifications without raising."""
        notifier = RunNotifier(config, dispatcher)
        notifier.close()

        assert notifier.notify(LifecycleEvent.START, context) is False
        assert dispatcher.sent == []

    def test_default_dispatcher_is_slack(self, config: NotificationConfig) -> None:
        """Test that Slack is used when no dispatcher is given."""
        with RunNotifier(config) as notifier:
            assert isinstance(notifier.dispatcher, SlackDispatcher)


class TestConvenienceMethods:
    """Tests for the per-event helpers."""

    def test_notify_failure_records_error(
        self,
        config: NotificationConfig,
        dispatcher: RecordingDispatcher,
        context: RunContext
    ) -> None:
        """Test that the failure reason ends up in the message."""
        with RunNotifier(config, dispatcher) as notifier:
            notifier.notify_failure(context, RuntimeError("table not found"))

        _, message = dispatcher.sent[0]
        assert message.details["error"] == "table not found"

    def test_check_error_drop(
        self,
        config: NotificationConfig,
        dispatcher: RecordingDispatcher
    ) -> None:
        """Test breach notifications against the configured threshold."""
        with RunNotifier(config, dispatcher) as notifier:
            below = RunContext(table_name="t", observed_error_drop_percent=14.9)
            at = RunContext(table_name="t", observed_error_drop_percent=15)

            assert notifier.check_error_drop(below) is False
            assert notifier.check_error_drop(at) is True

        _, message = dispatcher.sent[0]
        assert message.observed_error_drop_percent == 15
        assert message.error_drop_threshold_percent == 15.0

    def test_ignored_rule_failures_require_rules(
        self,
        config: NotificationConfig,
        dispatcher: RecordingDispatcher,
        context: RunContext
    ) -> None:
        """Test that ignored-rule notifications need at least one failed rule."""
        with RunNotifier(config, dispatcher) as notifier:
            assert notifier.notify_ignored_rule_failures(context) is False

            failed = RunContext(table_name="t", ignored_rules=("col1_not_null",))
            assert notifier.notify_ignored_rule_failures(failed) is True

        assert dispatcher.events == [LifecycleEvent.IGNORED_RULE_FAILED]


class TestTrack:
    """Tests for RunNotifier.track."""

    def test_successful_run(
        self,
        config: NotificationConfig,
        dispatcher: RecordingDispatcher,
        context: RunContext
    ) -> None:
        """Test that a clean run notifies start then completion."""
        with RunNotifier(config, dispatcher) as notifier:
            with notifier.track(context) as run:
                run.update(output_count=180)

        assert dispatcher.events == [LifecycleEvent.START, LifecycleEvent.COMPLETION]
        _, completion = dispatcher.sent[1]
        assert completion.details["output_count"] == 180

    def test_failed_run(
        self,
        config: NotificationConfig,
        dispatcher: RecordingDispatcher,
        context: RunContext
    ) -> None:
        """Test that a failing run notifies failure and re-raises."""
        with RunNotifier(config, dispatcher) as notifier:
            with pytest.raises(ValueError, match="bad column"):
                with notifier.track(context):
                    raise ValueError("bad column")

        assert dispatcher.events == [LifecycleEvent.START, LifecycleEvent.FAILURE]
        _, failure = dispatcher.sent[1]
        assert failure.details["error"] == "bad column"

    def test_interrupted_run(
        self,
        config: NotificationConfig,
        dispatcher: RecordingDispatcher,
        context: RunContext
    ) -> None:
        """Test that an aborted run still notifies failure."""
        with RunNotifier(config, dispatcher) as notifier:
            with pytest.raises(KeyboardInterrupt):
                with notifier.track(context):
                    raise KeyboardInterrupt()

        assert dispatcher.events == [LifecycleEvent.START, LifecycleEvent.FAILURE]
        _, failure = dispatcher.sent[1]
        assert failure.details["error"] == "KeyboardInterrupt"

    def test_dispatch_failure_does_not_fail_run(
        self,
        config: NotificationConfig,
        context: RunContext
    ) -> None:
        """Test that a broken webhook leaves the run untouched."""
        dispatcher = FailingDispatcher({"error": DispatchError("down")})
        completed = False

        with RunNotifier(config, dispatcher) as notifier:
            with notifier.track(context):
                completed = True

        assert completed is True
