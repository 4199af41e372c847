"""
Pytest configuration and fixtures for dqnotify tests.
"""

import logging
from collections.abc import Iterator
from typing import Any

import pytest

from dqnotify.core import RunContext

WEBHOOK_URL = "https://hooks.slack.com/services/T000/B000/XXXX"


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Undo setup_logging() calls so log records keep reaching caplog."""
    yield
    package_logger = logging.getLogger("dqnotify")
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def slack_options() -> dict[str, Any]:
    """Options with Slack enabled and every trigger switched off."""
    return {
        "se_notifications_enable_slack": True,
        "se_notifications_slack_webhook_url": WEBHOOK_URL,
    }


@pytest.fixture
def context() -> RunContext:
    """A run context for a single table."""
    return RunContext(
        table_name="sales.orders",
        environment="prod",
        product_id="sales",
        run_id="run-42",
    )
