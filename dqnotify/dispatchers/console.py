"""
Console dispatcher for dqnotify.
"""

from dqnotify.core import Dispatcher, NotificationMessage
from dqnotify.logging_config import get_logger
from dqnotify.registry import register_dispatcher

logger = get_logger(__name__)


@register_dispatcher("console")
class ConsoleDispatcher(Dispatcher):
    """
    Prints notifications to stdout instead of delivering them.

    Useful for dry runs and debugging. The webhook URL is only shown.

    Config:
        (none required)
    """

    def send(self, webhook_url: str, message: NotificationMessage) -> None:
        """Print the notification to console."""
        logger.info(
            "Console notification for '%s' (%s)",
            message.table_name,
            message.event.value
        )

        print(f"\n{'=' * 60}")
        print(f"Webhook: {webhook_url or '(none)'}")
        print(message.to_text())
        print(f"{'=' * 60}\n")


# Export for dynamic importing
__all__ = ["ConsoleDispatcher"]
