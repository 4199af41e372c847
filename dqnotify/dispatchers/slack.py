"""
Slack webhook dispatcher for dqnotify.
"""

import time
from typing import Any, ClassVar

import requests

from dqnotify.core import Dispatcher, LifecycleEvent, NotificationMessage
from dqnotify.errors import DispatchError
from dqnotify.logging_config import get_logger
from dqnotify.registry import register_dispatcher

logger = get_logger(__name__)

MAX_FIELD_CHARS = 2000
MAX_FIELDS_PER_SECTION = 10


def _header(text: str) -> dict[str, Any]:
    return {
        "type": "header",
        "text": {"type": "plain_text", "text": text[:150], "emoji": True},
    }


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


def _sections(items: dict[str, Any]) -> list[dict[str, Any]]:
    """Section blocks of mrkdwn fields, split to stay within Slack's limits."""
    fields = []
    for key, value in items.items():
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        fields.append({"type": "mrkdwn", "text": _truncate(f"*{key}*\n{value}", MAX_FIELD_CHARS)})

    return [
        {"type": "section", "fields": fields[i:i + MAX_FIELDS_PER_SECTION]}
        for i in range(0, len(fields), MAX_FIELDS_PER_SECTION)
    ]


def _context(text: str) -> dict[str, Any]:
    return {
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": text}],
    }


@register_dispatcher("slack")
class SlackDispatcher(Dispatcher):
    """
    Posts notifications to a Slack incoming webhook.

    Config:
        timeout: Request timeout in seconds (default: 10)
        retries: Extra attempts after a failed post (default: 2)
        backoff_seconds: Delay before the first retry, doubled each time (default: 1.0)
        blocks: Include Block Kit blocks alongside the text (default: True)
        username: Optional bot username override
        channel: Optional channel override
        icon_emoji: Optional icon override
    """

    EVENT_EMOJI: ClassVar[dict[LifecycleEvent, str]] = {
        LifecycleEvent.START: ":arrow_forward:",
        LifecycleEvent.COMPLETION: ":white_check_mark:",
        LifecycleEvent.FAILURE: ":x:",
        LifecycleEvent.ERROR_DROP_THRESHOLD_BREACH: ":warning:",
        LifecycleEvent.IGNORED_RULE_FAILED: ":grey_exclamation:",
    }

    def build_blocks(self, message: NotificationMessage) -> list[dict[str, Any]]:
        """Build Block Kit blocks for a message."""
        emoji = self.EVENT_EMOJI.get(message.event, "")
        fields = message.fields()
        timestamp = fields.pop("timestamp")

        return [
            _header(f"{emoji} {message.title}".strip()),
            *_sections(fields),
            _context(f"{message.environment} | {timestamp}"),
        ]

    def build_payload(self, message: NotificationMessage) -> dict[str, Any]:
        """Build the JSON payload posted to the webhook."""
        payload: dict[str, Any] = {"text": message.to_text()}

        if self.config.get("blocks", True):
            payload["blocks"] = self.build_blocks(message)

        for key in ("username", "channel", "icon_emoji"):
            if self.config.get(key):
                payload[key] = self.config[key]

        return payload

    def send(self, webhook_url: str, message: NotificationMessage) -> None:
        """Post the notification, retrying transient failures."""
        if not webhook_url:
            raise DispatchError("missing webhook url")

        timeout = float(self.config.get("timeout", 10))
        retries = max(int(self.config.get("retries", 2)), 0)
        backoff = float(self.config.get("backoff_seconds", 1.0))
        payload = self.build_payload(message)
        attempts = retries + 1

        error = DispatchError("Slack notification was not attempted")
        for attempt in range(1, attempts + 1):
            if attempt > 1:
                time.sleep(backoff * 2 ** (attempt - 2))

            try:
                response = requests.post(webhook_url, json=payload, timeout=timeout)
                response.raise_for_status()
                logger.info(
                    "Slack notification sent for '%s' (%s)",
                    message.table_name,
                    message.event.value
                )
                return
            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                error = DispatchError(f"Slack webhook returned HTTP {status}", status_code=status)
                # Client errors other than rate limiting will not succeed on retry
                if status is not None and status < 500 and status != 429:
                    break
            except requests.RequestException as e:
                error = DispatchError(f"Slack webhook request failed: {e}")

            logger.warning(
                "Slack notification attempt %s/%s failed for '%s': %s",
                attempt,
                attempts,
                message.table_name,
                error
            )

        raise error


# Export for dynamic importing
__all__ = ["SlackDispatcher"]
