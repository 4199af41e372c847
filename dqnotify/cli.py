"""
dqnotify CLI - Command line interface for checking notification options.

Provides commands for:
- Option validation
- Trigger decisions for a lifecycle event
- Sending a test notification
"""

import argparse
import sys
from pathlib import Path

from dqnotify.config import NotificationConfig, load_config
from dqnotify.core import LifecycleEvent, RunContext
from dqnotify.logging_config import get_logger, setup_logging
from dqnotify.messages import build_message
from dqnotify.registry import create_dispatcher
from dqnotify.triggers import should_notify

logger = get_logger(__name__)

EVENT_CHOICES = [event.value for event in LifecycleEvent]


def _load(args: argparse.Namespace) -> NotificationConfig | None:
    """Load options, printing the reason on failure."""
    config_path = Path(args.config)

    if not config_path.exists():
        print(f"Error: Config file not found: {config_path}", file=sys.stderr)
        return None

    try:
        return load_config(config_path)
    except Exception as e:
        print(f"✗ Configuration invalid: {e}", file=sys.stderr)
        return None


def _context(args: argparse.Namespace) -> RunContext:
    return RunContext(
        table_name=getattr(args, "table", None) or "(table)",
        environment=getattr(args, "env", None) or "default",
        observed_error_drop_percent=args.observed,
    )


def cmd_config_validate(args: argparse.Namespace) -> int:
    """Validate the options file and print the effective options."""
    config = _load(args)
    if config is None:
        return 1

    print(f"✓ Configuration valid: {args.config}")
    for key, value in config.to_options().items():
        if key == "se_notifications_slack_webhook_url" and value:
            value = f"{value[:24]}..."
        print(f"  {key}: {value}")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Print whether an event would fire a notification."""
    config = _load(args)
    if config is None:
        return 1

    event = LifecycleEvent(args.event)
    if should_notify(config, event, _context(args)):
        print(f"✓ {event.value}: notification fires")
    else:
        print(f"✗ {event.value}: no notification")
    return 0


def cmd_notify(args: argparse.Namespace) -> int:
    """Send a notification for an event, honouring the trigger decision."""
    config = _load(args)
    if config is None:
        return 1

    event = LifecycleEvent(args.event)
    context = _context(args)

    if not should_notify(config, event, context):
        print(f"Notification for '{event.value}' is not enabled, nothing sent")
        return 0

    dispatcher = create_dispatcher("console" if args.dry_run else "slack")
    message = build_message(event, context, config)

    try:
        dispatcher.send(config.slack_webhook_url or "", message)
    except Exception as e:
        print(f"✗ Error sending notification: {e}", file=sys.stderr)
        logger.error("Error sending %s notification", event.value, exc_info=True)
        return 1

    print(f"✓ Sent {event.value} notification for '{context.table_name}'")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="dqnotify",
        description="dqnotify - Data-quality run notification triggers"
    )
    parser.add_argument(
        "-c", "--config",
        default="notifications.yaml",
        help="Path to options file (default: notifications.yaml)"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: WARNING)"
    )
    parser.add_argument(
        "--log-file",
        help="Optional rotating log file (logs to console if not specified)"
    )
    parser.add_argument(
        "--log-max-bytes",
        type=int,
        default=10 * 1024 * 1024,
        help="Rotate the log file after this many bytes (default: 10MB)"
    )
    parser.add_argument(
        "--log-backups",
        type=int,
        default=5,
        help="Number of rotated log files to keep (default: 5)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    config_parser = subparsers.add_parser("config", help="Option management")
    config_subparsers = config_parser.add_subparsers(dest="subcommand")
    config_subparsers.add_parser("validate", help="Validate options file")

    check_parser = subparsers.add_parser("check", help="Show whether an event fires")
    check_parser.add_argument("event", choices=EVENT_CHOICES, help="Lifecycle event")
    check_parser.add_argument(
        "--observed",
        type=float,
        help="Observed error drop percentage (for threshold breaches)"
    )

    notify_parser = subparsers.add_parser("notify", help="Send a notification")
    notify_parser.add_argument("event", choices=EVENT_CHOICES, help="Lifecycle event")
    notify_parser.add_argument("-t", "--table", required=True, help="Table name")
    notify_parser.add_argument("-e", "--env", default="default", help="Environment name")
    notify_parser.add_argument(
        "--observed",
        type=float,
        help="Observed error drop percentage (for threshold breaches)"
    )
    notify_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the notification instead of sending it"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        max_bytes=args.log_max_bytes,
        backup_count=args.log_backups
    )

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "config":
        if args.subcommand == "validate":
            return cmd_config_validate(args)
        parser.print_help()
        return 0

    if args.command == "check":
        return cmd_check(args)

    if args.command == "notify":
        return cmd_notify(args)

    parser.print_help()
    return 0


if __name__ == '__main__':
    sys.exit(main())
