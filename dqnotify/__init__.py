"""
dqnotify - Notification triggers for data-quality pipeline runs.

This package validates the ``se_notifications_*`` options of a data-quality
run, decides which lifecycle events should produce a notification, and
delivers those notifications to Slack webhooks without ever failing the run.
"""

__version__ = "0.1.0"
