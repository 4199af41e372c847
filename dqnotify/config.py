"""
Notification option loading and validation for dqnotify.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)

from dqnotify.errors import ConfigurationError

MISSING_WEBHOOK_URL = "missing webhook url"
INVALID_THRESHOLD = "invalid threshold"


class NotificationConfig(BaseModel):
    """
    Validated notification options of a single data-quality run.

    Options are supplied under their ``se_notifications_*`` keys; the field
    names are accepted as well. Unrecognized keys are ignored.
    """
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    slack_enabled: bool = Field(default=False, alias="se_notifications_enable_slack")
    slack_webhook_url: str | None = Field(
        default=None, alias="se_notifications_slack_webhook_url"
    )
    notify_on_start: bool = Field(default=False, alias="se_notifications_on_start")
    notify_on_completion: bool = Field(default=False, alias="se_notifications_on_completion")
    notify_on_fail: bool = Field(default=False, alias="se_notifications_on_fail")
    notify_on_error_drop_threshold_breach: bool = Field(
        default=False, alias="se_notifications_on_error_drop_exceeds_threshold_breach"
    )
    notify_on_rules_action_ignore_failed: bool = Field(
        default=False, alias="se_notifications_on_rules_action_if_failed_set_ignore"
    )
    # Must stay after the breach flag: its validator reads the flag
    error_drop_threshold_percent: float | None = Field(
        default=None, alias="se_notifications_on_error_drop_threshold"
    )

    @field_validator("slack_webhook_url", mode="wrap")
    @classmethod
    def _ignore_url_when_slack_disabled(
        cls,
        value: Any,
        handler: ValidatorFunctionWrapHandler,
        info: ValidationInfo,
    ) -> str | None:
        if not info.data.get("slack_enabled"):
            return None
        return handler(value)

    @field_validator("error_drop_threshold_percent", mode="wrap")
    @classmethod
    def _ignore_threshold_when_breach_disabled(
        cls,
        value: Any,
        handler: ValidatorFunctionWrapHandler,
        info: ValidationInfo,
    ) -> float | None:
        try:
            return handler(value)
        except ValidationError:
            if info.data.get("notify_on_error_drop_threshold_breach"):
                raise
            return None

    @model_validator(mode="after")
    def _check_required_options(self) -> "NotificationConfig":
        if self.slack_enabled and not self.slack_webhook_url:
            raise ValueError(MISSING_WEBHOOK_URL)
        if self.notify_on_error_drop_threshold_breach:
            threshold = self.error_drop_threshold_percent
            # NaN fails the range check as well
            if threshold is None or not 0 <= threshold <= 100:
                raise ValueError(INVALID_THRESHOLD)
        return self

    def to_options(self) -> dict[str, Any]:
        """Return the effective options keyed by their option names."""
        return self.model_dump(by_alias=True)


OPTION_KEYS: tuple[str, ...] = tuple(
    str(field.alias) for field in NotificationConfig.model_fields.values()
)

_MODEL_ERROR_KEYS = {
    MISSING_WEBHOOK_URL: "se_notifications_slack_webhook_url",
    INVALID_THRESHOLD: "se_notifications_on_error_drop_threshold",
}


def _to_configuration_error(error: ValidationError) -> ConfigurationError:
    """Convert the first pydantic validation error into a ConfigurationError."""
    first = error.errors(include_url=False)[0]

    if first["loc"]:
        key = str(first["loc"][0])
        return ConfigurationError(f"invalid value for option '{key}': {first['msg']}", key=key)

    cause = first.get("ctx", {}).get("error")
    message = str(cause) if cause is not None else first["msg"]
    return ConfigurationError(message, key=_MODEL_ERROR_KEYS.get(message))


def build(raw_options: Mapping[str, Any]) -> NotificationConfig:
    """
    Validate raw notification options.

    Args:
        raw_options: Mapping of option keys to values

    Returns:
        Immutable NotificationConfig with defaults applied for absent keys

    Raises:
        ConfigurationError: If an option has the wrong type, Slack is enabled
            without a webhook URL, or the breach threshold is missing or
            outside [0, 100]
    """
    if not isinstance(raw_options, Mapping):
        raise ConfigurationError(
            f"notification options must be a mapping, got {type(raw_options).__name__}"
        )

    try:
        return NotificationConfig.model_validate(dict(raw_options))
    except ValidationError as e:
        raise _to_configuration_error(e) from e


def load_config(config_path: str | Path) -> NotificationConfig:
    """
    Load and validate notification options from a YAML file.

    Args:
        config_path: Path to a YAML file holding a flat mapping of options

    Returns:
        Validated NotificationConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigurationError: If the options are invalid
        yaml.YAMLError: If YAML parsing fails
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with path.open('r', encoding='utf-8') as f:
        raw_options = yaml.safe_load(f)

    # An empty file means all defaults
    if raw_options is None:
        raw_options = {}

    return build(raw_options)
