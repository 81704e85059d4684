"""Event-log settings and the display-text strategies for log lines.

A raw environment log line is shortened for the dashboard by one of a
closed set of strategies, chosen by ``display_algorithm``:

    regex     first capture group of ``display_regex``
    truncate  first ``fallback_max_length`` characters
    custom    a ``module:function`` callable taking the message

Whatever the strategy does, ``extract_event_action`` never raises: a
strategy that fails or yields nothing falls back to truncation.
"""

from __future__ import annotations

import importlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Pattern, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from terminus.core.railway.errors import ConfigError

logger = logging.getLogger("terminus.event_logs")

DISPLAY_ALGORITHMS = ("regex", "truncate", "custom")

DEFAULT_CUSTOM_FUNCTION = "terminus.core.event_logs:text_after_colon"


class EventLogsConfig(BaseModel):
    """How event logs are fetched and displayed.

    Keys may be written in snake_case or in the camelCase of the aliases.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    max_log_entries: int = Field(8, alias="maxLogEntries", ge=0)
    log_filter: str = Field("<EVENT>", alias="logFilter")
    display_algorithm: str = Field("regex", alias="displayAlgorithm")
    display_regex: str = Field(r"\[([^\]]+)\]", alias="displayRegex")
    custom_function: str = Field(DEFAULT_CUSTOM_FUNCTION, alias="customFunction")
    fallback_max_length: int = Field(30, alias="fallbackMaxLength", ge=1)

    @field_validator("display_regex")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid display_regex {value!r}: {e}")
        return value

    @field_validator("log_filter", mode="before")
    @classmethod
    def _none_is_unfiltered(cls, value):
        return "" if value is None else value


def load_event_logs_config(path: Optional[Union[str, Path]] = None) -> EventLogsConfig:
    """Load an ``EventLogsConfig`` from a YAML file, or the defaults if no path.

    Raises:
        ConfigError: file missing, not a YAML mapping, or invalid values
    """
    if not path:
        return EventLogsConfig()

    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"Event logs config file not found: {p}")
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {p}: {e}")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Event logs config must contain a YAML object, got {type(data).__name__}"
        )
    try:
        return EventLogsConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid event logs config in {p}: {e}")


# ── Strategies ───────────────────────────────────────────────────


def truncate(message: str, max_length: int) -> str:
    """First ``max_length`` characters plus ``...``; short messages unchanged."""
    if len(message) <= max_length:
        return message
    return message[:max_length] + "..."


def text_after_colon(message: str) -> str:
    """Everything after the first colon, stripped; empty when there is none."""
    head, sep, tail = message.partition(":")
    if not sep:
        return ""
    return tail.strip()


@dataclass(frozen=True)
class RegexStrategy:
    pattern: Pattern[str]

    def apply(self, message: str) -> Optional[str]:
        match = self.pattern.search(message)
        if match is None or not match.groups():
            return None
        return match.group(1) or None


@dataclass(frozen=True)
class TruncateStrategy:
    max_length: int

    def apply(self, message: str) -> Optional[str]:
        return truncate(message, self.max_length)


@dataclass(frozen=True)
class CustomStrategy:
    """Delegates to a callable, or to a ``"module:attribute"`` path of one.

    The path is resolved on each call so that an unimportable target fails
    inside ``extract_event_action`` rather than when the config is loaded.
    """

    function: Union[str, Callable[[str], str]]

    def resolve(self) -> Callable[[str], str]:
        if callable(self.function):
            return self.function
        module_name, _, attr = self.function.partition(":")
        if not module_name or not attr:
            raise ValueError(
                f"custom function must look like 'module:function', got {self.function!r}"
            )
        fn = getattr(importlib.import_module(module_name), attr)
        if not callable(fn):
            raise TypeError(f"{self.function} is not callable")
        return fn

    def apply(self, message: str) -> Optional[str]:
        result = self.resolve()(message)
        if result is None:
            return None
        return str(result) or None


DisplayStrategy = Union[RegexStrategy, TruncateStrategy, CustomStrategy]


def build_strategy(config: Optional[EventLogsConfig] = None) -> DisplayStrategy:
    """Select the strategy named by ``config.display_algorithm``.

    An unrecognized name is logged and treated as ``regex``.
    """
    config = config or EventLogsConfig()
    name = (config.display_algorithm or "").strip().lower()
    if name == "truncate":
        return TruncateStrategy(config.fallback_max_length)
    if name == "custom":
        return CustomStrategy(config.custom_function)
    if name != "regex":
        logger.warning(
            "Unknown display algorithm %r, falling back to regex", config.display_algorithm
        )
    return RegexStrategy(re.compile(config.display_regex))


def extract_event_action(
    message: Optional[str],
    config: Optional[EventLogsConfig] = None,
    strategy: Optional[DisplayStrategy] = None,
) -> str:
    """Short display text for one log line. Never raises."""
    config = config or EventLogsConfig()
    text = message if isinstance(message, str) else ("" if message is None else str(message))
    try:
        chosen = strategy if strategy is not None else build_strategy(config)
        result = chosen.apply(text)
    except Exception as e:
        logger.warning("Event display strategy failed, truncating instead: %s", e)
        result = None
    if result:
        return result
    return truncate(text, config.fallback_max_length)
