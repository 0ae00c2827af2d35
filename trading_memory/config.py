"""Memory subsystem configuration.

Configuration dataclasses for the trading memory, loaded from environment
variables (a local .env file is honoured) or from the nested mapping used in
strategy YAML files:

    memory:
      enabled: true
      file_path: memory-bank/memories.md
      max_results: 5
      periodic:
        enabled: true
        interval: 24h
"""

import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, List, Mapping, Optional, Union

from dotenv import load_dotenv

from .exceptions import InvalidConfigValueError
from .memory.triggers import MemoryTrigger, PeriodicTrigger, TradeCompleteTrigger

# Load .env file if it exists (for local development)
load_dotenv()

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}
_TRUE_VALUES = ("true", "1", "yes")


def parse_duration(value: Union[str, int, float, timedelta]) -> timedelta:
    """Parse a duration such as "24h", "1h30m", "90s", "2d" or plain seconds.

    Args:
        value: Duration string, number of seconds, or timedelta

    Returns:
        Parsed timedelta

    Raises:
        InvalidConfigValueError: Value is not a recognizable duration

    Example:
        >>> parse_duration("1h30m")
        datetime.timedelta(seconds=5400)
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise InvalidConfigValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    text = str(value).strip().lower()
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return timedelta(seconds=float(text))

    parts = _DURATION_PART.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        raise InvalidConfigValueError(
            f"invalid duration: {value!r} (expected e.g. '24h', '1h30m', '90s')"
        )

    total = timedelta(0)
    for number, unit in parts:
        total += _DURATION_UNITS[unit] * float(number)
    return total


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _TRUE_VALUES


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in _TRUE_VALUES
    return bool(value)


@dataclass
class PeriodicConfig:
    """Periodic reflection settings."""

    enabled: bool = False
    interval: timedelta = timedelta(hours=24)


@dataclass
class MemoryConfig:
    """Trading memory configuration.

    Example:
        >>> config = MemoryConfig.from_env()
        >>> config.validate()
        >>> store = MemoryStore(config.file_path)
    """

    enabled: bool = True
    file_path: str = "memory-bank/memories.md"
    max_results: int = 5
    periodic: PeriodicConfig = field(default_factory=PeriodicConfig)

    @classmethod
    def from_env(cls) -> "MemoryConfig":
        """Load memory configuration from environment variables.

        Reads MEMORY_ENABLED, MEMORY_FILE_PATH, MEMORY_MAX_RESULTS,
        MEMORY_PERIODIC_ENABLED and MEMORY_PERIODIC_INTERVAL.

        Raises:
            InvalidConfigValueError: A value cannot be parsed
        """
        max_results_str = os.getenv("MEMORY_MAX_RESULTS", "5")
        try:
            max_results = int(max_results_str)
        except ValueError as e:
            raise InvalidConfigValueError(f"MEMORY_MAX_RESULTS must be an integer, got {max_results_str!r}") from e

        return cls(
            enabled=_env_bool("MEMORY_ENABLED", "true"),
            file_path=os.getenv("MEMORY_FILE_PATH", "memory-bank/memories.md"),
            max_results=max_results,
            periodic=PeriodicConfig(
                enabled=_env_bool("MEMORY_PERIODIC_ENABLED", "false"),
                interval=parse_duration(os.getenv("MEMORY_PERIODIC_INTERVAL", "24h")),
            ),
        )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "MemoryConfig":
        """Build configuration from a nested mapping (e.g. parsed YAML).

        Missing keys keep their defaults.
        """
        data = data or {}
        periodic_data = data.get("periodic") or {}
        defaults = cls()

        try:
            max_results = int(data.get("max_results", defaults.max_results))
        except (TypeError, ValueError) as e:
            raise InvalidConfigValueError(f"max_results must be an integer, got {data.get('max_results')!r}") from e

        return cls(
            enabled=_as_bool(data.get("enabled", defaults.enabled)),
            file_path=str(data.get("file_path", defaults.file_path)),
            max_results=max_results,
            periodic=PeriodicConfig(
                enabled=_as_bool(periodic_data.get("enabled", defaults.periodic.enabled)),
                interval=parse_duration(periodic_data.get("interval", defaults.periodic.interval)),
            ),
        )

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            InvalidConfigValueError: A value is out of range
        """
        if not self.file_path:
            raise InvalidConfigValueError("file_path must not be empty")

        if self.max_results < 0:
            raise InvalidConfigValueError("max_results must be zero (no limit) or positive")

        if self.periodic.enabled and self.periodic.interval <= timedelta(0):
            raise InvalidConfigValueError("periodic interval must be positive")

    def build_triggers(self) -> List[MemoryTrigger]:
        """Triggers implied by this configuration.

        Returns:
            Trade-complete trigger, plus a periodic trigger when enabled.
            Empty when memory is disabled.
        """
        if not self.enabled:
            return []

        triggers: List[MemoryTrigger] = [TradeCompleteTrigger()]
        if self.periodic.enabled:
            triggers.append(PeriodicTrigger(self.periodic.interval))
        return triggers
