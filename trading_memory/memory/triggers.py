"""Reflection triggers.

A trigger decides *when* the agent should write a new memory and *what* prompt
to ask the model with. New kinds of trigger subclass MemoryTrigger; nothing
dispatches on concrete types.

Every prompt asks for the same answer shape, which reflection.parse_reflection
understands:

    Title: <one line>
    Content:
    <paragraphs>
    Tags: <tag>, <tag>, <tag>
    Importance: <1-10>
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from ..exceptions import EmptyPromptError, InvalidConfigValueError
from .types import ClosedPosition, TriggerType


TRADE_COMPLETE_PROMPT = """Reflect on the trade that was just completed and distill the experience and lessons from it.
Consider the following:
1. Was the trading decision correct? Why or why not?
2. Did the execution go smoothly? What could be improved?
3. How did market conditions affect this trade?
4. What is the most important lesson from this trade?
5. How should you respond the next time a similar situation occurs?

Answer in exactly this format:

Title: [a short title summarizing the lesson]

Content:
[detailed reflection and lessons, 2-3 paragraphs]

Tags: [3-5 relevant tags, comma separated]

Importance: [a number from 1 to 10 rating how important this lesson is]"""


PERIODIC_PROMPT = """Summarize and reflect on your trading activity over the past {interval}.
Consider the following:
1. What was the market trend during this period?
2. How did your trading strategy perform?
3. Which trades succeeded, and why?
4. Which trades failed, and why?
5. What did you learn from trading during this period?
6. What adjustments does your trading strategy need?

Answer in exactly this format:

Title: [a short title for this period summary]

Content:
[detailed summary and reflection, 3-5 paragraphs]

Tags: [3-5 relevant tags, comma separated]

Importance: [a number from 1 to 10 rating how important this summary is]"""


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def format_interval(interval: timedelta) -> str:
    """Human-readable interval with at most two units.

    Example:
        >>> format_interval(timedelta(days=1))
        '1 day'
        >>> format_interval(timedelta(hours=3, minutes=20))
        '3 hours 20 minutes'
    """
    total_minutes = int(interval.total_seconds() // 60)
    days, remainder = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(remainder, 60)

    if days > 0:
        if hours > 0:
            return f"{_plural(days, 'day')} {_plural(hours, 'hour')}"
        return _plural(days, "day")
    if hours > 0:
        if minutes > 0:
            return f"{_plural(hours, 'hour')} {_plural(minutes, 'minute')}"
        return _plural(hours, "hour")
    return _plural(minutes, "minute")


class MemoryTrigger(ABC):
    """Base class for reflection triggers."""

    @property
    @abstractmethod
    def trigger_type(self) -> TriggerType:
        """Kind of trigger; its value is used as the memory source."""
        ...

    @abstractmethod
    def should_trigger(self, data: Any = None) -> bool:
        """Decide whether a reflection should be generated now."""
        ...

    @abstractmethod
    def get_reflection_prompt(self, data: Any = None) -> str:
        """Prompt asking the model for a structured reflection."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.trigger_type.value})"


class TradeCompleteTrigger(MemoryTrigger):
    """Fires after every completed trade."""

    @property
    def trigger_type(self) -> TriggerType:
        return TriggerType.TRADE_COMPLETE

    def should_trigger(self, data: Any = None) -> bool:
        return True

    def get_reflection_prompt(self, data: Any = None) -> str:
        """Fixed reflection template, followed by trade details when given.

        Args:
            data: Optional ClosedPosition or mapping describing the trade
        """
        details = self._format_trade_details(data)
        if not details:
            return TRADE_COMPLETE_PROMPT
        return f"{TRADE_COMPLETE_PROMPT}\n\nTrade details:\n{details}"

    @staticmethod
    def _format_trade_details(data: Any) -> str:
        if isinstance(data, ClosedPosition):
            lines = [
                f"- Symbol: {data.symbol}",
                f"- Strategy: {data.strategy_id}",
                f"- Entry price: {data.entry_price}",
                f"- Exit price: {data.exit_price}",
                f"- Quantity: {data.quantity}",
                f"- Profit and loss: {data.profit_and_loss}",
            ]
            if data.pnl_pct is not None:
                lines.append(f"- Return: {data.pnl_pct:+.2f}%")
            lines.append(f"- Close reason: {data.close_reason}")
            lines.append(f"- Closed at: {data.timestamp:%Y-%m-%d %H:%M:%S}")
            for key, value in data.market_data.items():
                lines.append(f"- {key}: {value}")
            return "\n".join(lines)

        if isinstance(data, Mapping):
            return "\n".join(f"- {key}: {value}" for key, value in data.items())

        return ""


class PeriodicTrigger(MemoryTrigger):
    """Fires once per interval of wall-clock time.

    The first evaluation fires. Each evaluation that fires resets the window,
    whether or not the caller goes on to create a reflection. Instances are
    not thread-safe; give each one a single owner or guard it externally.

    Example:
        >>> trigger = PeriodicTrigger(timedelta(hours=24))
        >>> trigger.should_trigger()
        True
        >>> trigger.should_trigger()
        False
    """

    def __init__(self, interval: timedelta, clock: Optional[Callable[[], datetime]] = None):
        """Initialize periodic trigger.

        Args:
            interval: Minimum time between fires
            clock: Source of "now" (default: datetime.now)

        Raises:
            InvalidConfigValueError: interval is not positive
        """
        if interval <= timedelta(0):
            raise InvalidConfigValueError(f"periodic trigger interval must be positive, got {interval}")

        self.interval = interval
        self._clock = clock or datetime.now
        self._last_fired: Optional[datetime] = None

    @property
    def trigger_type(self) -> TriggerType:
        return TriggerType.PERIODIC

    @property
    def last_fired(self) -> Optional[datetime]:
        return self._last_fired

    def should_trigger(self, data: Any = None) -> bool:
        now = self._clock()
        if self._last_fired is None or now - self._last_fired >= self.interval:
            self._last_fired = now
            return True
        return False

    def get_reflection_prompt(self, data: Any = None) -> str:
        return PERIODIC_PROMPT.format(interval=format_interval(self.interval))


class ManualTrigger(MemoryTrigger):
    """Fires on demand with a caller-supplied prompt."""

    def __init__(self, prompt: str):
        self.prompt = prompt

    @property
    def trigger_type(self) -> TriggerType:
        return TriggerType.MANUAL

    def should_trigger(self, data: Any = None) -> bool:
        return True

    def get_reflection_prompt(self, data: Any = None) -> str:
        """Return the configured prompt verbatim.

        Raises:
            EmptyPromptError: Prompt is empty
        """
        if not self.prompt:
            raise EmptyPromptError("manual trigger prompt is empty")
        return self.prompt
