"""Core memory data types.

MemoryRecord is the atomic unit of stored trading experience. ClosedPosition
is the context a trade-complete trigger receives when a position is fully
closed by the execution layer.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class TriggerType(str, Enum):
    """Kinds of reflection triggers. The value doubles as a memory source label."""

    TRADE_COMPLETE = "trade_complete"
    PERIODIC = "periodic"
    MANUAL = "manual"


def generate_memory_id() -> str:
    """Generate a new opaque memory identifier."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class MemoryRecord:
    """One persisted unit of distilled trading experience.

    Records are immutable once created. Tags keep insertion order for display
    but are matched case-insensitively.
    """

    title: str
    content: str = ""
    tags: Tuple[str, ...] = ()
    created_at: datetime = field(default_factory=datetime.now)
    source: str = ""
    importance: int = 0
    id: str = field(default_factory=generate_memory_id)

    def __post_init__(self):
        # Accept any iterable of tags from callers, store an immutable tuple
        object.__setattr__(self, "tags", tuple(self.tags or ()))
        if not self.id:
            object.__setattr__(self, "id", generate_memory_id())

    def has_tag(self, tag: str) -> bool:
        """Case-insensitive tag membership."""
        wanted = tag.lower()
        return any(t.lower() == wanted for t in self.tags)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "created_at": self.created_at.strftime(TIMESTAMP_FORMAT),
            "source": self.source,
            "importance": self.importance,
        }


@dataclass
class ClosedPosition:
    """Snapshot of a fully closed position, used as reflection context."""

    symbol: str
    entry_price: float
    exit_price: float
    quantity: float
    profit_and_loss: float
    strategy_id: str = "unknown"
    close_reason: str = "manual"
    timestamp: datetime = field(default_factory=datetime.now)
    market_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def pnl_pct(self) -> Optional[float]:
        """PnL relative to entry notional, None when notional is zero."""
        notional = self.entry_price * abs(self.quantity)
        if notional == 0:
            return None
        return self.profit_and_loss / notional * 100

    def to_dict(self) -> dict:
        """Convert to dictionary for prompts and logging."""
        return {
            "strategy_id": self.strategy_id,
            "symbol": self.symbol,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "quantity": self.quantity,
            "profit_and_loss": self.profit_and_loss,
            "close_reason": self.close_reason,
            "timestamp": self.timestamp.strftime(TIMESTAMP_FORMAT),
            "market_data": self.market_data,
        }
