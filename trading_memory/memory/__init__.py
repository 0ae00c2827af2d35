"""Trading experience memory.

This package provides:
- MemoryStore: markdown-file backed store of trading lessons
- RelevanceRetriever: LLM-ranked recall for a market situation
- Reflection triggers: when to write a lesson and which prompt to use
- MemoryReflector: trigger -> model -> stored memory
"""

from .markdown_format import parse_memories, render_memories
from .reflection import MemoryReflector, Reflection, parse_reflection
from .retriever import RelevanceRetriever, format_memories_for_prompt
from .store import MemoryStore
from .triggers import (
    ManualTrigger,
    MemoryTrigger,
    PeriodicTrigger,
    TradeCompleteTrigger,
    format_interval,
)
from .types import ClosedPosition, MemoryRecord, TriggerType

__all__ = [
    "MemoryStore",
    "MemoryRecord",
    "ClosedPosition",
    "TriggerType",
    "RelevanceRetriever",
    "format_memories_for_prompt",
    "MemoryTrigger",
    "TradeCompleteTrigger",
    "PeriodicTrigger",
    "ManualTrigger",
    "format_interval",
    "MemoryReflector",
    "Reflection",
    "parse_reflection",
    "parse_memories",
    "render_memories",
]
