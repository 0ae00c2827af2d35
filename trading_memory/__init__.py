"""Experience memory for an LLM-driven trading agent.

Stores distilled trading lessons in a human-editable markdown file, recalls the
ones most relevant to the current market situation with an LLM, and decides
when new lessons should be captured.

Main components:
    - MemoryStore: Durable, thread-safe memory store
    - RelevanceRetriever: LLM-scored recall for a situation
    - TradeCompleteTrigger / PeriodicTrigger / ManualTrigger: Reflection triggers
    - MemoryReflector: Generates and stores reflections
    - MemoryConfig: Configuration from environment variables

Example usage:
    >>> from trading_memory import MemoryConfig, MemoryStore, RelevanceRetriever
    >>>
    >>> config = MemoryConfig.from_env()
    >>> store = MemoryStore(config.file_path)
    >>> store.initialize()
    >>> retriever = RelevanceRetriever(store, llm)
    >>> memories = await retriever.retrieve_relevant_memories(situation, config.max_results)
"""

from .config import MemoryConfig, PeriodicConfig
from .memory import (
    ClosedPosition,
    ManualTrigger,
    MemoryRecord,
    MemoryReflector,
    MemoryStore,
    MemoryTrigger,
    PeriodicTrigger,
    RelevanceRetriever,
    TradeCompleteTrigger,
    TriggerType,
    format_memories_for_prompt,
)

__all__ = [
    "MemoryConfig",
    "PeriodicConfig",
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
    "MemoryReflector",
]

__version__ = "1.0.0"
