"""Reflection capture: trigger -> model -> parsed lesson -> memory store.

The model is asked (by the trigger prompt) to answer in a tagged layout:

    Title: Don't average down into a breakdown
    Content:
    Added to a losing long after support broke...
    Tags: risk management, averaging down
    Importance: 8

parse_reflection() is lenient about that layout: markdown bold, bracketed
placeholders, full-width colons and Chinese labels from the legacy
prompts are all accepted.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from ..exceptions import ReflectionError, ReflectionParseError
from ..logging_config import get_logger
from .markdown_format import parse_int_prefix
from .store import MemoryStore
from .triggers import MemoryTrigger
from .types import MemoryRecord

DEFAULT_IMPORTANCE = 5
MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 10
MAX_DERIVED_TITLE = 80

REFLECTION_SYSTEM_PROMPT = (
    "You are an experienced trader reviewing your own trading. "
    "Write honest, specific lessons that will help future trading decisions."
)

_SECTION_LABELS = {
    "title": "title",
    "标题": "title",
    "content": "content",
    "内容": "content",
    "tags": "tags",
    "标签": "tags",
    "importance": "importance",
    "重要性": "importance",
}

_LABEL_LINE = re.compile(
    r"^\s*(?:[-*#>]+\s*)?\**\s*(title|content|tags|importance|标题|内容|标签|重要性)\s*\**\s*[:：]\s*\**\s*(.*?)\s*$",
    re.IGNORECASE,
)
_TAG_SEPARATORS = re.compile(r"[,，、]")
_LIST_ITEM = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")


@dataclass
class Reflection:
    """A structured lesson parsed from model output, ready to store."""

    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    importance: int = DEFAULT_IMPORTANCE


def _unwrap(value: str) -> str:
    value = value.strip().strip("*").strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1].strip()
    return value


def parse_reflection(text: str) -> Reflection:
    """Parse tagged reflection text into a Reflection.

    Missing pieces degrade instead of failing: no title -> first content line,
    no tags -> [], missing or unparsable importance -> 5. Importance is clamped
    into 1-10.

    Raises:
        ReflectionParseError: text is blank
    """
    if not text or not text.strip():
        raise ReflectionParseError("reflection text is empty")

    values = {}
    content_lines: List[str] = []
    section = None
    saw_label = False

    for line in text.replace("\r\n", "\n").split("\n"):
        match = _LABEL_LINE.match(line)
        if match:
            saw_label = True
            section = _SECTION_LABELS[match.group(1).lower()]
            inline = _unwrap(match.group(2))
            if section == "content":
                if inline:
                    content_lines.append(inline)
            else:
                values[section] = inline
            continue

        if section == "content":
            content_lines.append(line)
        elif section == "tags" and line.strip():
            # Tags listed under the label: bullets, or one line after an empty label
            item = _LIST_ITEM.match(line)
            if item or not values.get("tags"):
                tag_text = _unwrap(line[item.end():] if item else line)
                values["tags"] = ", ".join(t for t in (values.get("tags"), tag_text) if t)

    content = "\n".join(content_lines).strip()
    if not saw_label:
        content = text.strip()

    title = values.get("title", "")
    if not title:
        first_line = next((l.strip() for l in content.split("\n") if l.strip()), "")
        title = first_line[:MAX_DERIVED_TITLE] or "Untitled reflection"

    tags = [
        _unwrap(t) for t in _TAG_SEPARATORS.split(values.get("tags", ""))
        if _unwrap(t)
    ]

    importance = parse_int_prefix(values.get("importance", "")) if values.get("importance") else None
    if importance is None:
        importance = DEFAULT_IMPORTANCE
    importance = max(MIN_IMPORTANCE, min(MAX_IMPORTANCE, importance))

    return Reflection(title=title, content=content, tags=tags, importance=importance)


class MemoryReflector:
    """Turns trigger firings into stored memories.

    Example:
        >>> reflector = MemoryReflector(store, llm)
        >>> record = await reflector.reflect(TradeCompleteTrigger(), closed_position)
        >>> record.source
        'trade_complete'
    """

    def __init__(
        self,
        store: MemoryStore,
        llm: BaseChatModel,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.llm = llm
        self.logger = logger or get_logger(self.__class__.__name__)

    async def reflect(
        self,
        trigger: MemoryTrigger,
        data: Any = None,
        source: Optional[str] = None,
    ) -> Optional[MemoryRecord]:
        """Evaluate ``trigger`` and, if it fires, generate and store a reflection.

        Args:
            trigger: Trigger to evaluate
            data: Context passed to the trigger (e.g. ClosedPosition)
            source: Memory source label (default: trigger type value)

        Returns:
            Stored memory, or None when the trigger did not fire

        Raises:
            EmptyPromptError: Manual trigger without a prompt
            ReflectionError: Model call failed or returned nothing
            MemoryStoreError: Store not initialized or write failed
        """
        if not trigger.should_trigger(data):
            return None

        prompt = trigger.get_reflection_prompt(data)
        text = await self._generate(prompt, trigger)
        reflection = parse_reflection(text)

        record = await asyncio.to_thread(
            self.store.add_memory,
            reflection.title,
            reflection.content,
            reflection.tags,
            source or trigger.trigger_type.value,
            reflection.importance,
        )

        self.logger.info(
            "reflection_stored",
            extra={
                "trigger": trigger.trigger_type.value,
                "memory_id": record.id,
                "importance": record.importance,
            },
        )
        return record

    async def _generate(self, prompt: str, trigger: MemoryTrigger) -> str:
        messages = [
            SystemMessage(content=REFLECTION_SYSTEM_PROMPT),
            HumanMessage(content=prompt),
        ]

        try:
            result = await self.llm.agenerate([messages])
        except Exception as e:
            self.logger.error(
                "reflection_generation_failed",
                extra={"trigger": trigger.trigger_type.value, "error": str(e)},
            )
            raise ReflectionError(f"failed to call LLM for {trigger.trigger_type.value} reflection: {e}") from e

        choices = result.generations[0] if result.generations else []
        if not choices or not choices[0].text.strip():
            raise ReflectionError(f"empty response from LLM for {trigger.trigger_type.value} reflection")

        return choices[0].text
