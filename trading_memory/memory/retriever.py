"""LLM-assisted memory retrieval.

Relevance between a market situation and a stored lesson is a semantic
judgement, so the model scores every memory. All memories go into one batched
request; the model answers with one 0-10 integer per line in submission order.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from ..exceptions import EmptyCompletionError, RetrievalError, TradingMemoryError
from ..logging_config import get_logger
from .markdown_format import parse_int_prefix
from .store import MemoryStore
from .types import MemoryRecord

MIN_SCORE = 0
MAX_SCORE = 10

SCORING_SYSTEM_PROMPT = (
    "You are a trading memory retrieval system. You evaluate how relevant "
    "stored trading memories are to the current situation."
)

SCORING_PROMPT = """You are a trading memory retrieval system. Your task is to evaluate how relevant each of the following trading memories is to the current situation.
Current situation: {situation}

Score every memory from 0 to 10, where 0 means completely unrelated and 10 means highly relevant.
Return only the scores, one integer per line, in the same order as the memories. Do not add any other text.

Memories:
"""

MEMORY_ENTRY = """
Memory {index}:
Title: {title}
Tags: {tags}
Content: {content}

"""


def build_scoring_prompt(situation: str, memories: Sequence[MemoryRecord]) -> str:
    """Build the single batched scoring request for ``memories``."""
    prompt = SCORING_PROMPT.format(situation=situation)
    for index, memory in enumerate(memories, start=1):
        prompt += MEMORY_ENTRY.format(
            index=index,
            title=memory.title,
            tags=", ".join(memory.tags),
            content=memory.content,
        )
    return prompt


def format_memories_for_prompt(memories: Sequence[MemoryRecord]) -> str:
    """Render recalled memories as a section for the agent's decision prompt.

    Returns an empty string when there is nothing to inject.

    Example:
        >>> section = format_memories_for_prompt(recalled)
        >>> prompt = f"{market_summary}\\n\\n{section}" if section else market_summary
    """
    if not memories:
        return ""

    section = "Relevant trading experience from past reflections:\n"
    for index, memory in enumerate(memories, start=1):
        meta = f"importance {memory.importance}/10"
        if memory.tags:
            meta += f", tags: {', '.join(memory.tags)}"
        section += f"\n{index}. {memory.title} ({meta})\n"
        if memory.content:
            section += f"{memory.content}\n"

    return section


class RelevanceRetriever:
    """Ranks stored memories against a free-text situation using an LLM.

    Example:
        >>> retriever = RelevanceRetriever(store, ChatOpenAI(model="gpt-4o-mini"))
        >>> memories = await retriever.retrieve_relevant_memories(
        ...     "BTC dropped 5% in ten minutes, long position open", max_results=3)
    """

    def __init__(
        self,
        store: MemoryStore,
        llm: BaseChatModel,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize relevance retriever.

        Args:
            store: Memory store to rank
            llm: Chat model used as the scoring oracle
            logger: Logger to use (default: component logger)
        """
        self.store = store
        self.llm = llm
        self.logger = logger or get_logger(self.__class__.__name__)

    async def retrieve_relevant_memories(self, situation: str, max_results: int = 0) -> List[MemoryRecord]:
        """Return memories ordered by model-judged relevance to ``situation``.

        Args:
            situation: Description of the current market/trading situation
            max_results: Keep the top N when positive; 0 or less means no limit

        Returns:
            Memories sorted by descending score; ties keep store order

        Raises:
            RetrievalError: Store fetch or model call failed
            EmptyCompletionError: Model returned no usable text
        """
        try:
            memories = await asyncio.to_thread(self.store.get_all_memories)
        except TradingMemoryError as e:
            raise RetrievalError(f"failed to get all memories: {e}") from e

        if not memories:
            return []

        scores = await self.score_memories(situation, memories)

        ranked = sorted(zip(memories, scores), key=lambda pair: pair[1], reverse=True)
        if max_results > 0:
            ranked = ranked[:max_results]

        self.logger.info(
            "memories_retrieved",
            extra={
                "candidate_count": len(memories),
                "result_count": len(ranked),
                "top_score": ranked[0][1],
            },
        )
        return [memory for memory, _ in ranked]

    async def score_memories(self, situation: str, memories: Sequence[MemoryRecord]) -> List[int]:
        """Score ``memories`` 0-10 against ``situation`` with one model call.

        Returns:
            One score per memory, positionally aligned with ``memories``
        """
        messages = [
            SystemMessage(content=SCORING_SYSTEM_PROMPT),
            HumanMessage(content=build_scoring_prompt(situation, memories)),
        ]

        try:
            result = await self.llm.agenerate([messages], temperature=0.0)
        except Exception as e:
            self.logger.error(
                "relevance_scoring_failed",
                extra={"memory_count": len(memories), "error": str(e)},
            )
            raise RetrievalError(f"failed to call LLM for relevance evaluation: {e}") from e

        choices = result.generations[0] if result.generations else []
        if not choices or not choices[0].text:
            raise EmptyCompletionError("empty response from LLM for relevance evaluation")

        return self._parse_scores(choices[0].text, len(memories))

    def _parse_scores(self, text: str, count: int) -> List[int]:
        lines = text.split("\n")
        scores = [MIN_SCORE] * count

        for index, raw_line in enumerate(lines[:count]):
            line = raw_line.strip()
            if not line:
                continue

            score = parse_int_prefix(line)
            if score is None:
                self.logger.warning(
                    "relevance_score_parse_failed",
                    extra={"line": line, "position": index + 1},
                )
                continue

            scores[index] = max(MIN_SCORE, min(MAX_SCORE, score))

        return scores
