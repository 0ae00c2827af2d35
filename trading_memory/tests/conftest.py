"""
Shared pytest fixtures for trading_memory testing.
Provides a temp-file memory store, sample memories and fake chat models.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, List, Optional

import pytest
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from pydantic import Field

from trading_memory.memory.store import MemoryStore
from trading_memory.memory.types import MemoryRecord


class RecordingChatModel(BaseChatModel):
    """Chat model double that replays canned responses and records every call."""

    responses: List[str] = Field(default_factory=list)
    calls: List[Any] = Field(default_factory=list)
    delay: float = 0.0
    error_message: Optional[str] = None

    @property
    def _llm_type(self) -> str:
        return "recording-fake"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        self.calls.append({"messages": messages, "kwargs": kwargs})

        if self.error_message:
            raise RuntimeError(self.error_message)

        index = min(len(self.calls), len(self.responses)) - 1
        text = self.responses[index] if self.responses else ""
        return ChatResult(generations=[ChatGeneration(message=AIMessage(content=text))])

    async def _agenerate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        return self._generate(messages, stop=stop, run_manager=run_manager, **kwargs)


@pytest.fixture
def chat_model_factory():
    """
    Factory fixture for fake chat models.

    Usage:
        def test_example(chat_model_factory):
            llm = chat_model_factory("8\\n5")
            llm = chat_model_factory(error_message="boom")
    """
    def _create(*responses: str, delay: float = 0.0, error_message: Optional[str] = None):
        return RecordingChatModel(
            responses=list(responses),
            delay=delay,
            error_message=error_message,
        )

    return _create


@pytest.fixture
def memory_file(tmp_path):
    """Backing file path inside a directory that does not exist yet."""
    return tmp_path / "memory-bank" / "memories.md"


@pytest.fixture
def store(memory_file):
    """Initialized, empty memory store."""
    memory_store = MemoryStore(memory_file)
    memory_store.initialize()
    return memory_store


@pytest.fixture
def crash_and_trend_store(store):
    """
    Store holding two reflections: a risk-management lesson (A) and a
    trend-confirmation lesson (B), in that order.
    """
    store.add_memory(
        "市场急跌时的应对策略",
        "在市场出现急跌时，应立即评估持仓风险，而不是盲目加仓。本次交易中，市场突然下跌5%，"
        "我选择了立即设置更紧的止损，而不是试图抄底，这避免了更大的损失。",
        ["风险管理", "市场波动", "止损"],
        "trade_reflection",
        8,
    )
    store.add_memory(
        "趋势确认的重要性",
        "在进行趋势交易时，等待趋势确认信号非常重要，不要仅凭价格突破就入场。本次交易中，"
        "我等待了移动平均线的交叉确认和成交量放大，才进行了顺势交易，最终获得了不错的收益。",
        ["趋势交易", "技术分析", "入场时机"],
        "trade_reflection",
        7,
    )
    return store


@pytest.fixture
def sample_records():
    """Well-formed records with fixed timestamps."""
    return [
        MemoryRecord(
            id="test-id-1",
            title="Cut size when volatility spikes",
            content="ATR doubled within an hour.\nHalving position size kept the drawdown under 2%.",
            tags=("risk management", "volatility"),
            created_at=datetime(2024, 6, 15, 14, 30, 0),
            source="trade_complete",
            importance=8,
        ),
        MemoryRecord(
            id="test-id-2",
            title="Wait for the retest",
            content="Breakout entries without a retest failed 3 times this week.",
            tags=("entries", "breakout", "patience"),
            created_at=datetime(2024, 6, 16, 15, 40, 0),
            source="periodic",
            importance=6,
        ),
    ]


@pytest.fixture
def restore_root_logger():
    """Put the root logger's handlers and level back after setup_logging() runs."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
