"""
Markdown memory format tests.
Parse/render of the backing file, including per-block degradation rules.
"""
from datetime import datetime, timedelta

from trading_memory.memory.markdown_format import (
    DOCUMENT_HEADER,
    parse_int_prefix,
    parse_memories,
    parse_timestamp,
    render_memories,
)


WELL_FORMED_DOCUMENT = """# Trading Memories

## Memory 1
- **ID**: test-id-1
- **Title**: Cut size when volatility spikes
- **Tags**: risk management, volatility
- **Created At**: 2023-06-15 14:30:00
- **Source**: test
- **Importance**: 5

Halving position size kept the drawdown small.

## Memory 2
- **ID**: test-id-2
- **Title**: Wait for the retest
- **Tags**: entries, breakout
- **Created At**: 2023-06-16 15:40:00
- **Source**: test
- **Importance**: 8

Breakout entries without a retest failed.
Second line of content.
"""


class TestParseMemories:
    """Test parsing the markdown document."""

    def test_parses_all_fields(self):
        """Test every metadata field and multi-line content is read."""
        memories = parse_memories(WELL_FORMED_DOCUMENT)

        assert len(memories) == 2

        first, second = memories
        assert first.id == "test-id-1"
        assert first.title == "Cut size when volatility spikes"
        assert first.tags == ("risk management", "volatility")
        assert first.source == "test"
        assert first.importance == 5
        assert first.content == "Halving position size kept the drawdown small."
        assert first.created_at == datetime(2023, 6, 15, 14, 30, 0)

        assert second.id == "test-id-2"
        assert second.importance == 8
        assert second.content == "Breakout entries without a retest failed.\nSecond line of content."
        assert second.created_at == datetime(2023, 6, 16, 15, 40, 0)

    def test_document_without_blocks_is_empty(self):
        """Test a header-only document yields no memories."""
        assert parse_memories(f"{DOCUMENT_HEADER}\n\n") == []
        assert parse_memories("") == []

    def test_short_block_is_skipped(self):
        """Test a 3-line block is dropped while the well-formed one survives."""
        document = """# Trading Memories

## Memory 1
- **ID**: good-id
- **Title**: Complete block
- **Tags**: a
- **Created At**: 2023-06-15 14:30:00
- **Source**: test
- **Importance**: 5

Content.

## Memory 2
- **ID**: broken-id
- **Title**: Truncated"""

        memories = parse_memories(document)

        assert len(memories) == 1
        assert memories[0].id == "good-id"

    def test_exactly_six_lines_with_missing_fields_is_kept(self):
        """Test the line threshold is structural: 6 lines parse even with fields missing."""
        document = (
            "## Memory 1\n"
            "- **Title**: Only a title\n"
            "- **Importance**: 3\n"
            "\n"
            "Body\n"
        )

        memories = parse_memories(document)

        assert len(memories) == 1
        assert memories[0].title == "Only a title"
        assert memories[0].importance == 3
        assert memories[0].content == "Body"
        assert memories[0].tags == ()
        assert memories[0].id  # generated

    def test_missing_id_is_generated(self):
        """Test blocks without an ID line get a fresh unique id."""
        block = (
            "## Memory {n}\n"
            "- **Title**: No id\n"
            "- **Tags**: x\n"
            "- **Created At**: 2023-06-15 14:30:00\n"
            "- **Source**: test\n"
            "- **Importance**: 5\n"
            "\n"
            "Content\n\n"
        )
        document = "# Trading Memories\n\n" + block.format(n=1) + block.format(n=2)

        memories = parse_memories(document)

        assert len(memories) == 2
        assert memories[0].id and memories[1].id
        assert memories[0].id != memories[1].id

    def test_bad_importance_defaults_to_zero(self):
        """Test unparsable importance degrades to 0 instead of failing."""
        document = WELL_FORMED_DOCUMENT.replace("- **Importance**: 5", "- **Importance**: very high")

        memories = parse_memories(document)

        assert len(memories) == 2
        assert memories[0].importance == 0
        assert memories[1].importance == 8

    def test_oversized_importance_defaults_to_zero(self):
        """Test a huge hand-edited number degrades like any unparsable importance."""
        document = WELL_FORMED_DOCUMENT.replace("- **Importance**: 5", "- **Importance**: " + "9" * 5000)

        memories = parse_memories(document)

        assert [m.id for m in memories] == ["test-id-1", "test-id-2"]
        assert memories[0].importance == 0
        assert memories[1].importance == 8

    def test_bad_timestamp_falls_back_to_now(self):
        """Test unparsable timestamp is replaced by the current time."""
        document = WELL_FORMED_DOCUMENT.replace("2023-06-15 14:30:00", "last tuesday")

        before = datetime.now()
        memories = parse_memories(document)
        after = datetime.now()

        assert len(memories) == 2
        assert before <= memories[0].created_at <= after

    def test_rfc3339_timestamp_is_accepted(self):
        """Test the timezone-aware fallback format is parsed."""
        document = WELL_FORMED_DOCUMENT.replace("2023-06-15 14:30:00", "2023-06-15T14:30:00Z")

        memories = parse_memories(document)

        expected = datetime.fromisoformat("2023-06-15T14:30:00+00:00").astimezone().replace(tzinfo=None)
        assert memories[0].created_at == expected
        assert memories[0].created_at.tzinfo is None

    def test_metadata_order_does_not_matter(self):
        """Test metadata lines may appear in any order."""
        document = (
            "# Trading Memories\n\n"
            "## Memory 1\n"
            "- **Importance**: 9\n"
            "- **Source**: manual\n"
            "- **Title**: Shuffled\n"
            "- **Created At**: 2023-06-15 14:30:00\n"
            "- **ID**: shuffled-id\n"
            "- **Tags**: one,  two ,three\n"
            "\n"
            "Body\n"
        )

        memory = parse_memories(document)[0]

        assert memory.id == "shuffled-id"
        assert memory.title == "Shuffled"
        assert memory.tags == ("one", "two", "three")
        assert memory.importance == 9
        assert memory.source == "manual"

    def test_legacy_chinese_labels(self):
        """Test files written with the legacy Chinese labels still load."""
        document = """# Trading-GPT 记忆

## 记忆 1
- **ID**: legacy-1
- **标题**: 测试记忆1
- **标签**: 测试, 记忆
- **创建时间**: 2023-06-15 14:30:00
- **来源**: test
- **重要性**: 5

这是测试记忆1的内容。
"""

        memories = parse_memories(document)

        assert len(memories) == 1
        assert memories[0].id == "legacy-1"
        assert memories[0].title == "测试记忆1"
        assert memories[0].tags == ("测试", "记忆")
        assert memories[0].importance == 5
        assert memories[0].content == "这是测试记忆1的内容。"

    def test_windows_line_endings(self):
        """Test CRLF documents parse the same as LF documents."""
        memories = parse_memories(WELL_FORMED_DOCUMENT.replace("\n", "\r\n"))

        assert [m.id for m in memories] == ["test-id-1", "test-id-2"]
        assert memories[1].content == "Breakout entries without a retest failed.\nSecond line of content."


class TestRenderMemories:
    """Test rendering records to the markdown document."""

    def test_render_layout(self, sample_records):
        """Test header, ordinals and canonical field order."""
        text = render_memories(sample_records)

        assert text.startswith("# Trading Memories\n\n## Memory 1\n- **ID**: test-id-1\n")
        assert "- **Tags**: risk management, volatility\n" in text
        assert "- **Created At**: 2024-06-15 14:30:00\n" in text
        assert "- **Importance**: 8\n\nATR doubled" in text
        assert "## Memory 2\n- **ID**: test-id-2\n" in text

    def test_ordinals_are_positions_not_ids(self, sample_records):
        """Test block numbers follow list position after reordering."""
        text = render_memories(list(reversed(sample_records)))

        assert "## Memory 1\n- **ID**: test-id-2" in text
        assert "## Memory 2\n- **ID**: test-id-1" in text

    def test_empty_collection_is_header_only(self):
        """Test rendering nothing writes just the header."""
        assert render_memories([]) == "# Trading Memories\n\n"

    def test_round_trip(self, sample_records):
        """Test parse(render(records)) reproduces every field."""
        parsed = parse_memories(render_memories(sample_records))

        assert len(parsed) == len(sample_records)
        for original, loaded in zip(sample_records, parsed):
            assert loaded.id == original.id
            assert loaded.title == original.title
            assert loaded.tags == original.tags
            assert loaded.source == original.source
            assert loaded.importance == original.importance
            assert loaded.content == original.content
            assert abs(loaded.created_at - original.created_at) < timedelta(seconds=1)

    def test_round_trip_empty_content_and_tags(self):
        """Test a record with no tags and no content survives a round trip."""
        from trading_memory.memory.types import MemoryRecord

        record = MemoryRecord(title="Bare", created_at=datetime(2024, 1, 1, 9, 0, 0), importance=1)

        parsed = parse_memories(render_memories([record]))

        assert len(parsed) == 1
        assert parsed[0].id == record.id
        assert parsed[0].tags == ()
        assert parsed[0].content == ""

    def test_round_trip_content_with_marker_lines(self):
        """Test content lines that look like block markers stay inside their record."""
        from trading_memory.memory.types import MemoryRecord

        first = MemoryRecord(
            id="x1",
            title="Review notes",
            content="Review notes:\n## Memory 2\nkeep stops tight\n## 记忆 7",
            created_at=datetime(2024, 1, 1, 9, 0, 0),
            importance=4,
        )
        second = MemoryRecord(
            id="x2",
            title="Escaped already",
            content="\\## Memory 3\nliteral backslash kept",
            created_at=datetime(2024, 1, 2, 9, 0, 0),
            importance=6,
        )

        text = render_memories([first, second])
        parsed = parse_memories(text)

        assert "\n\\## Memory 2\n" in text
        assert [m.id for m in parsed] == ["x1", "x2"]
        assert parsed[0].content == first.content
        assert parsed[1].content == second.content


class TestFieldParsers:
    """Test scalar helpers."""

    def test_parse_int_prefix(self):
        assert parse_int_prefix("8") == 8
        assert parse_int_prefix(" 7/10") == 7
        assert parse_int_prefix("-3") == -3
        assert parse_int_prefix("high") is None
        assert parse_int_prefix("") is None

    def test_parse_int_prefix_rejects_oversized_numbers(self):
        assert parse_int_prefix("9" * 18) == int("9" * 18)
        assert parse_int_prefix("9" * 19) is None
        assert parse_int_prefix("9" * 5000 + "/10") is None

    def test_parse_timestamp_canonical(self):
        assert parse_timestamp("2024-02-29 23:59:59") == datetime(2024, 2, 29, 23, 59, 59)
