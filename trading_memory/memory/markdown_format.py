"""Markdown persistence format for trading memories.

The backing artifact is a single human-editable markdown document:

    # Trading Memories

    ## Memory 1
    - **ID**: 6f1c...
    - **Title**: Cut size when volatility spikes
    - **Tags**: risk management, volatility
    - **Created At**: 2024-06-15 14:30:00
    - **Source**: trade_complete
    - **Importance**: 8

    Free-form lesson text, any number of lines.

The ordinal after "## Memory" is cosmetic and re-numbered on every write.
Content lines that look like a block marker are stored with a leading backslash.
Parsing degrades per block instead of failing the whole document: short blocks
are skipped, bad timestamps fall back to now, bad importance falls back to 0.
Files written in the legacy Chinese-labelled format are still readable.
"""

import logging
import re
from datetime import datetime
from typing import Iterable, List, Optional

from ..logging_config import get_logger
from .types import TIMESTAMP_FORMAT, MemoryRecord, generate_memory_id

DOCUMENT_HEADER = "# Trading Memories"
BLOCK_TITLE = "## Memory"

# Blocks shorter than this (marker line included) are treated as malformed
MIN_BLOCK_LINES = 6

_BLOCK_MARKER = re.compile(r"^##[ \t]+(?:Memory|记忆)[ \t]+(\d+)[ \t]*$", re.MULTILINE)
_METADATA_LINE = re.compile(r"^-\s*\*\*(.+?)\*\*\s*[:：]\s*(.*)$")
_LEADING_INT = re.compile(r"^[+-]?\d+")

# Content lines that would read as a block marker are written with one extra
# leading backslash, and lose one when read back.
_ESCAPED_MARKER_LINE = re.compile(r"^(\\*)(##[ \t]+(?:Memory|记忆)[ \t]+\d+[ \t\r]*)$")

# Longer digit runs are treated as unparsable
MAX_INT_DIGITS = 18

# Canonical order used by the writer
FIELD_LABELS = (
    ("id", "ID"),
    ("title", "Title"),
    ("tags", "Tags"),
    ("created_at", "Created At"),
    ("source", "Source"),
    ("importance", "Importance"),
)

# Reader accepts canonical labels plus the legacy Chinese ones
_LABEL_TO_FIELD = {label.lower(): name for name, label in FIELD_LABELS}
_LABEL_TO_FIELD.update({
    "标题": "title",
    "标签": "tags",
    "创建时间": "created_at",
    "来源": "source",
    "重要性": "importance",
})


def parse_int_prefix(value: str) -> Optional[int]:
    """Parse the leading integer of a string ("8", " 7/10", "+3"), None if absent."""
    match = _LEADING_INT.match(value.strip())
    if not match or len(match.group(0).lstrip("+-")) > MAX_INT_DIGITS:
        return None
    return int(match.group(0))


def _escape_content(content: str) -> str:
    return "\n".join(
        "\\" + line if _ESCAPED_MARKER_LINE.match(line) else line
        for line in content.split("\n")
    )


def _unescape_line(line: str) -> str:
    match = _ESCAPED_MARKER_LINE.match(line)
    if match and match.group(1):
        return line[1:]
    return line


def parse_timestamp(value: str, logger: Optional[logging.Logger] = None) -> datetime:
    """Parse a memory creation timestamp.

    Tries the canonical ``YYYY-MM-DD HH:MM:SS`` format, then ISO 8601 / RFC 3339.
    Timezone-aware values are converted to naive local time. Anything else
    falls back to the current time.
    """
    value = value.strip()
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        (logger or get_logger(__name__)).warning(
            "memory_timestamp_parse_failed",
            extra={"value": value, "error": str(e)},
        )
        return datetime.now()

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _strip_blank_lines(lines: List[str]) -> List[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def _parse_block(lines: List[str], logger: logging.Logger) -> MemoryRecord:
    fields = {}
    content_lines: List[str] = []

    for index, raw_line in enumerate(lines):
        line = raw_line.strip()
        if not line:
            content_lines = lines[index + 1:]
            break

        match = _METADATA_LINE.match(line)
        if not match:
            continue

        name = _LABEL_TO_FIELD.get(match.group(1).strip().lower())
        if name:
            fields[name] = match.group(2).strip()

    tags = [t.strip() for t in fields.get("tags", "").split(",")]

    importance = 0
    if "importance" in fields:
        parsed = parse_int_prefix(fields["importance"])
        if parsed is None:
            logger.warning(
                "memory_importance_parse_failed",
                extra={"value": fields["importance"], "memory_id": fields.get("id")},
            )
        else:
            importance = parsed

    created_at = (
        parse_timestamp(fields["created_at"], logger)
        if "created_at" in fields
        else datetime.now()
    )

    return MemoryRecord(
        id=fields.get("id") or generate_memory_id(),
        title=fields.get("title", ""),
        content="\n".join(_unescape_line(l) for l in _strip_blank_lines(content_lines)),
        tags=tuple(t for t in tags if t),
        created_at=created_at,
        source=fields.get("source", ""),
        importance=importance,
    )


def parse_memories(text: str, logger: Optional[logging.Logger] = None) -> List[MemoryRecord]:
    """Parse a markdown memory document into records.

    Args:
        text: Full document text
        logger: Logger for per-block degradations (defaults to module logger)

    Returns:
        Records in document order. Malformed blocks are skipped, never raised.

    Example:
        >>> records = parse_memories(Path("memory-bank/memories.md").read_text())
        >>> records[0].title
        'Cut size when volatility spikes'
    """
    logger = logger or get_logger(__name__)
    text = text.replace("\r\n", "\n")

    # [header, ordinal, body, ordinal, body, ...]
    parts = _BLOCK_MARKER.split(text)
    records = []

    for i in range(1, len(parts), 2):
        ordinal, body = parts[i], parts[i + 1]
        # Drop the remainder of the marker line itself
        lines = body.split("\n")[1:]

        if len(lines) + 1 < MIN_BLOCK_LINES:
            logger.debug(
                "memory_block_skipped",
                extra={"ordinal": ordinal, "line_count": len(lines) + 1},
            )
            continue

        records.append(_parse_block(lines, logger))

    return records


def _single_line(value: str) -> str:
    return " ".join(value.splitlines()).strip()


def render_memories(records: Iterable[MemoryRecord]) -> str:
    """Render records as a markdown memory document.

    Block ordinals are the 1-based position in ``records``, not the record id.
    """
    chunks = [f"{DOCUMENT_HEADER}\n\n"]

    for ordinal, record in enumerate(records, start=1):
        values = {
            "id": record.id,
            "title": _single_line(record.title),
            "tags": ", ".join(record.tags),
            "created_at": record.created_at.strftime(TIMESTAMP_FORMAT),
            "source": _single_line(record.source),
            "importance": str(record.importance),
        }

        block = f"{BLOCK_TITLE} {ordinal}\n"
        for name, label in FIELD_LABELS:
            block += f"- **{label}**: {values[name]}\n"
        block += "\n"
        block += _escape_content(record.content)
        block += "\n\n"

        chunks.append(block)

    return "".join(chunks)
