"""Durable trading memory store.

Keeps every memory record in memory and mirrors the full collection to a single
markdown file (see markdown_format). Reads share a lock; adds and saves hold it
exclusively for the whole rewrite, so write latency grows with the record count.
The store is meant for a modest number of curated lessons, not high-frequency
logging.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..exceptions import (
    MemoryLoadError,
    MemoryNotInitializedError,
    MemoryPersistenceError,
)
from ..logging_config import get_logger
from ..utils.rwlock import ReadWriteLock
from .markdown_format import parse_memories, render_memories
from .types import MemoryRecord


class MemoryStore:
    """File-backed store of trading memories.

    Safe for concurrent readers and one writer at a time. Callers always get
    snapshot lists; records themselves are immutable.

    Example:
        >>> store = MemoryStore("memory-bank/memories.md")
        >>> store.initialize()
        >>> store.add_memory("Respect the stop", "Moving the stop turned a small loss into a big one.",
        ...                  ["risk management", "stop loss"], "manual", 9)
        >>> [m.title for m in store.retrieve_memories(tags=["stop loss"])]
        ['Respect the stop']
    """

    def __init__(self, file_path: Union[str, Path], logger: Optional[logging.Logger] = None):
        """Initialize memory store.

        Args:
            file_path: Backing markdown file; parent directories are created on initialize()
            logger: Logger to use (default: component logger)
        """
        self._file_path = Path(file_path)
        self._memories: List[MemoryRecord] = []
        self._lock = ReadWriteLock()
        self._initialized = False
        self.logger = logger or get_logger(self.__class__.__name__)

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def initialized(self) -> bool:
        return self._initialized

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._memories)

    def initialize(self) -> None:
        """Load existing memories, or create an empty memory file.

        Idempotent: later calls are no-ops once one call has succeeded.

        Raises:
            MemoryPersistenceError: Directory or initial file cannot be created
            MemoryLoadError: Existing file cannot be read
        """
        with self._lock.write_locked():
            if self._initialized:
                return

            try:
                self._file_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise MemoryPersistenceError(
                    f"failed to create memory directory: {e}", str(self._file_path)
                ) from e

            if self._file_path.exists():
                self._memories = self._load_from_file()
            else:
                self._memories = []
                self._write_to_file()

            self._initialized = True

        self.logger.info(
            "memory_store_initialized",
            extra={"file_path": str(self._file_path), "memory_count": len(self._memories)},
        )

    def add_memory(
        self,
        title: str,
        content: str,
        tags: Optional[Iterable[str]] = None,
        source: str = "",
        importance: int = 0,
    ) -> MemoryRecord:
        """Create a memory and persist the whole collection.

        Args:
            title: Short single-line summary
            content: Lesson text
            tags: Tags for filtering (order kept for display)
            source: Provenance label (trigger type, "manual", ...)
            importance: 1-10 by convention, not enforced here

        Returns:
            The created record

        Raises:
            MemoryNotInitializedError: initialize() has not succeeded
            MemoryPersistenceError: File write failed. The record stays in the
                in-memory collection and is written by the next successful save.
        """
        with self._lock.write_locked():
            self._ensure_initialized("add_memory")

            record = MemoryRecord(
                title=title,
                content=content,
                tags=tuple(tags or ()),
                source=source,
                importance=importance,
            )
            self._memories.append(record)
            self._write_to_file()

        self.logger.info(
            "memory_added",
            extra={
                "memory_id": record.id,
                "title": record.title,
                "source": record.source,
                "importance": record.importance,
            },
        )
        return record

    def get_all_memories(self) -> List[MemoryRecord]:
        """Snapshot of all memories in insertion order."""
        with self._lock.read_locked():
            self._ensure_initialized("get_all_memories")
            return list(self._memories)

    def retrieve_memories(
        self,
        query: str = "",
        tags: Optional[Iterable[str]] = None,
        limit: int = 0,
    ) -> List[MemoryRecord]:
        """Keyword and tag filter over stored memories.

        A record matches when the query (case-insensitive) occurs in its title or
        content, and at least one requested tag equals one of its tags
        (case-insensitive). An empty query or empty tag list matches everything.

        Args:
            query: Substring to look for
            tags: Any-of tag filter
            limit: Keep only the first N matches when positive

        Returns:
            Matching records in insertion order
        """
        wanted_tags = {t.lower() for t in (tags or ())}
        needle = query.lower()

        with self._lock.read_locked():
            self._ensure_initialized("retrieve_memories")

            if not needle and not wanted_tags:
                results = list(self._memories)
            else:
                results = [
                    m for m in self._memories
                    if self._matches(m, needle, wanted_tags)
                ]

        if limit > 0 and len(results) > limit:
            results = results[:limit]

        return results

    def save_memories(self) -> None:
        """Rewrite the memory file from the in-memory collection.

        Raises:
            MemoryNotInitializedError: initialize() has not succeeded
            MemoryPersistenceError: File write failed
        """
        with self._lock.write_locked():
            self._ensure_initialized("save_memories")
            self._write_to_file()

        self.logger.debug(
            "memory_store_saved",
            extra={"file_path": str(self._file_path), "memory_count": len(self._memories)},
        )

    @staticmethod
    def _matches(memory: MemoryRecord, needle: str, wanted_tags: set) -> bool:
        if needle and needle not in memory.title.lower() and needle not in memory.content.lower():
            return False

        if wanted_tags and not any(t.lower() in wanted_tags for t in memory.tags):
            return False

        return True

    def _ensure_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise MemoryNotInitializedError(
                f"memory store not initialized, call initialize() before {operation}",
                str(self._file_path),
            )

    def _load_from_file(self) -> List[MemoryRecord]:
        try:
            text = self._file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise MemoryLoadError(f"failed to read memory file: {e}", str(self._file_path)) from e

        if not text.strip():
            return []

        return parse_memories(text, self.logger)

    def _write_to_file(self) -> None:
        """Atomic full rewrite: temp file in the same directory + os.replace()."""
        content = render_memories(self._memories)
        directory = self._file_path.parent

        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=str(directory),
                prefix=f".{self._file_path.name}.",
                suffix=".tmp",
            )
        except OSError as e:
            raise MemoryPersistenceError(f"failed to write memory file: {e}", str(self._file_path)) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(temp_path, str(self._file_path))
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass  # Temp file already gone
            self.logger.error(
                "memory_store_write_failed",
                extra={"file_path": str(self._file_path), "error": str(e)},
            )
            raise MemoryPersistenceError(f"failed to write memory file: {e}", str(self._file_path)) from e
