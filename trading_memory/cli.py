#!/usr/bin/env python3
"""Memory maintenance CLI.

JSON-output commands for inspecting and curating the memory file outside the
trading loop:

    python -m trading_memory list
    python -m trading_memory search --query drawdown --tag "risk management"
    python -m trading_memory add --title "..." --content "..." --tag risk --importance 7
    python -m trading_memory show-config

Logs go to stderr so stdout stays parseable; LOG_LEVEL (default WARNING) and
LOG_FORMAT (json or text) control them.
"""

import argparse
import json
import sys
from typing import List, Optional

from .config import MemoryConfig
from .exceptions import ConfigurationError, MemoryStoreError
from .logging_config import get_logger, setup_logging_from_env
from .memory.store import MemoryStore

logger = get_logger(__name__)


def json_output(data: dict):
    """Print JSON output for scripting consumption."""
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _open_store(args) -> MemoryStore:
    file_path = args.file or MemoryConfig.from_env().file_path
    store = MemoryStore(file_path)
    store.initialize()
    return store


def cmd_list(args):
    """List every stored memory."""
    store = _open_store(args)
    memories = store.get_all_memories()
    json_output({
        "success": True,
        "file_path": str(store.file_path),
        "count": len(memories),
        "memories": [m.to_dict() for m in memories],
    })


def cmd_search(args):
    """Keyword/tag search over stored memories."""
    store = _open_store(args)
    memories = store.retrieve_memories(args.query, args.tag, args.limit)
    json_output({
        "success": True,
        "count": len(memories),
        "memories": [m.to_dict() for m in memories],
    })


def cmd_add(args):
    """Add a manually written memory."""
    if not args.title.strip():
        raise ConfigurationError("--title must not be empty")

    store = _open_store(args)
    memory = store.add_memory(
        title=args.title,
        content=args.content,
        tags=args.tag,
        source=args.source,
        importance=args.importance,
    )
    json_output({"success": True, "memory": memory.to_dict()})


def cmd_show_config(args):
    """Show memory configuration resolved from the environment."""
    config = MemoryConfig.from_env()
    config.validate()
    json_output({
        "success": True,
        "config": {
            "enabled": config.enabled,
            "file_path": config.file_path,
            "max_results": config.max_results,
            "periodic": {
                "enabled": config.periodic.enabled,
                "interval_seconds": config.periodic.interval.total_seconds(),
            },
        },
    })


COMMANDS = {
    "list": cmd_list,
    "search": cmd_search,
    "add": cmd_add,
    "show-config": cmd_show_config,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trading_memory",
        description="Inspect and curate the trading memory file",
    )
    parser.add_argument("--file", help="Memory file (default: MEMORY_FILE_PATH or memory-bank/memories.md)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List all memories")

    search_parser = subparsers.add_parser("search", help="Keyword/tag search")
    search_parser.add_argument("--query", default="", help="Substring of title or content")
    search_parser.add_argument("--tag", action="append", default=[], help="Tag filter (repeatable, any-of)")
    search_parser.add_argument("--limit", type=int, default=0, help="Limit results (0 = no limit)")

    add_parser = subparsers.add_parser("add", help="Add a memory")
    add_parser.add_argument("--title", required=True, help="Short summary")
    add_parser.add_argument("--content", default="", help="Lesson text")
    add_parser.add_argument("--tag", action="append", default=[], help="Tag (repeatable)")
    add_parser.add_argument("--source", default="manual", help="Provenance label")
    add_parser.add_argument("--importance", type=int, default=5, help="Importance 1-10")

    subparsers.add_parser("show-config", help="Show resolved configuration")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # stdout carries the JSON result
    try:
        setup_logging_from_env(default_level="WARNING", stream=sys.stderr)
    except ConfigurationError as e:
        json_output({"success": False, "error": f"Configuration error: {e}"})
        return 1

    try:
        COMMANDS[args.command](args)
    except ConfigurationError as e:
        logger.error("cli_configuration_error", extra={"command": args.command, "error": str(e)})
        json_output({"success": False, "error": f"Configuration error: {e}"})
        return 1
    except MemoryStoreError as e:
        logger.error("cli_store_error", extra={"command": args.command, "error": str(e)})
        json_output({"success": False, "error": f"Memory store error: {e}"})
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
