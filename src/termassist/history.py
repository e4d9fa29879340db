"""Append-only JSONL record of generated and executed commands."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from .errors import AIError
from .shell import CommandResult

LOGGER = logging.getLogger(__name__)

HISTORY_LOG_VERSION = 1


def history_file(log_dir: str | Path, *, now: datetime | None = None) -> Path:
    stamp = (now or datetime.now(timezone.utc)).date().isoformat()
    return Path(log_dir) / f"history-{stamp}.log"


def build_entry(
    *,
    request: str,
    working_directory: str | None,
    shell: str,
    command: str | None = None,
    error: AIError | None = None,
    result: CommandResult | None = None,
    dry_run: bool = False,
) -> dict[str, object]:
    return {
        "log_version": HISTORY_LOG_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request": request,
        "working_directory": working_directory,
        "shell": shell,
        "command": command,
        "error_code": error.code if error else None,
        "error_message": error.message if error else None,
        "dry_run": dry_run,
        "executed": result.executed if result else False,
        "returncode": result.returncode if result else None,
        "success": result.success if result else None,
        "duration": round(result.duration_seconds, 4) if result else None,
    }


def append_entry(log_dir: str | Path, entry: dict[str, object]) -> Path | None:
    """Write ``entry`` as one JSON line; failures are logged and swallowed."""
    path = history_file(log_dir)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry) + "\n")
    except OSError as exc:
        LOGGER.warning("history_write_failed", extra={"path": str(path), "error": str(exc)})
        return None
    return path
