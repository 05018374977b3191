"""JSONL event logs shared by the telemetry and audit sinks."""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Iterator

try:
    import fcntl  # type: ignore[attr-defined]
except ImportError:  # pragma: no cover - Windows fallback
    fcntl = None


def resolve_data_dir() -> Path:
    env_path = os.environ.get("HOOKGATE_HOME")
    if env_path:
        return Path(env_path).expanduser()
    return Path("~/.hookgate").expanduser()


@contextmanager
def exclusive(handle: IO[Any]) -> Iterator[IO[Any]]:
    """Hold an advisory exclusive lock on an already open file."""
    if fcntl is None:
        yield handle
        return
    fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
    try:
        yield handle
    finally:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def append_jsonl(path: Path, payload: dict[str, Any]) -> None:
    """Append one event line.

    Concurrent hook stages share one log, so the log file itself is locked. A
    torn final line left by a crashed writer gets its newline before ours.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    record = json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8") + b"\n"
    with path.open("ab+") as handle, exclusive(handle):
        end = handle.seek(0, os.SEEK_END)
        if end:
            handle.seek(end - 1)
            if handle.read(1) != b"\n":
                record = b"\n" + record
        handle.write(record)
        handle.flush()


def read_jsonl(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    with path.open(encoding="utf-8") as handle:
        return [json.loads(line) for line in handle if line.strip()]
