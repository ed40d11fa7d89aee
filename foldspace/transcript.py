import asyncio
import json
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from foldspace.constants import STATS_CACHE_TTL, SUBPROCESS_TIMEOUT, SYNTHETIC_MODEL
from foldspace.logging import get_logger
from foldspace.models import TranscriptStats

_logger = get_logger(__name__)

_PROJECT_SLUG_RE = re.compile(r"[^A-Za-z0-9]")

StatsReader = Callable[[Path], Awaitable[TranscriptStats | None]]


def derive_transcript_path(projects_dir: Path, cwd: str, session_id: str) -> Path:
    """Where the host agent keeps the log for a session started in `cwd`."""
    return projects_dir / _PROJECT_SLUG_RE.sub("-", cwd) / f"{session_id}.jsonl"


def scan_transcript(path: Path) -> TranscriptStats:
    """Derive token and turn totals from a JSONL transcript.

    Malformed lines are skipped. A missing or unreadable file yields zeroed
    stats: the log may simply not exist yet.
    """
    tokens_in = 0
    tokens_out = 0
    turns = 0
    model: str | None = None
    version: str | None = None
    branch: str | None = None

    try:
        with path.open(encoding="utf-8", errors="replace") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if not isinstance(record, dict):
                    continue

                if record.get("version"):
                    version = str(record["version"])
                if record.get("gitBranch"):
                    branch = str(record["gitBranch"])

                kind = record.get("type")
                if kind == "user":
                    turns += 1
                elif kind == "assistant":
                    message = record.get("message")
                    if not isinstance(message, dict) or not isinstance(message.get("usage"), dict):
                        continue
                    usage = message["usage"]
                    tokens_in += _count(usage, "input_tokens") + _count(usage, "cache_read_input_tokens")
                    tokens_out += _count(usage, "output_tokens")
                    if message.get("model") and message["model"] != SYNTHETIC_MODEL:
                        model = str(message["model"])
    except OSError as e:
        _logger.debug("Transcript unavailable %s: %s", path, e)
        return TranscriptStats()

    return TranscriptStats(
        total_tokens_in=tokens_in,
        total_tokens_out=tokens_out,
        turn_count=turns,
        model=model,
        claude_version=version,
        git_branch=branch,
    )


def _count(usage: dict, key: str) -> int:
    value = usage.get(key)
    return value if isinstance(value, int) else 0


async def read_transcript_stats(path: Path, timeout: float = SUBPROCESS_TIMEOUT) -> TranscriptStats | None:
    """Scan off the event loop. None means the read did not finish in time."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(scan_transcript, path), timeout=timeout)
    except TimeoutError:
        _logger.warning("Transcript scan timed out after %.1fs: %s", timeout, path)
        return None


def _file_size(path: Path) -> int | None:
    try:
        return path.stat().st_size
    except OSError:
        return None


@dataclass(frozen=True)
class _CacheEntry:
    path: Path
    stats: TranscriptStats
    size: int | None
    scanned_at: float


class TranscriptStatsCache:
    """Per-session stats cache, coherent with transcript growth.

    An entry younger than `ttl` is served unless the file's byte length
    changed since it was scanned; a length change forces a re-scan.
    """

    def __init__(
        self,
        ttl: float = STATS_CACHE_TTL,
        reader: StatsReader | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self._reader: StatsReader = reader or read_transcript_stats
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    def _is_fresh(self, entry: _CacheEntry, path: Path, size: int | None) -> bool:
        return entry.path == path and entry.size == size and self._clock() - entry.scanned_at < self.ttl

    async def get(self, session_id: str, path: Path) -> TranscriptStats | None:
        size = _file_size(path)
        entry = self._entries.get(session_id)
        if entry and self._is_fresh(entry, path, size):
            return entry.stats

        stats = await self._reader(path)
        if stats is None:
            return entry.stats if entry else None

        self._entries[session_id] = _CacheEntry(path=path, stats=stats, size=size, scanned_at=self._clock())
        return stats

    def invalidate(self, session_id: str) -> None:
        self._entries.pop(session_id, None)
