import time
from functools import partial
from pathlib import Path

import pytest
from conftest import assistant_record, user_record

from foldspace import transcript
from foldspace.models import TranscriptStats
from foldspace.transcript import (
    TranscriptStatsCache,
    derive_transcript_path,
    read_transcript_stats,
    scan_transcript,
)


class TestScanTranscript:
    def test_counts_user_turns_and_usage(self, write_transcript):
        path = write_transcript(
            [
                user_record("first"),
                assistant_record(60, 40, cache_read=40),
                user_record("second"),
            ]
        )

        stats = scan_transcript(path)

        assert stats.turn_count == 2
        assert stats.total_tokens_in == 100
        assert stats.total_tokens_out == 40
        assert stats.model == "claude-sonnet-4-5"

    def test_malformed_line_is_skipped(self, write_transcript):
        path = write_transcript([assistant_record(10, 5), "{not json at all"])

        stats = scan_transcript(path)

        assert stats.total_tokens_in == 10
        assert stats.total_tokens_out == 5
        assert stats.turn_count == 0

    def test_missing_file_yields_zero_stats(self, tmp_path: Path):
        assert scan_transcript(tmp_path / "nope.jsonl") == TranscriptStats()

    def test_synthetic_model_is_ignored(self, write_transcript):
        path = write_transcript([assistant_record(1, 1, model="opus"), assistant_record(1, 1, model="<synthetic>")])

        assert scan_transcript(path).model == "opus"

    def test_captures_latest_version_and_branch(self, write_transcript):
        path = write_transcript(
            [
                {"type": "user", "version": "1.0.0", "gitBranch": "main"},
                {"type": "system", "version": "1.2.0", "gitBranch": "feature"},
            ]
        )

        stats = scan_transcript(path)

        assert stats.claude_version == "1.2.0"
        assert stats.git_branch == "feature"
        assert stats.turn_count == 1

    def test_assistant_without_usage_counts_nothing(self, write_transcript):
        path = write_transcript([{"type": "assistant", "message": {"model": "x"}}, "[1, 2]", "42"])

        stats = scan_transcript(path)

        assert stats == TranscriptStats()


def test_derive_transcript_path(tmp_path: Path):
    path = derive_transcript_path(tmp_path, "/home/me/my.project", "abc")

    assert path == tmp_path / "-home-me-my-project" / "abc.jsonl"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class CountingReader:
    def __init__(self):
        self.calls = 0

    async def __call__(self, path: Path) -> TranscriptStats | None:
        self.calls += 1
        return scan_transcript(path)


class TestTranscriptStatsCache:
    @pytest.mark.asyncio
    async def test_fresh_entry_is_served_without_rescan(self, write_transcript):
        path = write_transcript([assistant_record(10, 5)])
        reader = CountingReader()
        cache = TranscriptStatsCache(ttl=10, reader=reader, clock=FakeClock())

        first = await cache.get("s1", path)
        second = await cache.get("s1", path)

        assert second is first
        assert reader.calls == 1

    @pytest.mark.asyncio
    async def test_growth_forces_rescan_within_ttl(self, write_transcript):
        path = write_transcript([assistant_record(10, 5)])
        reader = CountingReader()
        cache = TranscriptStatsCache(ttl=10, reader=reader, clock=FakeClock())

        await cache.get("s1", path)
        with path.open("a") as f:
            f.write('{"type": "user"}\n')
        stats = await cache.get("s1", path)

        assert reader.calls == 2
        assert stats.turn_count == 1

    @pytest.mark.asyncio
    async def test_expired_entry_is_rescanned(self, write_transcript):
        path = write_transcript([assistant_record(10, 5)])
        reader = CountingReader()
        clock = FakeClock()
        cache = TranscriptStatsCache(ttl=10, reader=reader, clock=clock)

        await cache.get("s1", path)
        clock.now += 11
        await cache.get("s1", path)

        assert reader.calls == 2

    @pytest.mark.asyncio
    async def test_failed_read_keeps_previous_stats(self, write_transcript):
        path = write_transcript([assistant_record(10, 5)])
        clock = FakeClock()
        cache = TranscriptStatsCache(ttl=10, reader=CountingReader(), clock=clock)
        first = await cache.get("s1", path)

        async def timed_out(_path: Path) -> None:
            return None

        cache._reader = timed_out
        clock.now += 60

        assert await cache.get("s1", path) is first

    @pytest.mark.asyncio
    async def test_invalidate_forces_rescan(self, write_transcript):
        path = write_transcript([assistant_record(10, 5)])
        reader = CountingReader()
        cache = TranscriptStatsCache(ttl=10, reader=reader, clock=FakeClock())

        await cache.get("s1", path)
        cache.invalidate("s1")
        await cache.get("s1", path)

        assert reader.calls == 2


def slow_scan(path: Path) -> TranscriptStats:
    time.sleep(0.2)
    return TranscriptStats(turn_count=99)


class TestReadTranscriptStats:
    @pytest.mark.asyncio
    async def test_reads_off_the_loop(self, write_transcript):
        path = write_transcript([user_record(), assistant_record(3, 4)])

        stats = await read_transcript_stats(path, timeout=5)

        assert (stats.turn_count, stats.total_tokens_in, stats.total_tokens_out) == (1, 3, 4)

    @pytest.mark.asyncio
    async def test_slow_scan_times_out_as_none(self, write_transcript, monkeypatch):
        path = write_transcript([user_record()])
        monkeypatch.setattr(transcript, "scan_transcript", slow_scan)

        assert await read_transcript_stats(path, timeout=0.01) is None

    @pytest.mark.asyncio
    async def test_timeout_keeps_cached_entry(self, write_transcript, monkeypatch):
        path = write_transcript([user_record()])
        clock = FakeClock()
        cache = TranscriptStatsCache(ttl=10, reader=partial(read_transcript_stats, timeout=5), clock=clock)
        first = await cache.get("s1", path)

        cache._reader = partial(read_transcript_stats, timeout=0.01)
        monkeypatch.setattr(transcript, "scan_transcript", slow_scan)
        with path.open("a") as f:
            f.write('{"type": "user"}\n')

        assert await cache.get("s1", path) is first
        assert first.turn_count == 1
