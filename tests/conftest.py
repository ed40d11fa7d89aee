import json
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
import pytest_asyncio

from foldspace.config import Config
from foldspace.events import ObserverEvent
from foldspace.git import GitInfo
from foldspace.hub import BroadcastHub
from foldspace.models import RepoStatus
from foldspace.server.state import ConsoleState


class FakeGit:
    """GitClient stand-in: answers from dicts, records every call."""

    def __init__(self):
        self.roots: dict[str, str | None] = {}
        self.statuses: dict[str, RepoStatus | None] = {}
        self.info_result = GitInfo()
        self.root_calls: list[str] = []
        self.status_calls: list[str] = []

    async def repo_root(self, cwd: str) -> str | None:
        self.root_calls.append(cwd)
        return self.roots.get(cwd)

    async def status(self, root: str) -> RepoStatus | None:
        self.status_calls.append(root)
        return self.statuses.get(root)

    async def info(self, cwd: str) -> GitInfo:
        return self.info_result


class RecordingHub(BroadcastHub):
    def __init__(self):
        super().__init__()
        self.events: list[ObserverEvent] = []

    def broadcast(self, event: ObserverEvent) -> None:
        self.events.append(event)
        super().broadcast(event)

    def of_type(self, event_type: str) -> list[ObserverEvent]:
        return [e for e in self.events if e.type == event_type]


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        claude_dir=tmp_path / "claude",
        repo_poll_interval=3600,
        heartbeat_interval=3600,
        stats_cache_ttl=10,
        subprocess_timeout=5,
    )


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def hub() -> RecordingHub:
    return RecordingHub()


@pytest_asyncio.fixture
async def state(config: Config, hub: RecordingHub, fake_git: FakeGit) -> AsyncGenerator[ConsoleState]:
    state = ConsoleState(config, hub, git=fake_git)
    yield state
    await state.close()


@pytest.fixture
def write_transcript(tmp_path: Path) -> Callable[..., Path]:
    def write(records: list[dict | str], name: str = "transcript.jsonl") -> Path:
        path = tmp_path / name
        lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
        path.write_text("\n".join(lines) + "\n")
        return path

    return write


def user_record(text: str = "hi") -> dict:
    return {"type": "user", "message": {"role": "user", "content": text}}


def assistant_record(
    input_tokens: int,
    output_tokens: int,
    cache_read: int = 0,
    model: str = "claude-sonnet-4-5",
) -> dict:
    return {
        "type": "assistant",
        "message": {
            "model": model,
            "usage": {
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "cache_read_input_tokens": cache_read,
            },
        },
    }
