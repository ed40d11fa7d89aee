import asyncio

from foldspace.config import Config, get_config
from foldspace.git import GitClient
from foldspace.host.mise import MiseInspector
from foldspace.hub import BroadcastHub
from foldspace.logging import get_logger
from foldspace.server.heartbeat import StatsHeartbeat
from foldspace.server.state import ConsoleState

_logger = get_logger(__name__)


class Runtime:
    def __init__(self, config: Config | None = None, git: GitClient | None = None):
        self.config = config or get_config()
        self.hub = BroadcastHub()
        self.state = ConsoleState(self.config, self.hub, git=git)
        self.heartbeat = StatsHeartbeat(self.state, interval=self.config.heartbeat_interval)
        self.mise = MiseInspector(
            cwds=lambda: [s.cwd for s in self.state.list_sessions()],
            timeout=self.config.subprocess_timeout,
            ttl=self.config.mise_cache_ttl,
        )
        self._connected = False

    async def connect(self) -> None:
        if self._connected:
            return
        self.heartbeat.start()
        self._connected = True

    def health(self) -> dict:
        return {
            "ok": True,
            "sessions": self.state.session_count,
            "clients": self.hub.client_count,
        }

    async def close(self) -> None:
        await self.heartbeat.stop()
        await self.state.close()
        self.hub.close()
        self._connected = False


_runtime: Runtime | None = None
_runtime_lock = asyncio.Lock()


async def get_runtime_async() -> Runtime:
    global _runtime
    async with _runtime_lock:
        if _runtime is None:
            _runtime = Runtime()
            await _runtime.connect()
    return _runtime


def get_runtime() -> Runtime:
    if _runtime is None:
        raise RuntimeError("Runtime not initialized. Call get_runtime_async() first.")
    if not _runtime._connected:
        raise RuntimeError("Runtime not connected. Call await runtime.connect() first.")
    return _runtime


async def reset_runtime() -> None:
    global _runtime
    if _runtime is not None:
        await _runtime.close()
        _runtime = None
