import asyncio
from contextlib import suppress

from foldspace.constants import STATS_HEARTBEAT_INTERVAL
from foldspace.logging import get_logger
from foldspace.server.state import ConsoleState

_logger = get_logger(__name__)


class StatsHeartbeat:
    def __init__(self, state: ConsoleState, interval: float = STATS_HEARTBEAT_INTERVAL):
        self.state = state
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._loop())
        _logger.info("Stats heartbeat started (every %.0fs)", self.interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            _logger.info("Stats heartbeat stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                updated = await self.state.refresh_stats()
            except asyncio.CancelledError:
                raise
            except Exception:
                _logger.exception("Stats heartbeat tick failed")
                continue
            if updated:
                _logger.debug("Stats changed for %d session(s)", updated)
