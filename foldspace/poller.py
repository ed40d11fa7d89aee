import asyncio
from collections.abc import Callable
from contextlib import suppress

from foldspace.constants import REPO_POLL_INTERVAL
from foldspace.git import GitClient
from foldspace.logging import get_logger
from foldspace.models import RepoStatus

_logger = get_logger(__name__)

StatusListener = Callable[[str, RepoStatus], None]


class RepoStatusPoller:
    """One polling task per repository root, shared by every session under it.

    A root becomes active when its first session is watched: one status fetch
    seeds the cache, then a task re-fetches every `interval` seconds. Only a
    structurally different snapshot reaches `on_change`. Releasing the last
    session of a root cancels its task and evicts the cached status.
    """

    def __init__(self, git: GitClient, on_change: StatusListener, interval: float = REPO_POLL_INTERVAL):
        self.git = git
        self.interval = interval
        self._on_change = on_change
        self._roots_by_cwd: dict[str, str | None] = {}
        self._status: dict[str, RepoStatus] = {}
        self._watchers: dict[str, set[str]] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def active_roots(self) -> list[str]:
        return list(self._tasks)

    async def resolve_root(self, cwd: str) -> str | None:
        if cwd in self._roots_by_cwd:
            return self._roots_by_cwd[cwd]
        root = await self.git.repo_root(cwd or ".")
        self._roots_by_cwd[cwd] = root
        return root

    def cached_status(self, root: str) -> RepoStatus | None:
        return self._status.get(root)

    async def watch(self, root: str, session_id: str) -> None:
        sessions = self._watchers.get(root)
        if sessions is not None:
            sessions.add(session_id)
            return

        self._watchers[root] = {session_id}
        _logger.info("Polling %s every %.0fs", root, self.interval)
        await self.poll_once(root)
        # The last session may have gone away while the seed fetch was in flight
        if root in self._watchers and root not in self._tasks:
            self._tasks[root] = asyncio.create_task(self._loop(root))

    def release(self, root: str, session_id: str) -> None:
        sessions = self._watchers.get(root)
        if sessions is None:
            return
        sessions.discard(session_id)
        if sessions:
            return

        del self._watchers[root]
        self._status.pop(root, None)
        task = self._tasks.pop(root, None)
        if task:
            task.cancel()
        _logger.info("Stopped polling %s", root)

    async def poll_once(self, root: str) -> bool:
        """Fetch once; True if the snapshot changed and listeners were told."""
        status = await self.git.status(root)
        if status is None or root not in self._watchers:
            return False
        if self._status.get(root) == status:
            return False
        self._status[root] = status
        self._on_change(root, status)
        return True

    async def _loop(self, root: str) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.poll_once(root)
            except asyncio.CancelledError:
                raise
            except Exception:
                _logger.exception("Status poll failed for %s", root)

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        self._watchers.clear()
        self._status.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
