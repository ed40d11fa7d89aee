import asyncio
from collections.abc import Callable

from foldspace.events import ObserverEvent
from foldspace.logging import get_logger
from foldspace.utils import generate_id

_logger = get_logger(__name__)

OBSERVER_QUEUE_SIZE = 1000


class Observer:
    """One connected dashboard. Holds the serialized messages still to be sent."""

    def __init__(self, maxsize: int = OBSERVER_QUEUE_SIZE):
        self.id = generate_id()
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize)
        self.closed = False

    def offer(self, message: str) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def next_message(self) -> str | None:
        """Next message to deliver, or None once the observer is closed."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Drop whatever is pending so the sentinel always fits
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)


class BroadcastHub:
    """Best-effort fan-out of observer events.

    broadcast() never awaits and never raises: each observer has its own
    bounded queue drained by its own sender, so a stalled or dead observer
    is dropped without touching delivery to the rest.
    """

    def __init__(self, maxsize: int = OBSERVER_QUEUE_SIZE):
        self._maxsize = maxsize
        self._observers: dict[str, Observer] = {}

    @property
    def client_count(self) -> int:
        return len(self._observers)

    def connect(self, snapshot: Callable[[], ObserverEvent]) -> Observer:
        """Register an observer whose first message is the current full state.

        The snapshot is built and queued in the same step that adds the
        observer, so it neither misses nor repeats any later broadcast.
        """
        observer = Observer(self._maxsize)
        observer.offer(snapshot().to_json())
        self._observers[observer.id] = observer
        _logger.info("Observer %s connected (%d total)", observer.id, len(self._observers))
        return observer

    def disconnect(self, observer: Observer) -> None:
        observer.close()
        if self._observers.pop(observer.id, None) is not None:
            _logger.info("Observer %s disconnected (%d total)", observer.id, len(self._observers))

    def reply(self, observer: Observer, event: ObserverEvent) -> None:
        observer.offer(event.to_json())

    def broadcast(self, event: ObserverEvent) -> None:
        message = event.to_json()
        for observer in list(self._observers.values()):
            if not observer.offer(message):
                _logger.warning("Observer %s is not keeping up, dropping it", observer.id)
                self.disconnect(observer)

    def close(self) -> None:
        for observer in list(self._observers.values()):
            self.disconnect(observer)
