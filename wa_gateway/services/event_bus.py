import asyncio
from typing import Awaitable, Callable, Optional

from wa_gateway.logging_config import get_logger
from wa_gateway.services.events import GatewayEvent

logger = get_logger("event_bus")

_STOP = object()


class EventBus:
    """Single ordered channel; events are dispatched one at a time, in publish order."""

    def __init__(self, dispatch: Callable[[GatewayEvent], Awaitable[None]]):
        self._dispatch = dispatch
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def publish(self, event: GatewayEvent) -> None:
        self._queue.put_nowait(event)

    async def run(self) -> None:
        while True:
            event = await self._queue.get()
            if event is _STOP:
                break
            await self._handle(event)

    async def drain(self) -> int:
        """Dispatch queued events, including ones published meanwhile, until empty."""
        handled = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is _STOP:
                continue
            await self._handle(event)
            handled += 1
        return handled

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run())
        logger.info("Event bus started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._queue.put_nowait(_STOP)
        await self._task
        self._task = None
        logger.info("Event bus stopped")

    async def _handle(self, event: GatewayEvent) -> None:
        try:
            await self._dispatch(event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "Event dispatch failed",
                extra={"context": {"event": type(event).__name__, "error": str(exc)}},
                exc_info=True,
            )
