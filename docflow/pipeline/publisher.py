import asyncio
import inspect
from collections.abc import Awaitable, Callable

from docflow.logging.logger import Log
from docflow.pipeline.models import Item
from docflow.pipeline.registry import ItemRegistry

ItemObserver = Callable[[Item], Awaitable[None] | None]


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Subscription:
    """One observer with its own queue and delivery task.

    Changes are queued without waiting, so a slow observer only delays its own
    deliveries. One queue per observer keeps each item's changes in order.
    """

    def __init__(
        self,
        callback: ItemObserver,
        terminal_only: bool = False,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self._callback = callback
        self._terminal_only = terminal_only
        self._on_close = on_close
        self._queue: asyncio.Queue[Item | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, item: Item) -> None:
        if self._closed or (self._terminal_only and not item.is_terminal):
            return
        self._ensure_task()
        self._queue.put_nowait(item)

    async def drain(self) -> None:
        """Wait until every change queued so far has been delivered."""
        await self._queue.join()

    async def close(self) -> None:
        """Deliver what is already queued, then stop."""
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()
        if self._task is not None:
            self._queue.put_nowait(None)
            await self._task
            self._task = None

    def _ensure_task(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._deliver())

    async def _deliver(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    return
                await self._invoke(item)
            finally:
                self._queue.task_done()

    async def _invoke(self, item: Item) -> None:
        try:
            outcome = self._callback(item)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            Log.error(f"Observer failed on item {item.id} ({item.stage.value}): {exc}")


class ResultPublisher:
    """Bridges registry change notifications to external observers.

    Updates made on another thread are handed to the event loop the publisher
    was created or first subscribed on.
    """

    def __init__(self, registry: ItemRegistry) -> None:
        self._subscriptions: list[Subscription] = []
        self._loop = _running_loop()
        self._unsubscribe = registry.subscribe(self._publish)

    def subscribe(self, callback: ItemObserver, terminal_only: bool = False) -> Subscription:
        """Deliver every item change (or only Done/Failed ones) to ``callback``.

        ``callback`` may be a plain function or a coroutine function. Delivery
        runs on the event loop, never inside the driver that made the change.
        """
        if self._loop is None:
            self._loop = _running_loop()
        subscription = Subscription(
            callback,
            terminal_only=terminal_only,
            on_close=lambda: self._discard(subscription),
        )
        self._subscriptions.append(subscription)
        return subscription

    async def drain(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.drain()

    async def close(self) -> None:
        self._unsubscribe()
        for subscription in list(self._subscriptions):
            await subscription.close()

    def _publish(self, item: Item) -> None:
        loop = self._loop
        if loop is not None and _running_loop() is not loop:
            # registry updated from another thread; queues belong to the loop
            loop.call_soon_threadsafe(self._offer, item)
        else:
            self._offer(item)

    def _offer(self, item: Item) -> None:
        for subscription in list(self._subscriptions):
            subscription.offer(item)

    def _discard(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


class LoggingObserver:
    """Logs every terminal outcome."""

    def __call__(self, item: Item) -> None:
        if item.result is not None:
            Log.info(
                f"Document '{item.name}' ({item.id}) extracted "
                f"{len(item.result.fields)} fields, confidence {item.result.confidence}%"
            )
        elif item.error is not None:
            Log.warning(
                f"Document '{item.name}' ({item.id}) failed: "
                f"{item.error.kind.value}: {item.error.detail}"
            )
