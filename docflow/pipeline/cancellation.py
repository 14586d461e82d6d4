import asyncio

from docflow.pipeline.exceptions import ItemCancelledError


class CancellationToken:
    """Cooperative cancellation signal observed by a driver at tick boundaries."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ItemCancelledError("Cancelled before reaching a terminal state")

    async def sleep(self, seconds: float) -> None:
        """Wait up to ``seconds``, waking early if the token is cancelled.

        Raises:
            ItemCancelledError: if the token is or becomes cancelled.
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            await asyncio.sleep(0)
        else:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass
        self.raise_if_cancelled()
