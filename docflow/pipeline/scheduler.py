import asyncio
import uuid
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from docflow.config.settings import Settings
from docflow.logging.logger import Log
from docflow.pipeline.cancellation import CancellationToken
from docflow.pipeline.driver import StageDriver
from docflow.pipeline.exceptions import BatchNotFoundError, ItemCancelledError, ItemNotFoundError
from docflow.pipeline.models import DocumentMetadata, DriverOutcome, format_file_size
from docflow.pipeline.registry import ItemRegistry
from docflow.pipeline.validation import validate_batch


@dataclass(frozen=True)
class Batch(Sequence[str]):
    """Ids of the items created by one submission, in submission order."""

    id: str
    item_ids: tuple[str, ...]

    def __getitem__(self, index: int) -> str:  # type: ignore[override]
        return self.item_ids[index]

    def __len__(self) -> int:
        return len(self.item_ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self.item_ids)


class Scheduler:
    """Starts and owns one independent stage driver task per submitted item."""

    def __init__(
        self,
        registry: ItemRegistry,
        driver: StageDriver,
        settings: Settings,
    ) -> None:
        self._registry = registry
        self._driver = driver
        self._settings = settings
        self._batches: dict[str, Batch] = {}
        self._tokens: dict[str, CancellationToken] = {}
        self._tasks: dict[str, asyncio.Task[DriverOutcome]] = {}

    def submit(self, documents: Sequence[DocumentMetadata | Mapping[str, Any]]) -> Batch:
        """Create one item per document and start a driver for each.

        Must be called with a running event loop. Every entry is validated
        before any item is created.

        Raises:
            ValidationError: if any entry has an empty name or size <= 0.
        """
        # fail before creating items when no loop is running
        asyncio.get_running_loop()
        metadata = validate_batch(
            documents,
            self._settings.allowed_media_types,
            max_size_bytes=self._settings.max_size_bytes,
        )

        batch_id = uuid.uuid4().hex
        item_ids = tuple(self._registry.create(m, batch_id=batch_id) for m in metadata)
        batch = Batch(id=batch_id, item_ids=item_ids)
        self._batches[batch_id] = batch

        for index, (item_id, meta) in enumerate(zip(item_ids, metadata)):
            token = CancellationToken()
            self._tokens[item_id] = token
            delay = index * self._settings.submission_stagger_seconds
            self._tasks[item_id] = asyncio.create_task(
                self._run_driver(item_id, token, delay), name=f"driver-{item_id}"
            )
            Log.debug(
                f"Queued '{meta.name}' ({format_file_size(meta.size_bytes)}, "
                f"{meta.media_type}) as item {item_id}"
            )

        Log.info(f"Batch {batch_id}: {len(item_ids)} document(s) are being processed")
        return batch

    def get_batch(self, batch_id: str) -> Batch:
        batch = self._batches.get(batch_id)
        if batch is None:
            raise BatchNotFoundError(f"Batch {batch_id} not found")
        return batch

    def batches(self) -> list[Batch]:
        return list(self._batches.values())

    def cancel_batch(self, batch_id: str) -> list[str]:
        """Stop every driver of a batch at its next tick boundary.

        Returns the ids of items that were still non-terminal.

        Raises:
            BatchNotFoundError: if no batch with this id exists.
        """
        batch = self.get_batch(batch_id)
        cancelled = [item_id for item_id in batch if self._cancel(item_id)]
        Log.info(f"Batch {batch_id}: cancelled {len(cancelled)} of {len(batch)} item(s)")
        return cancelled

    def cancel_item(self, item_id: str) -> bool:
        """Stop one item's driver. Returns False if the item is already terminal.

        Raises:
            ItemNotFoundError: if no item with this id exists.
        """
        if item_id not in self._tokens:
            raise ItemNotFoundError(f"Item {item_id} not found")
        return self._cancel(item_id)

    def is_cancelled(self, item_id: str) -> bool:
        token = self._tokens.get(item_id)
        if token is None:
            raise ItemNotFoundError(f"Item {item_id} not found")
        return token.cancelled and not self._registry.get(item_id).is_terminal

    def outcome(self, item_id: str) -> DriverOutcome | None:
        """How the item's driver ended, or None while it is still running."""
        task = self._tasks.get(item_id)
        if task is None:
            raise ItemNotFoundError(f"Item {item_id} not found")
        if not task.done():
            return None
        if task.cancelled():
            return DriverOutcome.CANCELLED
        return task.result()

    async def wait(self, batch_id: str | None = None) -> dict[str, DriverOutcome]:
        """Wait for the drivers of one batch (or of every batch) to finish.

        Cancelling this wait, for example through ``asyncio.wait_for``, leaves
        the drivers running. Use ``cancel_batch`` or ``shutdown`` to stop them.
        """
        if batch_id is None:
            item_ids = list(self._tasks)
        else:
            item_ids = list(self.get_batch(batch_id))
        tasks = [asyncio.shield(self._tasks[item_id]) for item_id in item_ids]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        outcomes: dict[str, DriverOutcome] = {}
        for item_id, result in zip(item_ids, results):
            if isinstance(result, DriverOutcome):
                outcomes[item_id] = result
            elif isinstance(result, asyncio.CancelledError):
                outcomes[item_id] = DriverOutcome.CANCELLED
            else:
                Log.error(f"Driver task for item {item_id} crashed: {result}")
                outcomes[item_id] = DriverOutcome.FAILED
        return outcomes

    async def shutdown(self) -> None:
        """Cancel every driver and wait for all of them to stop."""
        for item_id in list(self._tokens):
            self._cancel(item_id)
        await self.wait()

    def _cancel(self, item_id: str) -> bool:
        if self._registry.get(item_id).is_terminal:
            return False
        self._tokens[item_id].cancel()
        return True

    async def _run_driver(
        self,
        item_id: str,
        token: CancellationToken,
        delay_seconds: float,
    ) -> DriverOutcome:
        try:
            await token.sleep(delay_seconds)
        except ItemCancelledError:
            Log.info(f"Item {item_id} cancelled before its driver started")
            return DriverOutcome.CANCELLED
        return await self._driver.run(item_id, token)
