from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from docflow.config.settings import Settings
from docflow.extraction.base import BaseExtractionBackend
from docflow.extraction.factory import ExtractionBackendFactory
from docflow.pipeline.driver import build_stage_driver
from docflow.pipeline.models import DocumentMetadata, DriverOutcome, Item, Stage
from docflow.pipeline.publisher import ItemObserver, ResultPublisher, Subscription
from docflow.pipeline.registry import ItemRegistry
from docflow.pipeline.scheduler import Batch, Scheduler


class DocumentPipeline:
    """Facade over registry, scheduler and publisher for one process."""

    def __init__(
        self,
        registry: ItemRegistry,
        scheduler: Scheduler,
        publisher: ResultPublisher,
    ) -> None:
        self.registry = registry
        self.scheduler = scheduler
        self.publisher = publisher

    def submit(self, documents: Sequence[DocumentMetadata | Mapping[str, Any]]) -> Batch:
        return self.scheduler.submit(documents)

    def cancel(self, batch_id: str) -> list[str]:
        return self.scheduler.cancel_batch(batch_id)

    def get(self, item_id: str) -> Item:
        return self.registry.get(item_id)

    def list(self) -> list[Item]:
        return self.registry.list()

    def summary(self) -> dict[Stage, int]:
        return self.registry.summary()

    def subscribe(self, callback: ItemObserver, terminal_only: bool = False) -> Subscription:
        return self.publisher.subscribe(callback, terminal_only=terminal_only)

    async def wait(self, batch_id: str | None = None) -> dict[str, DriverOutcome]:
        """Wait for drivers to finish and for observers to see every change."""
        outcomes = await self.scheduler.wait(batch_id)
        await self.publisher.drain()
        return outcomes

    async def close(self) -> None:
        await self.scheduler.shutdown()
        await self.publisher.close()


def build_pipeline(
    settings: Settings,
    backend: BaseExtractionBackend | None = None,
    files_root: Path | None = None,
) -> DocumentPipeline:
    """Build a DocumentPipeline with the configured backend unless one is given."""
    registry = ItemRegistry()
    publisher = ResultPublisher(registry)
    if backend is None:
        backend = ExtractionBackendFactory.create(settings, files_root=files_root)
    driver = build_stage_driver(registry, backend, settings)
    scheduler = Scheduler(registry, driver, settings)
    return DocumentPipeline(registry=registry, scheduler=scheduler, publisher=publisher)
