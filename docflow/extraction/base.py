from abc import ABC, abstractmethod

from docflow.pipeline.models import ExtractionResult, Item


class BaseExtractionBackend(ABC):
    """Contract for all extraction backends plugged into the stage driver."""

    @abstractmethod
    async def extract(self, item: Item) -> ExtractionResult:
        """Extract structured fields from one document.

        Called once per item, when it completes the Extraction stage.

        Args:
            item: Snapshot of the item being completed (id and metadata).

        Returns:
            ExtractionResult with field values and a confidence in [0, 100].

        Raises:
            ExtractionFailure: if the document cannot be processed.
        """
