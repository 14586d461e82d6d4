from abc import ABC, abstractmethod
from dataclasses import dataclass

from docflow.pipeline.cancellation import CancellationToken
from docflow.pipeline.exceptions import ExtractionFailure
from docflow.pipeline.models import ExtractionResult, Item


@dataclass(slots=True)
class DriverContext:
    item_id: str
    token: CancellationToken
    item: Item | None = None
    result: ExtractionResult | None = None
    failure: ExtractionFailure | None = None


class PipelineStep(ABC):
    @abstractmethod
    async def run(self, context: DriverContext) -> DriverContext:
        raise NotImplementedError
