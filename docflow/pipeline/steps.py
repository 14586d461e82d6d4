import asyncio

from docflow.extraction.base import BaseExtractionBackend
from docflow.logging.logger import Log
from docflow.pipeline.base import DriverContext, PipelineStep
from docflow.pipeline.exceptions import ExtractionFailure
from docflow.pipeline.models import ErrorKind, ExtractionResult, Item, ItemError, Stage
from docflow.pipeline.registry import ItemRegistry


class TickProgressStep(PipelineStep):
    """Advance progress within one stage by a fixed step per tick until 100."""

    def __init__(
        self,
        registry: ItemRegistry,
        stage: Stage,
        progress_step: int,
        interval_seconds: float,
    ) -> None:
        if not 1 <= progress_step <= 100:
            raise ValueError(f"progress_step must be in [1, 100], got {progress_step}")
        self._registry = registry
        self._stage = stage
        self._progress_step = progress_step
        self._interval_seconds = interval_seconds

    async def run(self, context: DriverContext) -> DriverContext:
        item = self._registry.get(context.item_id)
        if item.stage is not self._stage:
            raise ValueError(
                f"Item {context.item_id} is in {item.stage.value}, expected {self._stage.value}"
            )
        progress = item.progress
        while progress < 100:
            await context.token.sleep(self._interval_seconds)
            progress = min(100, progress + self._progress_step)
            context.item = self._registry.update(context.item_id, progress=progress)
        Log.debug(f"Item {context.item_id} finished {self._stage.value}")
        return context


class EnterStageStep(PipelineStep):
    """Settle for a short handoff delay, then move the item into ``stage`` at 0%."""

    def __init__(self, registry: ItemRegistry, stage: Stage, delay_seconds: float) -> None:
        self._registry = registry
        self._stage = stage
        self._delay_seconds = delay_seconds

    async def run(self, context: DriverContext) -> DriverContext:
        await context.token.sleep(self._delay_seconds)
        context.item = self._registry.update(context.item_id, stage=self._stage, progress=0)
        Log.info(f"Item {context.item_id} entered {self._stage.value}")
        return context


class ExtractStep(PipelineStep):
    """Call the extraction backend once and keep its result on the context."""

    def __init__(
        self,
        registry: ItemRegistry,
        backend: BaseExtractionBackend,
        delay_seconds: float = 0.0,
        timeout_seconds: float | None = None,
    ) -> None:
        self._registry = registry
        self._backend = backend
        self._delay_seconds = delay_seconds
        self._timeout_seconds = timeout_seconds

    async def run(self, context: DriverContext) -> DriverContext:
        await context.token.sleep(self._delay_seconds)
        item = self._registry.get(context.item_id)
        result = await self._call_backend(item)
        if not isinstance(result, ExtractionResult):
            raise ExtractionFailure(
                f"Backend returned {type(result).__name__}, expected ExtractionResult"
            )
        if not 0 <= result.confidence <= 100:
            raise ExtractionFailure(f"Confidence {result.confidence} is outside [0, 100]")
        context.result = result
        return context

    async def _call_backend(self, item: Item) -> ExtractionResult:
        try:
            if self._timeout_seconds is None:
                return await self._backend.extract(item)
            return await asyncio.wait_for(
                self._backend.extract(item), timeout=self._timeout_seconds
            )
        except ExtractionFailure:
            raise
        except asyncio.TimeoutError as exc:
            raise ExtractionFailure(
                f"extraction timed out after {self._timeout_seconds:g}s"
            ) from exc
        except Exception as exc:
            raise ExtractionFailure(str(exc) or type(exc).__name__) from exc


class MarkDoneStep(PipelineStep):
    def __init__(self, registry: ItemRegistry) -> None:
        self._registry = registry

    async def run(self, context: DriverContext) -> DriverContext:
        if context.result is None:
            raise ValueError("DriverContext.result must be set before completion")
        context.token.raise_if_cancelled()
        context.item = self._registry.update(
            context.item_id,
            stage=Stage.DONE,
            progress=100,
            result=context.result,
        )
        Log.info(
            f"Item {context.item_id} done with confidence {context.result.confidence}%"
        )
        return context


class MarkFailedStep(PipelineStep):
    def __init__(self, registry: ItemRegistry) -> None:
        self._registry = registry

    async def run(self, context: DriverContext) -> DriverContext:
        if context.failure is None:
            raise ValueError("DriverContext.failure must be set before marking failed")
        context.item = self._registry.update(
            context.item_id,
            stage=Stage.FAILED,
            error=ItemError(kind=ErrorKind.EXTRACTION_FAILURE, detail=context.failure.reason),
        )
        Log.error(f"Item {context.item_id} marked as failed: {context.failure.reason}")
        return context
