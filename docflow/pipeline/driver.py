from collections.abc import Sequence

from docflow.config.settings import Settings
from docflow.extraction.base import BaseExtractionBackend
from docflow.logging.logger import Log
from docflow.pipeline.base import DriverContext, PipelineStep
from docflow.pipeline.cancellation import CancellationToken
from docflow.pipeline.exceptions import ExtractionFailure, ItemCancelledError
from docflow.pipeline.models import DriverOutcome, Stage
from docflow.pipeline.registry import ItemRegistry
from docflow.pipeline.steps import (
    EnterStageStep,
    ExtractStep,
    MarkDoneStep,
    MarkFailedStep,
    TickProgressStep,
)


class StageDriver:
    """Walks one item through its stages: Intake -> Extraction -> Done | Failed.

    Steps run in order against a per-item context. A cancelled token stops the
    driver without touching the item again; any other error is recorded on the
    item by the failure step and never escapes ``run``.
    """

    def __init__(self, steps: Sequence[PipelineStep], failed_step: PipelineStep) -> None:
        self._steps = list(steps)
        self._failed_step = failed_step

    async def run(self, item_id: str, token: CancellationToken | None = None) -> DriverOutcome:
        context = DriverContext(item_id=item_id, token=token or CancellationToken())
        Log.debug(f"Driver started for item {item_id}")
        try:
            for step in self._steps:
                context = await step.run(context)
        except ItemCancelledError:
            Log.info(f"Item {item_id} abandoned: cancelled before reaching a terminal state")
            return DriverOutcome.CANCELLED
        except ExtractionFailure as exc:
            return await self._fail(context, exc)
        except Exception as exc:
            Log.exception(f"Driver for item {item_id} hit an unexpected fault")
            return await self._fail(context, ExtractionFailure(str(exc) or type(exc).__name__))
        return DriverOutcome.DONE

    async def _fail(self, context: DriverContext, failure: ExtractionFailure) -> DriverOutcome:
        if context.token.cancelled:
            Log.info(f"Item {context.item_id} abandoned; ignoring late failure: {failure.reason}")
            return DriverOutcome.CANCELLED
        context.failure = failure
        try:
            await self._failed_step.run(context)
        except Exception as exc:
            Log.error(f"Could not mark item {context.item_id} as failed: {exc}")
        return DriverOutcome.FAILED


def build_stage_driver(
    registry: ItemRegistry,
    backend: BaseExtractionBackend,
    settings: Settings,
) -> StageDriver:
    """Build a StageDriver with the configured cadence and backend."""
    steps: list[PipelineStep] = [
        TickProgressStep(
            registry,
            Stage.INTAKE,
            progress_step=settings.intake_progress_step,
            interval_seconds=settings.intake_tick_interval_seconds,
        ),
        EnterStageStep(
            registry,
            Stage.EXTRACTION,
            delay_seconds=settings.stage_handoff_delay_seconds,
        ),
        TickProgressStep(
            registry,
            Stage.EXTRACTION,
            progress_step=settings.extraction_progress_step,
            interval_seconds=settings.extraction_tick_interval_seconds,
        ),
        ExtractStep(
            registry,
            backend,
            delay_seconds=settings.completion_delay_seconds,
            timeout_seconds=settings.extraction_timeout_seconds,
        ),
        MarkDoneStep(registry),
    ]
    return StageDriver(steps=steps, failed_step=MarkFailedStep(registry))
