import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from docflow.config.settings import Settings
from docflow.extraction.callable_backend import CallableExtractionBackend
from docflow.extraction.static_backend import StaticExtractionBackend
from docflow.pipeline.base import DriverContext, PipelineStep
from docflow.pipeline.cancellation import CancellationToken
from docflow.pipeline.driver import StageDriver, build_stage_driver
from docflow.pipeline.exceptions import ExtractionFailure, ItemCancelledError
from docflow.pipeline.models import (
    DocumentMetadata,
    DriverOutcome,
    ErrorKind,
    ExtractionResult,
    Item,
    Stage,
)
from docflow.pipeline.registry import ItemRegistry


def _step(side_effect: object = None) -> MagicMock:
    step = MagicMock(spec=PipelineStep)
    if side_effect is None:
        step.run = AsyncMock(side_effect=lambda context: context)
    else:
        step.run = AsyncMock(side_effect=side_effect)
    return step


def _registry_with_item() -> tuple[ItemRegistry, str]:
    registry = ItemRegistry()
    item_id = registry.create(DocumentMetadata("claim.pdf", 204800, "application/pdf"))
    return registry, item_id


def _record(registry: ItemRegistry) -> list[Item]:
    changes: list[Item] = []
    registry.subscribe(changes.append)
    return changes


class TestStageDriverSteps:
    @pytest.mark.asyncio
    async def test_runs_steps_in_order(self) -> None:
        calls: list[str] = []
        first = _step(lambda context: (calls.append("first"), context)[1])
        second = _step(lambda context: (calls.append("second"), context)[1])
        failed = _step()
        driver = StageDriver(steps=[first, second], failed_step=failed)

        outcome = await driver.run("item-1")

        assert outcome is DriverOutcome.DONE
        assert calls == ["first", "second"]
        failed.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_extraction_failure_runs_failed_step(self) -> None:
        later = _step()
        failed = _step()
        driver = StageDriver(
            steps=[_step(ExtractionFailure("unreadable scan")), later],
            failed_step=failed,
        )

        outcome = await driver.run("item-1")

        assert outcome is DriverOutcome.FAILED
        later.run.assert_not_called()
        context: DriverContext = failed.run.call_args.args[0]
        assert context.failure is not None
        assert context.failure.reason == "unreadable scan"

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failure(self) -> None:
        failed = _step()
        driver = StageDriver(steps=[_step(OSError("disk unplugged"))], failed_step=failed)

        outcome = await driver.run("item-1")

        assert outcome is DriverOutcome.FAILED
        assert failed.run.call_args.args[0].failure.reason == "disk unplugged"

    @pytest.mark.asyncio
    async def test_cancellation_skips_failed_step(self) -> None:
        failed = _step()
        driver = StageDriver(steps=[_step(ItemCancelledError("stop"))], failed_step=failed)

        outcome = await driver.run("item-1")

        assert outcome is DriverOutcome.CANCELLED
        failed.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_after_cancel_is_ignored(self) -> None:
        token = CancellationToken()
        token.cancel()
        failed = _step()
        driver = StageDriver(steps=[_step(ExtractionFailure("late"))], failed_step=failed)

        outcome = await driver.run("item-1", token)

        assert outcome is DriverOutcome.CANCELLED
        failed.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_step_error_does_not_escape(self) -> None:
        failed = _step(RuntimeError("registry gone"))
        driver = StageDriver(steps=[_step(ExtractionFailure("boom"))], failed_step=failed)

        outcome = await driver.run("item-1")

        assert outcome is DriverOutcome.FAILED


class TestBuiltStageDriver:
    @pytest.mark.asyncio
    async def test_walks_intake_extraction_done(self, fast_settings: Settings) -> None:
        registry, item_id = _registry_with_item()
        changes = _record(registry)
        driver = build_stage_driver(registry, StaticExtractionBackend(), fast_settings)

        outcome = await driver.run(item_id)

        assert outcome is DriverOutcome.DONE
        intake = [c.progress for c in changes if c.stage is Stage.INTAKE]
        extraction = [c.progress for c in changes if c.stage is Stage.EXTRACTION]
        assert intake == [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]
        assert extraction == [0, 15, 30, 45, 60, 75, 90, 100]
        final = registry.get(item_id)
        assert final.stage is Stage.DONE
        assert final.progress == 100
        assert final.result is not None
        assert final.result.confidence == 92
        assert final.error is None

    @pytest.mark.asyncio
    async def test_backend_called_once_with_item(self, fast_settings: Settings) -> None:
        registry, item_id = _registry_with_item()
        extract = MagicMock(return_value=ExtractionResult(fields={}, confidence=80))
        driver = build_stage_driver(registry, CallableExtractionBackend(extract), fast_settings)

        await driver.run(item_id)

        extract.assert_called_once()
        item: Item = extract.call_args.args[0]
        assert item.id == item_id
        assert item.stage is Stage.EXTRACTION
        assert item.progress == 100

    @pytest.mark.asyncio
    async def test_backend_failure_marks_item_failed(self, fast_settings: Settings) -> None:
        registry, item_id = _registry_with_item()

        def extract(item: Item) -> ExtractionResult:
            raise ExtractionFailure("unreadable scan")

        driver = build_stage_driver(registry, CallableExtractionBackend(extract), fast_settings)

        outcome = await driver.run(item_id)

        assert outcome is DriverOutcome.FAILED
        item = registry.get(item_id)
        assert item.stage is Stage.FAILED
        assert item.error is not None
        assert item.error.kind is ErrorKind.EXTRACTION_FAILURE
        assert item.error.detail == "unreadable scan"
        assert item.result is None

    @pytest.mark.asyncio
    async def test_backend_crash_is_recorded_not_raised(self, fast_settings: Settings) -> None:
        registry, item_id = _registry_with_item()
        backend = CallableExtractionBackend(MagicMock(side_effect=KeyError("page")))
        driver = build_stage_driver(registry, backend, fast_settings)

        outcome = await driver.run(item_id)

        assert outcome is DriverOutcome.FAILED
        assert registry.get(item_id).error.kind is ErrorKind.EXTRACTION_FAILURE  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_out_of_range_confidence_fails(self, fast_settings: Settings) -> None:
        registry, item_id = _registry_with_item()
        backend = CallableExtractionBackend(lambda item: ExtractionResult(confidence=140))
        driver = build_stage_driver(registry, backend, fast_settings)

        outcome = await driver.run(item_id)

        assert outcome is DriverOutcome.FAILED
        assert "outside [0, 100]" in (registry.get(item_id).error.detail or "")  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_extraction_timeout(self, fast_settings: Settings) -> None:
        registry, item_id = _registry_with_item()

        async def slow(item: Item) -> ExtractionResult:
            await asyncio.sleep(5)
            return ExtractionResult(confidence=50)

        settings = fast_settings.model_copy(update={"extraction_timeout_seconds": 0.01})
        driver = build_stage_driver(registry, CallableExtractionBackend(slow), settings)

        outcome = await driver.run(item_id)

        assert outcome is DriverOutcome.FAILED
        assert registry.get(item_id).error.detail == "extraction timed out after 0.01s"  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_cancel_freezes_progress(self) -> None:
        registry, item_id = _registry_with_item()
        settings = Settings(intake_tick_interval_seconds=0.02, submission_stagger_seconds=0)
        driver = build_stage_driver(registry, StaticExtractionBackend(), settings)
        token = CancellationToken()

        task = asyncio.create_task(driver.run(item_id, token))
        await asyncio.sleep(0.07)
        token.cancel()
        outcome = await task
        frozen = registry.get(item_id)
        await asyncio.sleep(0.05)

        assert outcome is DriverOutcome.CANCELLED
        assert frozen.stage is Stage.INTAKE
        assert 0 < frozen.progress < 100
        assert registry.get(item_id) == frozen
