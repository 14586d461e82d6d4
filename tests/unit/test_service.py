import pytest

from docflow.config.settings import Settings
from docflow.extraction.callable_backend import CallableExtractionBackend
from docflow.pipeline.exceptions import ItemNotFoundError
from docflow.pipeline.models import DocumentMetadata, DriverOutcome, ExtractionResult, Item, Stage
from docflow.service import build_pipeline


class TestDocumentPipeline:
    @pytest.mark.asyncio
    async def test_submit_wait_and_query(self, fast_settings: Settings) -> None:
        pipeline = build_pipeline(fast_settings)
        seen: list[Item] = []
        pipeline.subscribe(seen.append, terminal_only=True)

        batch = pipeline.submit([DocumentMetadata("claim.pdf", 204800, "application/pdf")])
        outcomes = await pipeline.wait(batch.id)
        await pipeline.close()

        assert outcomes == {batch[0]: DriverOutcome.DONE}
        assert pipeline.get(batch[0]).stage is Stage.DONE
        assert [item.id for item in pipeline.list()] == list(batch)
        assert pipeline.summary()[Stage.DONE] == 1
        assert [item.stage for item in seen] == [Stage.DONE]

    @pytest.mark.asyncio
    async def test_uses_injected_backend(self, fast_settings: Settings) -> None:
        backend = CallableExtractionBackend(lambda item: ExtractionResult({"k": "v"}, 33))
        pipeline = build_pipeline(fast_settings, backend=backend)

        batch = pipeline.submit([DocumentMetadata("a.pdf", 1, "application/pdf")])
        await pipeline.wait()

        assert pipeline.get(batch[0]).result == ExtractionResult({"k": "v"}, 33)
        await pipeline.close()

    @pytest.mark.asyncio
    async def test_cancel_by_batch(self) -> None:
        pipeline = build_pipeline(Settings(submission_stagger_seconds=0))
        batch = pipeline.submit([DocumentMetadata("a.pdf", 1, "application/pdf")])

        assert pipeline.cancel(batch.id) == [batch[0]]
        await pipeline.close()
        assert pipeline.get(batch[0]).stage is Stage.INTAKE

    def test_get_unknown(self, fast_settings: Settings) -> None:
        with pytest.raises(ItemNotFoundError):
            build_pipeline(fast_settings).get("missing")
