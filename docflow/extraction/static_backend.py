"""Canned extraction backend.

No document is read. Useful for local development, demos and tests, and as
a template for real backends: implement BaseExtractionBackend and register
it in ExtractionBackendFactory.
"""

from typing import ClassVar

from docflow.extraction.base import BaseExtractionBackend
from docflow.pipeline.models import ExtractionResult, Item


class StaticExtractionBackend(BaseExtractionBackend):
    """Returns the same forest-rights claim record for every document."""

    DEFAULT_FIELDS: ClassVar[dict[str, str]] = {
        "claim_type": "Individual Forest Rights (IFR)",
        "village": "Koraput Village",
        "district": "Koraput",
        "state": "Odisha",
        "area": "2.5 hectares",
        "applicant": "Ramesh Kumar",
    }
    DEFAULT_CONFIDENCE: ClassVar[int] = 92

    def __init__(
        self,
        fields: dict[str, str] | None = None,
        confidence: int | None = None,
    ) -> None:
        self._fields = dict(fields if fields is not None else self.DEFAULT_FIELDS)
        self._confidence = self.DEFAULT_CONFIDENCE if confidence is None else confidence

    async def extract(self, item: Item) -> ExtractionResult:
        _ = item
        return ExtractionResult(fields=dict(self._fields), confidence=self._confidence)
