import inspect
from collections.abc import Awaitable, Callable

from docflow.extraction.base import BaseExtractionBackend
from docflow.pipeline.models import ExtractionResult, Item

ExtractFunction = Callable[[Item], ExtractionResult | Awaitable[ExtractionResult]]


class CallableExtractionBackend(BaseExtractionBackend):
    """Adapts a plain function or coroutine function to the backend contract."""

    def __init__(self, func: ExtractFunction) -> None:
        self._func = func

    async def extract(self, item: Item) -> ExtractionResult:
        result = self._func(item)
        if inspect.isawaitable(result):
            result = await result
        return result
