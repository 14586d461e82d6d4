import asyncio

from docflow.extraction.base import BaseExtractionBackend
from docflow.extraction.exceptions import SourceUnavailableError
from docflow.extraction.file_loader import FileLoader
from docflow.logging.logger import Log
from docflow.pdf.base import BasePdfReader
from docflow.pdf.exceptions import PdfExtractionError
from docflow.pipeline.exceptions import ExtractionFailure
from docflow.pipeline.models import ExtractionResult, Item

PDF_MEDIA_TYPE = "application/pdf"


class PdfTextExtractionBackend(BaseExtractionBackend):
    """Extracts the embedded text layer of PDF documents.

    Confidence is the share of pages that carry text. A document with no text
    on any page is a scan this backend cannot read.
    """

    def __init__(self, file_loader: FileLoader, pdf_reader: BasePdfReader) -> None:
        self._file_loader = file_loader
        self._pdf_reader = pdf_reader

    async def extract(self, item: Item) -> ExtractionResult:
        if item.media_type.lower() != PDF_MEDIA_TYPE:
            raise ExtractionFailure(f"unsupported media type '{item.media_type}'")
        return await asyncio.to_thread(self._extract_sync, item)

    def _extract_sync(self, item: Item) -> ExtractionResult:
        try:
            raw_bytes = self._file_loader.load(item)
            pages = self._pdf_reader.read_text(raw_bytes)
        except (SourceUnavailableError, PdfExtractionError) as exc:
            raise ExtractionFailure(str(exc)) from exc

        Log.debug(f"Read {len(raw_bytes)} bytes, {len(pages)} page(s) for item {item.id}")
        pages_with_text = sum(1 for page in pages if page)
        if not pages or pages_with_text == 0:
            raise ExtractionFailure("unreadable scan")

        text = "\n".join(page for page in pages if page)
        return ExtractionResult(
            fields={
                "text": text,
                "pages": str(len(pages)),
                "characters": str(len(text)),
            },
            confidence=round(100 * pages_with_text / len(pages)),
        )
