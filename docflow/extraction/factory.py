from pathlib import Path

from docflow.config.settings import Settings
from docflow.extraction.base import BaseExtractionBackend
from docflow.extraction.file_loader import FileLoader
from docflow.extraction.pdf_text_backend import PdfTextExtractionBackend
from docflow.extraction.static_backend import StaticExtractionBackend
from docflow.pdf.factory import PdfReaderFactory


class ExtractionBackendFactory:
    """Creates the extraction backend named by ``settings.extraction_backend``."""

    BACKENDS = ("static", "pdf_text")

    @classmethod
    def create(cls, settings: Settings, files_root: Path | None = None) -> BaseExtractionBackend:
        backend = settings.extraction_backend.lower()
        if backend == "static":
            return StaticExtractionBackend()
        if backend == "pdf_text":
            return PdfTextExtractionBackend(
                file_loader=FileLoader(files_root=files_root or settings.files_root),
                pdf_reader=PdfReaderFactory.create(settings),
            )
        raise ValueError(
            f"Unknown extraction backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
        )
