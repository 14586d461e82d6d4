from docflow.extraction.base import BaseExtractionBackend
from docflow.extraction.callable_backend import CallableExtractionBackend
from docflow.extraction.factory import ExtractionBackendFactory
from docflow.extraction.pdf_text_backend import PdfTextExtractionBackend
from docflow.extraction.static_backend import StaticExtractionBackend

__all__ = [
    "BaseExtractionBackend",
    "CallableExtractionBackend",
    "ExtractionBackendFactory",
    "PdfTextExtractionBackend",
    "StaticExtractionBackend",
]
