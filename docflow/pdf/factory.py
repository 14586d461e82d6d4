from docflow.config.settings import Settings
from docflow.logging.logger import Log
from docflow.pdf.base import BasePdfReader
from docflow.pdf.pdfplumber_adapter import PdfPlumberAdapter
from docflow.pdf.pymupdf_adapter import PyMuPdfAdapter


class PdfReaderFactory:
    """Picks the text-layer reader used by the PDF extraction backend.

    ``PDF_ENGINE`` selects the library; both readers return one string per page.
    """

    READERS: dict[str, type[BasePdfReader]] = {
        "pdfplumber": PdfPlumberAdapter,
        "pymupdf": PyMuPdfAdapter,
    }

    @classmethod
    def create(cls, settings: Settings) -> BasePdfReader:
        return cls.for_engine(settings.pdf_engine)

    @classmethod
    def for_engine(cls, engine: str) -> BasePdfReader:
        reader_cls = cls.READERS.get(engine.strip().lower())
        if reader_cls is None:
            raise ValueError(
                f"PDF engine '{engine}' is not supported; "
                f"set PDF_ENGINE to one of {sorted(cls.READERS)}"
            )
        Log.debug(f"Reading PDF text layers with {reader_cls.__name__}")
        return reader_cls()
