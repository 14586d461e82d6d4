import pymupdf

from docflow.pdf.base import BasePdfReader
from docflow.pdf.exceptions import PdfExtractionError


class PyMuPdfAdapter(BasePdfReader):
    """Reads PDF text layers using PyMuPDF."""

    def read_text(self, pdf_bytes: bytes) -> list[str]:
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                return [page.get_text().strip() for page in doc]
        except Exception as exc:
            raise PdfExtractionError(f"pymupdf could not read document: {exc}") from exc
