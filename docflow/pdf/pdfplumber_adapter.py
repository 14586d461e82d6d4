import io

import pdfplumber

from docflow.pdf.base import BasePdfReader
from docflow.pdf.exceptions import PdfExtractionError


class PdfPlumberAdapter(BasePdfReader):
    """Reads PDF text layers using pdfplumber."""

    def read_text(self, pdf_bytes: bytes) -> list[str]:
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                return [(page.extract_text() or "").strip() for page in pdf.pages]
        except Exception as exc:
            raise PdfExtractionError(f"pdfplumber could not read document: {exc}") from exc
