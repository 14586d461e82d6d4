from abc import ABC, abstractmethod


class BasePdfReader(ABC):
    """Contract for all PDF text-layer adapters."""

    @abstractmethod
    def read_text(self, pdf_bytes: bytes) -> list[str]:
        """Read the embedded text layer of a PDF, one string per page.

        Scanned pages without a text layer come back as empty strings.

        Raises:
            PdfExtractionError: if the bytes cannot be parsed as a PDF.
        """
