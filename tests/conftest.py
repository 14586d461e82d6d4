import io
from pathlib import Path

import pytest
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from docflow.config.settings import Settings
from docflow.pipeline.models import DocumentMetadata


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a minimal single-page PDF with known text content."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Claim form: Koraput Village")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    """Generate a two-page PDF with known text on each page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Page one content")
    c.showPage()
    c.drawString(72, 720, "Page two content")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def empty_pdf_bytes() -> bytes:
    """Generate a valid PDF with no text content (blank page, like a raw scan)."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.showPage()
    c.save()
    return buf.getvalue()


@pytest.fixture()
def fast_settings() -> Settings:
    """Settings with millisecond cadence and no stagger or settling delays."""
    return Settings(
        intake_tick_interval_seconds=0.001,
        extraction_tick_interval_seconds=0.001,
        stage_handoff_delay_seconds=0,
        completion_delay_seconds=0,
        submission_stagger_seconds=0,
    )


@pytest.fixture()
def claim_metadata() -> DocumentMetadata:
    return DocumentMetadata(name="claim.pdf", size_bytes=204800, media_type="application/pdf")


@pytest.fixture()
def sample_pdf_on_disk(tmp_path: Path, sample_pdf_bytes: bytes) -> Path:
    path = tmp_path / "claim.pdf"
    path.write_bytes(sample_pdf_bytes)
    return path
