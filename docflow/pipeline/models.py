from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Stage(str, Enum):
    """Lifecycle stage of a submitted document."""

    INTAKE = "Intake"
    EXTRACTION = "Extraction"
    DONE = "Done"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.DONE, Stage.FAILED)


class ErrorKind(str, Enum):
    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFound"
    EXTRACTION_FAILURE = "ExtractionFailure"
    CANCELLED = "Cancelled"


class DriverOutcome(str, Enum):
    """How a stage driver finished."""

    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


def format_file_size(size_bytes: int) -> str:
    """Human-readable size: 204800 -> '200 KB'."""
    if size_bytes <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    value = float(size_bytes)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {units[unit]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DocumentMetadata:
    """Immutable metadata captured when a document is submitted."""

    name: str
    size_bytes: int
    media_type: str
    source_path: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "DocumentMetadata":
        """Build metadata from a plain mapping (e.g. a decoded upload form)."""
        source_path = raw.get("source_path")
        return cls(
            name=raw.get("name", ""),
            size_bytes=raw.get("size_bytes", 0),
            media_type=raw.get("media_type", ""),
            source_path=str(source_path) if source_path is not None else None,
        )


@dataclass(frozen=True)
class ExtractionResult:
    """Structured fields extracted from a document plus a confidence score."""

    fields: dict[str, str] = field(default_factory=dict)
    confidence: int = 0


@dataclass(frozen=True)
class ItemError:
    kind: ErrorKind
    detail: str | None = None


@dataclass(frozen=True)
class Item:
    """Snapshot of one submitted document. The registry swaps snapshots on update."""

    id: str
    name: str
    size_bytes: int
    media_type: str
    source_path: str | None = None
    batch_id: str | None = None
    stage: Stage = Stage.INTAKE
    progress: int = 0
    result: ExtractionResult | None = None
    error: ItemError | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    @property
    def metadata(self) -> DocumentMetadata:
        return DocumentMetadata(
            name=self.name,
            size_bytes=self.size_bytes,
            media_type=self.media_type,
            source_path=self.source_path,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready view for rendering layers and downstream stores."""
        return {
            "id": self.id,
            "name": self.name,
            "size_bytes": self.size_bytes,
            "media_type": self.media_type,
            "batch_id": self.batch_id,
            "stage": self.stage.value,
            "progress": self.progress,
            "result": (
                {"fields": dict(self.result.fields), "confidence": self.result.confidence}
                if self.result is not None
                else None
            ),
            "error": (
                {"kind": self.error.kind.value, "detail": self.error.detail}
                if self.error is not None
                else None
            ),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
