"""Validates submitted document metadata before any item is created."""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from docflow.pipeline.exceptions import ValidationError
from docflow.pipeline.models import DocumentMetadata, format_file_size


def validate_metadata(
    raw: DocumentMetadata | Mapping[str, Any],
    allowed_media_types: Iterable[str] = (),
    max_size_bytes: int | None = None,
) -> DocumentMetadata:
    """Check one submission entry and return it as DocumentMetadata.

    Raises:
        ValidationError: on empty name, non-positive size, size above
            ``max_size_bytes`` (when set) or a media type outside
            ``allowed_media_types`` (when that list is non-empty).
    """
    metadata = raw if isinstance(raw, DocumentMetadata) else DocumentMetadata.from_mapping(raw)

    if not isinstance(metadata.name, str) or not metadata.name.strip():
        raise ValidationError("Document name must be a non-empty string")
    if isinstance(metadata.size_bytes, bool) or not isinstance(metadata.size_bytes, int):
        raise ValidationError(f"Document '{metadata.name}': size must be an integer")
    if metadata.size_bytes <= 0:
        raise ValidationError(
            f"Document '{metadata.name}': size must be greater than 0, got {metadata.size_bytes}"
        )
    if max_size_bytes is not None and metadata.size_bytes > max_size_bytes:
        raise ValidationError(
            f"Document '{metadata.name}': size {format_file_size(metadata.size_bytes)} "
            f"exceeds the limit of {format_file_size(max_size_bytes)}"
        )
    if not isinstance(metadata.media_type, str):
        raise ValidationError(f"Document '{metadata.name}': media type must be a string")

    allowed = {t.lower() for t in allowed_media_types}
    if allowed and metadata.media_type.lower() not in allowed:
        raise ValidationError(
            f"Document '{metadata.name}': media type '{metadata.media_type}' is not accepted. "
            f"Choose from: {sorted(allowed)}"
        )
    return metadata


def validate_batch(
    documents: Sequence[DocumentMetadata | Mapping[str, Any]],
    allowed_media_types: Iterable[str] = (),
    max_size_bytes: int | None = None,
) -> list[DocumentMetadata]:
    """Validate a whole batch up front so a bad entry creates no items at all."""
    allowed = list(allowed_media_types)
    return [
        _validate_entry(index, entry, allowed, max_size_bytes)
        for index, entry in enumerate(documents)
    ]


def _validate_entry(
    index: int,
    entry: DocumentMetadata | Mapping[str, Any],
    allowed: list[str],
    max_size_bytes: int | None,
) -> DocumentMetadata:
    if not isinstance(entry, (DocumentMetadata, Mapping)):
        raise ValidationError(f"Entry {index}: expected document metadata, got {type(entry).__name__}")
    try:
        return validate_metadata(entry, allowed, max_size_bytes)
    except ValidationError as exc:
        raise ValidationError(f"Entry {index}: {exc}") from exc
