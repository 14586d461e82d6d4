class SourceUnavailableError(Exception):
    """Base exception for document bytes that cannot be obtained."""


class MissingSourcePathError(SourceUnavailableError):
    """Raised when an item carries no source path to read from."""


class FileReadError(SourceUnavailableError):
    """Raised when a file cannot be read from disk."""
