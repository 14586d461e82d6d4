from docflow.pipeline.models import ErrorKind


class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""

    kind: ErrorKind | None = None


class ValidationError(PipelineError):
    """Raised when submitted document metadata is rejected."""

    kind = ErrorKind.VALIDATION


class ItemNotFoundError(PipelineError):
    """Raised when an operation references an unknown item id."""

    kind = ErrorKind.NOT_FOUND


class BatchNotFoundError(PipelineError):
    """Raised when an operation references an unknown batch id."""

    kind = ErrorKind.NOT_FOUND


class ExtractionFailure(PipelineError):
    """Raised by an extraction backend that cannot process a document."""

    kind = ErrorKind.EXTRACTION_FAILURE

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ItemCancelledError(PipelineError):
    """Raised inside a driver when its cancellation token has fired."""

    kind = ErrorKind.CANCELLED


class InvalidTransitionError(PipelineError):
    """Raised when a registry patch would break an item invariant."""
