import asyncio
import mimetypes
import sys
from pathlib import Path

from docflow.config.settings import Settings
from docflow.logging.logger import Log
from docflow.pipeline.exceptions import ValidationError
from docflow.pipeline.models import DocumentMetadata, DriverOutcome, Item
from docflow.pipeline.publisher import LoggingObserver
from docflow.service import build_pipeline


def metadata_for(path: Path) -> DocumentMetadata:
    """Describe a file on disk as submission metadata."""
    media_type, _ = mimetypes.guess_type(path.name)
    size_bytes = path.stat().st_size if path.is_file() else 0
    return DocumentMetadata(
        name=path.name,
        size_bytes=size_bytes,
        media_type=media_type or "application/octet-stream",
        source_path=str(path.resolve()),
    )


def _log_progress(item: Item) -> None:
    if not item.is_terminal:
        Log.debug(f"{item.name}: {item.stage.value} {item.progress}%")


async def run(paths: list[Path], settings: Settings) -> int:
    """Submit files as one batch and wait for every item. Returns an exit code."""
    pipeline = build_pipeline(settings)
    pipeline.subscribe(_log_progress)
    pipeline.subscribe(LoggingObserver(), terminal_only=True)
    try:
        pipeline.submit([metadata_for(path) for path in paths])
    except ValidationError as exc:
        Log.error(f"Submission rejected: {exc}")
        return 2
    try:
        outcomes = await pipeline.wait()
    finally:
        await pipeline.close()

    summary = pipeline.summary()
    Log.info(", ".join(f"{stage.value}: {count}" for stage, count in summary.items()))
    return 0 if all(o is DriverOutcome.DONE for o in outcomes.values()) else 1


def main(argv: list[str] | None = None) -> int:
    """Entry point: load settings -> configure logging -> process the given files."""
    args = sys.argv[1:] if argv is None else argv
    settings = Settings()
    Log.configure(settings.log_level)
    if not args:
        Log.error("Usage: python -m docflow.main FILE [FILE ...]")
        return 2
    try:
        return asyncio.run(run([Path(arg) for arg in args], settings))
    except KeyboardInterrupt:
        Log.info("Interrupted, shutting down")
        return 130


if __name__ == "__main__":
    sys.exit(main())
