from pathlib import Path

from docflow.extraction.exceptions import FileReadError, MissingSourcePathError
from docflow.pipeline.models import Item


class FileLoader:
    """Resolves an item's source path and reads its bytes."""

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root

    def load(self, item: Item) -> bytes:
        """Read document bytes from disk.

        Relative source paths are resolved against ``files_root`` when set.

        Raises:
            MissingSourcePathError: if the item has no source path.
            FileReadError: if the file does not exist or cannot be read.
        """
        path = self.resolve_path(item)
        if not path.is_file():
            raise FileReadError(f"File not found: {path}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise FileReadError(f"Could not read {path}: {exc}") from exc

    def resolve_path(self, item: Item) -> Path:
        if not item.source_path:
            raise MissingSourcePathError(f"Item {item.id} ('{item.name}') has no source path")
        path = Path(item.source_path)
        if not path.is_absolute() and self._files_root is not None:
            path = self._files_root / path
        return path
