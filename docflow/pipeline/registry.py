import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from docflow.logging.logger import Log
from docflow.pipeline.exceptions import InvalidTransitionError, ItemNotFoundError
from docflow.pipeline.models import (
    DocumentMetadata,
    ExtractionResult,
    Item,
    ItemError,
    Stage,
    utcnow,
)
from docflow.pipeline.validation import validate_metadata

ItemListener = Callable[[Item], None]

_PATCHABLE_FIELDS = frozenset({"stage", "progress", "result", "error"})

_ALLOWED_TRANSITIONS: dict[Stage, frozenset[Stage]] = {
    Stage.INTAKE: frozenset({Stage.INTAKE, Stage.EXTRACTION, Stage.FAILED}),
    Stage.EXTRACTION: frozenset({Stage.EXTRACTION, Stage.DONE, Stage.FAILED}),
    Stage.DONE: frozenset(),
    Stage.FAILED: frozenset(),
}


class ItemRegistry:
    """Authoritative id -> Item mapping with per-item serialized updates.

    Items are immutable snapshots; ``update`` builds the next snapshot under the
    item's own lock and swaps it in, so readers only ever see whole snapshots.
    Listeners are notified while that lock is held, which keeps one item's
    notifications in the order its updates were applied.
    """

    def __init__(self) -> None:
        self._items: dict[str, Item] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._listeners: list[ItemListener] = []

    def create(self, metadata: DocumentMetadata, batch_id: str | None = None) -> str:
        """Allocate a new item in Intake with progress 0.

        Raises:
            ValidationError: if the metadata has an empty name or size <= 0.
        """
        metadata = validate_metadata(metadata)
        item_id = uuid.uuid4().hex
        item = Item(
            id=item_id,
            name=metadata.name,
            size_bytes=metadata.size_bytes,
            media_type=metadata.media_type,
            source_path=metadata.source_path,
            batch_id=batch_id,
        )
        with self._guard:
            self._items[item_id] = item
            self._locks[item_id] = threading.Lock()
        Log.debug(f"Registered item {item_id} ({metadata.name})")
        return item_id

    def update(self, item_id: str, **patch: Any) -> Item:
        """Apply a partial change to one item and notify listeners.

        Raises:
            ItemNotFoundError: if no item with this id exists.
            InvalidTransitionError: if the patch breaks an item invariant.
        """
        unknown = set(patch) - _PATCHABLE_FIELDS
        if unknown:
            raise InvalidTransitionError(f"Cannot patch fields: {sorted(unknown)}")

        lock = self._lock_for(item_id)
        with lock:
            current = self._items[item_id]
            updated = self._apply(current, patch)
            with self._guard:
                self._items[item_id] = updated
            self._notify(updated)
        return updated

    def get(self, item_id: str) -> Item:
        """Return the current snapshot of one item.

        Raises:
            ItemNotFoundError: if no item with this id exists.
        """
        with self._guard:
            item = self._items.get(item_id)
        if item is None:
            raise ItemNotFoundError(f"Item {item_id} not found")
        return item

    def list_batch(self, batch_id: str) -> list[Item]:
        return [item for item in self.list() if item.batch_id == batch_id]

    def list(self) -> list[Item]:
        """Snapshot of every item in submission order."""
        with self._guard:
            return list(self._items.values())

    def summary(self) -> dict[Stage, int]:
        """Count items per stage (queue overview)."""
        counts = {stage: 0 for stage in Stage}
        for item in self.list():
            counts[item.stage] += 1
        return counts

    def subscribe(self, listener: ItemListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        with self._guard:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._guard:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def __len__(self) -> int:
        with self._guard:
            return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        with self._guard:
            return item_id in self._items

    def _lock_for(self, item_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(item_id)
        if lock is None:
            raise ItemNotFoundError(f"Item {item_id} not found")
        return lock

    def _apply(self, current: Item, patch: dict[str, Any]) -> Item:
        try:
            stage = Stage(patch.get("stage", current.stage))
        except ValueError as exc:
            raise InvalidTransitionError(f"Item {current.id}: {exc}") from exc
        if current.is_terminal:
            raise InvalidTransitionError(
                f"Item {current.id} is already {current.stage.value}; no further changes allowed"
            )
        if stage not in _ALLOWED_TRANSITIONS[current.stage]:
            raise InvalidTransitionError(
                f"Item {current.id}: cannot move from {current.stage.value} to {stage.value}"
            )

        progress = self._next_progress(current, stage, patch)
        result: ExtractionResult | None = patch.get("result", current.result)
        error: ItemError | None = patch.get("error", current.error)

        if stage is Stage.DONE and (result is None or error is not None):
            raise InvalidTransitionError(f"Item {current.id}: Done requires a result and no error")
        if stage is Stage.FAILED and (error is None or result is not None):
            raise InvalidTransitionError(f"Item {current.id}: Failed requires an error and no result")
        if not stage.is_terminal and (result is not None or error is not None):
            raise InvalidTransitionError(
                f"Item {current.id}: result and error are only allowed on terminal stages"
            )
        if result is not None and not 0 <= result.confidence <= 100:
            raise InvalidTransitionError(
                f"Item {current.id}: confidence {result.confidence} is outside [0, 100]"
            )

        return replace(
            current,
            stage=stage,
            progress=progress,
            result=result,
            error=error,
            updated_at=utcnow(),
        )

    def _next_progress(self, current: Item, stage: Stage, patch: dict[str, Any]) -> int:
        if stage is Stage.FAILED:
            progress = patch.get("progress", current.progress)
        elif stage is Stage.DONE:
            if current.progress != 100:
                raise InvalidTransitionError(
                    f"Item {current.id}: Extraction must reach 100 before Done"
                )
            progress = patch.get("progress", 100)
            if progress != 100:
                raise InvalidTransitionError(f"Item {current.id}: Done must carry progress 100")
        elif stage is not current.stage:
            if current.progress != 100:
                raise InvalidTransitionError(
                    f"Item {current.id}: {current.stage.value} must reach 100 before "
                    f"{stage.value}"
                )
            progress = patch.get("progress", 0)
            if progress != 0:
                raise InvalidTransitionError(
                    f"Item {current.id}: progress must reset to 0 when entering {stage.value}"
                )
        else:
            progress = self._checked_progress(current, patch.get("progress", current.progress))
            if progress < current.progress:
                raise InvalidTransitionError(
                    f"Item {current.id}: progress cannot decrease "
                    f"({current.progress} -> {progress}) within {stage.value}"
                )

        return self._checked_progress(current, progress)

    @staticmethod
    def _checked_progress(current: Item, progress: Any) -> int:
        if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
            raise InvalidTransitionError(
                f"Item {current.id}: progress must be an integer in [0, 100], got {progress!r}"
            )
        return progress

    def _notify(self, item: Item) -> None:
        with self._guard:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(item)
            except Exception as exc:
                Log.error(f"Item listener failed for item {item.id}: {exc}")
