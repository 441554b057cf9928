"""Authoritative in-memory dataset with write-through persistence."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Literal, Optional

from collectory.classification.models import ClassificationResult
from collectory.state import StorageRepository
from collectory.state.models import AppData, CollectionItem

from . import operations

LOGGER = logging.getLogger(__name__)

Listener = Callable[[AppData], None]
Transform = Callable[[AppData], AppData]
OrphanPolicy = Literal["keep", "drop"]


class CollectionStore:
    """Hold the single dataset, apply transformations, and persist every change.

    Consumers read :attr:`data` and register listeners via :meth:`subscribe`; all
    mutations go through :meth:`dispatch` so there is exactly one writer.
    """

    def __init__(
        self,
        repository: StorageRepository,
        *,
        orphan_policy: OrphanPolicy = "keep",
    ) -> None:
        self._repository = repository
        self._orphan_policy = orphan_policy
        self._listeners: List[Listener] = []
        self._data = self._apply_orphan_policy(repository.load(), source="stored data")

    @property
    def data(self) -> AppData:
        """Return the current dataset."""
        return self._data

    @property
    def repository(self) -> StorageRepository:
        return self._repository

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for change notifications.

        Returns:
            Callable[[], None]: Function that removes the listener again.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def dispatch(self, transform: Transform) -> AppData:
        """Apply ``transform`` and, when it changed anything, save and notify.

        Args:
            transform: Pure function producing the next dataset.

        Returns:
            AppData: The dataset after the transformation.
        """
        updated = transform(self._data)
        if updated is self._data:
            return self._data
        self._repository.save(updated)
        self._data = updated
        for listener in list(self._listeners):
            listener(updated)
        return updated

    def create_collection(self, name: str, *, description: Optional[str] = None) -> AppData:
        return self.dispatch(
            lambda data: operations.create_collection(data, name, description=description)
        )

    def rename_collection(self, collection_id: str, name: str) -> AppData:
        return self.dispatch(lambda data: operations.rename_collection(data, collection_id, name))

    def delete_collection(self, collection_id: str) -> AppData:
        return self.dispatch(lambda data: operations.delete_collection(data, collection_id))

    def delete_item(self, item_id: str) -> AppData:
        return self.dispatch(lambda data: operations.delete_item(data, item_id))

    def add_item(
        self, collection_id: str, result: ClassificationResult, image_url: str
    ) -> CollectionItem:
        """Append an item and return it."""
        item = operations.build_item(self._data, collection_id, result, image_url)
        self.dispatch(lambda data: data.model_copy(update={"items": [*data.items, item]}))
        return item

    def replace(self, data: AppData) -> AppData:
        """Replace the whole dataset."""
        return self.dispatch(lambda _: data)

    def import_file(self, path: Path) -> AppData:
        """Replace the dataset with the contents of a backup file.

        Raises:
            DataImportError: If the file is unreadable; the current data is untouched.
        """
        imported = self._repository.import_from_file(path)
        imported = self._apply_orphan_policy(imported, source=str(path))
        LOGGER.info(
            "Imported %d collection(s) and %d item(s) from %s",
            len(imported.collections),
            len(imported.items),
            path,
        )
        return self.replace(imported)

    def export(self, directory: Path) -> Path:
        """Write a backup of the current dataset into ``directory``."""
        return self._repository.export_to_file(self._data, directory)

    def _apply_orphan_policy(self, data: AppData, *, source: str) -> AppData:
        orphans = operations.find_orphans(data)
        if not orphans:
            return data
        if self._orphan_policy == "drop":
            LOGGER.warning("Dropping %d orphaned item(s) from %s.", len(orphans), source)
            return operations.drop_orphans(data)
        LOGGER.warning(
            "%d item(s) in %s reference unknown collections: %s",
            len(orphans),
            source,
            ", ".join(item.id for item in orphans),
        )
        return data


__all__ = ["CollectionStore", "Listener", "Transform", "OrphanPolicy"]
