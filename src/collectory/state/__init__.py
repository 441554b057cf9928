"""Persistence helpers for the collection dataset."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError

from .errors import DataImportError, StateError
from .models import AppData, Collection, CollectionItem, default_app_data
from .storage import KeyValueStore, LocalStorage

LOGGER = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", Collection, CollectionItem)

STORAGE_KEY = "COLLECTION_MASTER_DATA"
EXPORT_FILENAME_TEMPLATE = "collection_backup_{stamp}.json"


class StorageRepository:
    """Load and persist the whole dataset as a single JSON document."""

    def __init__(self, storage: KeyValueStore, *, key: str = STORAGE_KEY) -> None:
        """Initialize the repository.

        Args:
            storage: Key-value store that holds the serialized document.
            key: Key under which the document is stored.
        """
        self._storage = storage
        self._key = key

    @property
    def key(self) -> str:
        """Return the storage key used for the dataset."""
        return self._key

    def load(self) -> AppData:
        """Load the stored dataset.

        Missing data yields the seed collections. An unreadable blob is logged, copied
        to ``<key>.corrupt`` and replaced by the seed collections. Individual records
        that do not fit the expected shape are dropped and the rest are kept.

        Returns:
            AppData: Stored dataset, or the default dataset.
        """
        raw = self._storage.get_item(self._key)
        if not raw:
            return default_app_data()

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Stored collection data is not valid JSON; using defaults: %s", exc)
            self._preserve(raw)
            return default_app_data()

        if not isinstance(payload, dict):
            LOGGER.warning("Stored collection data is not an object; using defaults.")
            self._preserve(raw)
            return default_app_data()

        try:
            return AppData.model_validate(payload)
        except ValidationError as exc:
            LOGGER.warning("Stored collection data has invalid records: %s", exc)
        self._preserve(raw)
        return AppData(
            collections=_valid_records(payload.get("collections"), Collection),
            items=_valid_records(payload.get("items"), CollectionItem),
        )

    def save(self, data: AppData) -> None:
        """Overwrite the stored document with ``data``.

        Args:
            data: Dataset to serialize.

        Raises:
            StateError: If the underlying store cannot be written.
        """
        try:
            self._storage.set_item(self._key, serialize(data))
        except OSError as exc:
            raise StateError(f"Unable to save collection data: {exc}") from exc
        LOGGER.debug(
            "Saved %d collection(s) and %d item(s).", len(data.collections), len(data.items)
        )

    def export_to_file(
        self, data: AppData, directory: Path, *, timestamp_ms: int | None = None
    ) -> Path:
        """Write a pretty-printed backup into ``directory``.

        Args:
            data: Dataset to export.
            directory: Destination directory, created when missing.
            timestamp_ms: Epoch milliseconds used in the filename (defaults to now).

        Returns:
            Path: Path of the written backup file.
        """
        stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
        directory = directory.expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / EXPORT_FILENAME_TEMPLATE.format(stamp=stamp)
        target.write_text(serialize(data, indent=2), encoding="utf-8")
        LOGGER.info("Exported collection data to %s", target)
        return target

    def import_from_file(self, path: Path) -> AppData:
        """Read a backup file.

        Args:
            path: Backup file to read.

        Returns:
            AppData: Parsed dataset. Cross-references are not checked here.

        Raises:
            DataImportError: If the file cannot be read or is not collection data.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DataImportError(f"Unable to read import file {path}: {exc}") from exc

        try:
            payload: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DataImportError(f"Import file is not valid JSON: {exc}") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("collections"), list):
            raise DataImportError("Import file does not contain a collections list.")

        try:
            return AppData.model_validate(payload)
        except ValidationError as exc:
            raise DataImportError(f"Import file has invalid records: {exc}") from exc

    def _preserve(self, raw: str) -> None:
        backup_key = f"{self._key}.corrupt"
        try:
            self._storage.set_item(backup_key, raw)
        except OSError as exc:
            LOGGER.error("Unable to keep a copy of unreadable collection data: %s", exc)
            return
        LOGGER.warning("Kept a copy of the unreadable collection data under %s.", backup_key)


def serialize(data: AppData, *, indent: int | None = None) -> str:
    """Return the deterministic JSON text for ``data``."""
    separators = (",", ":") if indent is None else (",", ": ")
    return json.dumps(data.to_document(), ensure_ascii=False, indent=indent, separators=separators)


def _valid_records(records: Any, model: type[RecordT]) -> list[RecordT]:
    """Return the entries of ``records`` that validate as ``model``, logging the rest."""
    if not isinstance(records, list):
        return []
    kept: list[RecordT] = []
    for index, record in enumerate(records):
        try:
            kept.append(model.model_validate(record))
        except ValidationError as exc:
            record_id = record.get("id") if isinstance(record, dict) else None
            LOGGER.warning(
                "Dropping unreadable %s record #%d (id=%s): %s",
                model.__name__,
                index,
                record_id,
                exc.errors(include_url=False, include_input=False),
            )
    return kept


__all__ = [
    "StorageRepository",
    "STORAGE_KEY",
    "EXPORT_FILENAME_TEMPLATE",
    "serialize",
    "AppData",
    "Collection",
    "CollectionItem",
    "default_app_data",
    "KeyValueStore",
    "LocalStorage",
    "StateError",
    "DataImportError",
]
