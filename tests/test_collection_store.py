"""Tests for the write-through collection store."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from collectory.catalog import CollectionStore
from collectory.classification.models import ClassificationResult
from collectory.state import STORAGE_KEY, DataImportError, LocalStorage, StorageRepository
from collectory.state.models import AppData


class CountingStorage(LocalStorage):
    """LocalStorage that records how many writes happened."""

    def __init__(self, directory: Path) -> None:
        super().__init__(directory)
        self.writes = 0

    def set_item(self, key: str, value: str) -> None:
        self.writes += 1
        super().set_item(key, value)


def _store(tmp_path: Path, **kwargs) -> tuple[CollectionStore, CountingStorage]:
    storage = CountingStorage(tmp_path / "data")
    return CollectionStore(StorageRepository(storage), **kwargs), storage


def _orphan_backup(path: Path) -> Path:
    path.write_text(
        json.dumps(
            {
                "collections": [{"id": "1", "name": "A"}],
                "items": [
                    {
                        "id": "kept",
                        "collectionId": "1",
                        "name": "Kept",
                        "description": "",
                        "imageUrl": "",
                        "createdAt": 1,
                    },
                    {
                        "id": "orphan",
                        "collectionId": "zzz",
                        "name": "Orphan",
                        "description": "",
                        "imageUrl": "",
                        "createdAt": 2,
                    },
                ],
            }
        ),
        encoding="utf-8",
    )
    return path


def test_store_starts_from_defaults(tmp_path: Path) -> None:
    store, storage = _store(tmp_path)

    assert len(store.data.collections) == 3
    assert storage.writes == 0


def test_every_mutation_is_saved_once(tmp_path: Path) -> None:
    store, storage = _store(tmp_path)

    store.create_collection("Stamps")
    store.create_collection("Stamps")
    new_id = store.data.collections[-1].id
    store.rename_collection(new_id, "Rare Stamps")

    assert storage.writes == 3
    reloaded = StorageRepository(LocalStorage(tmp_path / "data")).load()
    assert reloaded == store.data


def test_noop_mutations_do_not_write_or_notify(tmp_path: Path) -> None:
    store, storage = _store(tmp_path)
    notifications: list[AppData] = []
    store.subscribe(notifications.append)

    store.create_collection("   ")
    store.rename_collection("missing", "Name")
    store.delete_item("missing")

    assert storage.writes == 0
    assert notifications == []


def test_subscribers_receive_new_data_until_unsubscribed(tmp_path: Path) -> None:
    store, _ = _store(tmp_path)
    notifications: list[AppData] = []
    unsubscribe = store.subscribe(notifications.append)

    store.delete_collection("1")
    unsubscribe()
    store.delete_collection("2")

    assert len(notifications) == 1
    assert [c.id for c in notifications[0].collections] == ["2", "3"]


def test_add_item_returns_persisted_item(tmp_path: Path) -> None:
    store, _ = _store(tmp_path)
    result = ClassificationResult(is_owned=False, item_name="Coin", item_description="Gold")

    item = store.add_item("2", result, "data:image/png;base64,AA==")

    assert store.data.items == [item]
    assert StorageRepository(LocalStorage(tmp_path / "data")).load().items == [item]


def test_delete_collection_cascades_and_persists(tmp_path: Path) -> None:
    store, _ = _store(tmp_path)
    result = ClassificationResult(is_owned=False, item_name="Car", item_description="1:18")
    store.add_item("1", result, "")
    store.add_item("2", result, "")

    store.delete_collection("1")

    assert all(item.collection_id != "1" for item in store.data.items)
    assert len(store.data.items) == 1


def test_failed_import_leaves_data_untouched(tmp_path: Path) -> None:
    store, storage = _store(tmp_path)
    store.create_collection("Keep me")
    before = store.data
    writes = storage.writes
    backup = tmp_path / "bad.json"
    backup.write_text("definitely not json", encoding="utf-8")

    with pytest.raises(DataImportError):
        store.import_file(backup)

    assert store.data is before
    assert storage.writes == writes


def test_import_keeps_orphans_by_default(tmp_path: Path) -> None:
    store, storage = _store(tmp_path)

    store.import_file(_orphan_backup(tmp_path / "backup.json"))

    assert [i.id for i in store.data.items] == ["kept", "orphan"]
    stored = json.loads(storage.get_item(STORAGE_KEY) or "")
    assert stored["collections"] == [{"id": "1", "name": "A"}]


def test_import_drops_orphans_when_configured(tmp_path: Path) -> None:
    store, _ = _store(tmp_path, orphan_policy="drop")

    store.import_file(_orphan_backup(tmp_path / "backup.json"))

    assert [i.id for i in store.data.items] == ["kept"]


def test_load_drops_stored_orphans_when_configured(tmp_path: Path) -> None:
    blob = _orphan_backup(tmp_path / "blob.json").read_text(encoding="utf-8")
    LocalStorage(tmp_path / "data").set_item(STORAGE_KEY, blob)

    store, storage = _store(tmp_path, orphan_policy="drop")

    assert [i.id for i in store.data.items] == ["kept"]
    assert storage.writes == 0


def test_load_keeps_stored_orphans_by_default(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    blob = _orphan_backup(tmp_path / "blob.json").read_text(encoding="utf-8")
    LocalStorage(tmp_path / "data").set_item(STORAGE_KEY, blob)

    with caplog.at_level(logging.WARNING, logger="collectory.catalog"):
        store, _ = _store(tmp_path)

    assert [i.id for i in store.data.items] == ["kept", "orphan"]
    assert "orphan" in caplog.text


def test_broken_record_does_not_wipe_stored_collections(tmp_path: Path) -> None:
    LocalStorage(tmp_path / "data").set_item(
        STORAGE_KEY,
        json.dumps(
            {
                "collections": [{"id": "c1", "name": "Stamps"}],
                "items": [
                    {
                        "id": "i1",
                        "collectionId": "c1",
                        "name": "Penny Black",
                        "description": "1840 stamp",
                        "imageUrl": "",
                        "createdAt": 1,
                    },
                    {"id": "i2", "collectionId": "c1", "name": "Torn"},
                ],
            }
        ),
    )
    store, storage = _store(tmp_path)

    store.create_collection("Coins")

    stored = json.loads(storage.get_item(STORAGE_KEY) or "")
    assert [c["name"] for c in stored["collections"]] == ["Stamps", "Coins"]
    assert [i["name"] for i in stored["items"]] == ["Penny Black"]


def test_export_writes_current_data(tmp_path: Path) -> None:
    store, _ = _store(tmp_path)
    store.create_collection("Shells")

    path = store.export(tmp_path / "out")

    assert path.parent == tmp_path / "out"
    assert path.name.startswith("collection_backup_")
    assert AppData.model_validate(json.loads(path.read_text(encoding="utf-8"))) == store.data
