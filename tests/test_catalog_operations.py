"""Tests for the pure collection/item transformations."""

from __future__ import annotations

import pytest

from collectory.catalog import operations
from collectory.classification.models import ClassificationResult
from collectory.state.models import AppData, Collection, CollectionItem


def _item(item_id: str, collection_id: str) -> CollectionItem:
    return CollectionItem(
        id=item_id,
        collection_id=collection_id,
        name=f"Item {item_id}",
        description="",
        image_url="data:image/png;base64,AAAA",
        created_at=1,
    )


def _result(name: str = "Tin Robot") -> ClassificationResult:
    return ClassificationResult(is_owned=False, item_name=name, item_description="Wind-up toy")


def test_create_collection_appends_with_unique_ids() -> None:
    data = AppData()

    data = operations.create_collection(data, "Foo")
    data = operations.create_collection(data, "Foo")

    assert [c.name for c in data.collections] == ["Foo", "Foo"]
    assert data.collections[0].id != data.collections[1].id


@pytest.mark.parametrize("name", ["", "   ", "\t\n"])
def test_create_collection_ignores_blank_names(name: str) -> None:
    data = AppData()

    assert operations.create_collection(data, name) is data


def test_create_collection_trims_name_and_keeps_description() -> None:
    data = operations.create_collection(AppData(), "  Stamps ", description="Postage")

    assert data.collections[0].name == "Stamps"
    assert data.collections[0].description == "Postage"


def test_rename_collection_replaces_only_name() -> None:
    data = AppData(collections=[Collection(id="1", name="A", description="desc")])

    renamed = operations.rename_collection(data, "1", " B ")

    assert renamed.collections == [Collection(id="1", name="B", description="desc")]
    assert data.collections[0].name == "A"


def test_rename_collection_noop_for_blank_or_unknown() -> None:
    data = AppData(collections=[Collection(id="1", name="A")])

    assert operations.rename_collection(data, "1", "  ") is data
    assert operations.rename_collection(data, "missing", "B") is data


def test_delete_collection_cascades_to_items() -> None:
    data = AppData(
        collections=[Collection(id="1", name="A")],
        items=[_item("x", "1")],
    )

    result = operations.delete_collection(data, "1")

    assert result.collections == []
    assert result.items == []


def test_delete_collection_leaves_other_collections() -> None:
    data = AppData(
        collections=[Collection(id="1", name="A"), Collection(id="2", name="B")],
        items=[_item("x", "1"), _item("y", "2"), _item("z", "1")],
    )

    result = operations.delete_collection(data, "1")

    assert [c.id for c in result.collections] == ["2"]
    assert [i.id for i in result.items] == ["y"]
    assert not any(i.collection_id == "1" for i in result.items)


def test_delete_collection_removes_orphans_with_that_id() -> None:
    data = AppData(items=[_item("x", "ghost")])

    assert operations.delete_collection(data, "ghost").items == []


def test_delete_item_removes_single_item() -> None:
    data = AppData(
        collections=[Collection(id="1", name="A")],
        items=[_item("x", "1"), _item("y", "1")],
    )

    result = operations.delete_item(data, "x")

    assert [i.id for i in result.items] == ["y"]
    assert result.collections == data.collections
    assert operations.delete_item(result, "x") is result


def test_add_item_builds_item_from_result() -> None:
    data = AppData(collections=[Collection(id="1", name="Toys")])

    result = operations.add_item(data, "1", _result(), "data:image/png;base64,QQ==", created_at=42)

    item = result.items[-1]
    assert item.collection_id == "1"
    assert item.name == "Tin Robot"
    assert item.description == "Wind-up toy"
    assert item.image_url == "data:image/png;base64,QQ=="
    assert item.created_at == 42
    assert data.items == []


def test_add_item_ids_are_fresh() -> None:
    data = AppData(collections=[Collection(id="1", name="Toys")])
    seen: set[str] = set()

    for _ in range(25):
        data = operations.add_item(data, "1", _result(), "")
        new_id = data.items[-1].id
        assert new_id not in seen
        seen.add(new_id)


def test_add_item_does_not_verify_collection() -> None:
    data = operations.add_item(AppData(), "nowhere", _result(), "")

    assert operations.find_orphans(data) == data.items


def test_generate_id_skips_taken_values(monkeypatch: pytest.MonkeyPatch) -> None:
    tokens = iter(["aaaa", "aaaa", "bbbb"])
    monkeypatch.setattr(operations.secrets, "token_hex", lambda _: next(tokens))
    monkeypatch.setattr(operations, "current_millis", lambda: 5)

    assert operations.generate_id("item", taken=["item-5-aaaa"]) == "item-5-bbbb"


def test_drop_orphans_keeps_referenced_items() -> None:
    data = AppData(
        collections=[Collection(id="1", name="A")],
        items=[_item("x", "1"), _item("y", "gone")],
    )

    cleaned = operations.drop_orphans(data)

    assert [i.id for i in cleaned.items] == ["x"]
    assert operations.drop_orphans(cleaned) is cleaned
