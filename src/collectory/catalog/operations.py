"""Pure transformations over the collection dataset.

Every function takes an :class:`AppData` and returns an :class:`AppData`. When a
request is rejected (blank name, unknown id) the input instance itself is returned,
so callers can detect no-ops with an identity check.
"""

from __future__ import annotations

import secrets
import time
from typing import Iterable, Optional

from collectory.classification.models import ClassificationResult
from collectory.state.models import AppData, Collection, CollectionItem


def current_millis() -> int:
    """Return the current time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_id(prefix: str, *, taken: Iterable[str] = ()) -> str:
    """Return ``<prefix>-<millis>-<hex>``, avoiding any identifier in ``taken``."""
    existing = set(taken)
    while True:
        candidate = f"{prefix}-{current_millis()}-{secrets.token_hex(4)}"
        if candidate not in existing:
            return candidate


def create_collection(data: AppData, name: str, *, description: Optional[str] = None) -> AppData:
    """Append a new collection named ``name``. Duplicate names are allowed."""
    cleaned = name.strip()
    if not cleaned:
        return data
    collection = Collection(
        id=generate_id("col", taken=(c.id for c in data.collections)),
        name=cleaned,
        description=(description or "").strip() or None,
    )
    return data.model_copy(update={"collections": [*data.collections, collection]})


def rename_collection(data: AppData, collection_id: str, name: str) -> AppData:
    """Replace the name of one collection, leaving its id and description alone."""
    cleaned = name.strip()
    if not cleaned or get_collection(data, collection_id) is None:
        return data
    collections = [
        c.model_copy(update={"name": cleaned}) if c.id == collection_id else c
        for c in data.collections
    ]
    return data.model_copy(update={"collections": collections})


def delete_collection(data: AppData, collection_id: str) -> AppData:
    """Remove a collection together with every item filed under it."""
    collections = [c for c in data.collections if c.id != collection_id]
    items = [item for item in data.items if item.collection_id != collection_id]
    if len(collections) == len(data.collections) and len(items) == len(data.items):
        return data
    return AppData(collections=collections, items=items)


def delete_item(data: AppData, item_id: str) -> AppData:
    """Remove a single item."""
    items = [item for item in data.items if item.id != item_id]
    if len(items) == len(data.items):
        return data
    return data.model_copy(update={"items": items})


def add_item(
    data: AppData,
    collection_id: str,
    result: ClassificationResult,
    image_url: str,
    *,
    created_at: Optional[int] = None,
) -> AppData:
    """Append an item built from a classification result.

    The caller is responsible for ``collection_id`` naming an existing collection.
    """
    item = build_item(data, collection_id, result, image_url, created_at=created_at)
    return data.model_copy(update={"items": [*data.items, item]})


def build_item(
    data: AppData,
    collection_id: str,
    result: ClassificationResult,
    image_url: str,
    *,
    created_at: Optional[int] = None,
) -> CollectionItem:
    """Return the item :func:`add_item` would append, with an id fresh for ``data``."""
    return CollectionItem(
        id=generate_id("item", taken=(item.id for item in data.items)),
        collection_id=collection_id,
        name=result.item_name,
        description=result.item_description,
        image_url=image_url,
        created_at=created_at if created_at is not None else current_millis(),
    )


def get_collection(data: AppData, collection_id: str) -> Optional[Collection]:
    return next((c for c in data.collections if c.id == collection_id), None)


def get_item(data: AppData, item_id: str) -> Optional[CollectionItem]:
    return next((item for item in data.items if item.id == item_id), None)


def items_in_collection(data: AppData, collection_id: str) -> list[CollectionItem]:
    return [item for item in data.items if item.collection_id == collection_id]


def find_orphans(data: AppData) -> list[CollectionItem]:
    """Return items whose collection does not exist."""
    known = {c.id for c in data.collections}
    return [item for item in data.items if item.collection_id not in known]


def drop_orphans(data: AppData) -> AppData:
    orphans = {item.id for item in find_orphans(data)}
    if not orphans:
        return data
    return data.model_copy(
        update={"items": [item for item in data.items if item.id not in orphans]}
    )


__all__ = [
    "current_millis",
    "generate_id",
    "create_collection",
    "rename_collection",
    "delete_collection",
    "delete_item",
    "add_item",
    "build_item",
    "get_collection",
    "get_item",
    "items_in_collection",
    "find_orphans",
    "drop_orphans",
]
