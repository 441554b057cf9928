"""Collection and item management."""

from .operations import (
    add_item,
    create_collection,
    delete_collection,
    delete_item,
    drop_orphans,
    find_orphans,
    generate_id,
    get_collection,
    get_item,
    items_in_collection,
    rename_collection,
)
from .store import CollectionStore

__all__ = [
    "CollectionStore",
    "add_item",
    "create_collection",
    "delete_collection",
    "delete_item",
    "drop_orphans",
    "find_orphans",
    "generate_id",
    "get_collection",
    "get_item",
    "items_in_collection",
    "rename_collection",
]
