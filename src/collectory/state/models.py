"""Persisted data models for collections and their items."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class StoredModel(BaseModel):
    """Immutable base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Collection(StoredModel):
    """A user-defined group of collected items."""

    id: str
    name: str
    description: Optional[str] = None


class CollectionItem(StoredModel):
    """A single catalogued object.

    Attributes:
        id: Unique item identifier.
        collection_id: Identifier of the owning collection.
        name: Display name, usually proposed by the vision model.
        description: Short description of the item.
        image_url: ``data:`` URI holding the captured photo.
        created_at: Creation time in epoch milliseconds.
    """

    id: str
    collection_id: str
    name: str
    description: str
    image_url: str
    created_at: int


class AppData(StoredModel):
    """The whole dataset, persisted as one document."""

    collections: List[Collection] = Field(default_factory=list)
    items: List[CollectionItem] = Field(default_factory=list)

    @field_validator("collections", "items", mode="before")
    @classmethod
    def _coerce_sequence(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-ready mapping used for storage and exports."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def default_app_data() -> AppData:
    """Return the seed dataset used when nothing has been stored yet."""
    return AppData(
        collections=[
            Collection(id="1", name="Model Cars", description="Scale models of all kinds of cars"),
            Collection(
                id="2",
                name="Commemorative Coins",
                description="Commemorative coins from different countries and eras",
            ),
            Collection(
                id="3",
                name="Temple Amulets",
                description="Protective amulet pouches collected from temples",
            ),
        ],
        items=[],
    )


__all__ = ["StoredModel", "Collection", "CollectionItem", "AppData", "default_app_data"]
