"""Models exchanged with the vision classifier."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

UNRECOGNIZED_ITEM_NAME = "unrecognized item"
MISSING_DESCRIPTION = "no description"
UNKNOWN_CATEGORY = "unknown"


class ClassificationResult(BaseModel):
    """Normalized answer from the vision model.

    Attributes:
        is_owned: Whether the photographed item matches something already collected.
        matched_item_id: Identifier of the matching item when ``is_owned`` is true.
        item_name: Proposed item name.
        item_description: Proposed description and distinguishing features.
        suggested_collection_id: Collection the model considers the best fit.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    is_owned: bool
    matched_item_id: Optional[str] = None
    item_name: str
    item_description: str
    suggested_collection_id: Optional[str] = None


class ItemContext(BaseModel):
    """Projection of an owned item sent to the model for comparison."""

    id: str
    name: str
    description: str
    category: str


RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "isOwned": {
            "type": "boolean",
            "description": "Whether the item is already in the collection list.",
        },
        "matchedItemId": {
            "type": "string",
            "description": "ID of the matching owned item, if any.",
        },
        "itemName": {"type": "string", "description": "Name of the item."},
        "itemDescription": {
            "type": "string",
            "description": "Short description and distinguishing features.",
        },
        "suggestedCollectionId": {
            "type": "string",
            "description": "ID of the closest existing collection to add the item to.",
        },
    },
    "required": ["isOwned", "itemName", "itemDescription"],
}


__all__ = [
    "ClassificationResult",
    "ItemContext",
    "RESPONSE_SCHEMA",
    "UNRECOGNIZED_ITEM_NAME",
    "MISSING_DESCRIPTION",
    "UNKNOWN_CATEGORY",
]
