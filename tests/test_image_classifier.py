"""Tests for the vision classifier client."""

from __future__ import annotations

import json
from typing import Any

import pytest

from collectory.classification import (
    ClassificationError,
    ImageClassifier,
    build_item_context,
    normalize_result,
    parse_response,
)
from collectory.state.models import Collection, CollectionItem

COLLECTIONS = [
    Collection(id="1", name="Model Cars", description="Scale models"),
    Collection(id="2", name="Coins"),
]
ITEMS = [
    CollectionItem(
        id="item-1",
        collection_id="1",
        name="Red Ferrari",
        description="1:43 die-cast",
        image_url="data:image/png;base64,AAAA",
        created_at=1,
    ),
    CollectionItem(
        id="item-2",
        collection_id="gone",
        name="Mystery",
        description="",
        image_url="",
        created_at=2,
    ),
]


class FakeLM:
    """Callable mimicking ``dspy.LM`` that records its calls."""

    def __init__(self, outputs: Any = None, error: Exception | None = None) -> None:
        self.outputs = outputs
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.outputs


def test_classify_builds_request_and_parses_reply() -> None:
    reply = {
        "isOwned": True,
        "matchedItemId": "item-1",
        "itemName": "Red Ferrari",
        "itemDescription": "Same model",
    }
    lm = FakeLM(outputs=[json.dumps(reply)])
    classifier = ImageClassifier(language_model=lm)

    result = classifier.classify("QUJD", ITEMS, COLLECTIONS, mime_type="image/png")

    assert result.is_owned is True
    assert result.matched_item_id == "item-1"
    assert result.suggested_collection_id is None

    call = lm.calls[0]
    assert call["response_format"]["type"] == "json_schema"
    schema = call["response_format"]["json_schema"]["schema"]
    assert schema["required"] == ["isOwned", "itemName", "itemDescription"]
    image_part, text_part = call["messages"][0]["content"]
    assert image_part["image_url"]["url"] == "data:image/png;base64,QUJD"
    assert '"category": "Model Cars"' in text_part["text"]
    assert '"name": "Coins"' in text_part["text"]


def test_classify_accepts_dict_outputs() -> None:
    lm = FakeLM(outputs=[{"text": '{"isOwned": false, "itemName": "Coin", "itemDescription": "Old"}'}])

    result = ImageClassifier(language_model=lm).classify("AA==", [], COLLECTIONS)

    assert result.item_name == "Coin"


def test_classify_wraps_transport_errors() -> None:
    lm = FakeLM(error=ConnectionError("network down"))

    with pytest.raises(ClassificationError, match="network down"):
        ImageClassifier(language_model=lm).classify("AA==", ITEMS, COLLECTIONS)


def test_classify_rejects_empty_output_list() -> None:
    with pytest.raises(ClassificationError):
        ImageClassifier(language_model=FakeLM(outputs=[])).classify("AA==", [], [])


@pytest.mark.parametrize("output", [{"tool_calls": []}, {"text": None}, None, 42])
def test_classify_rejects_outputs_without_text(output: Any) -> None:
    lm = FakeLM(outputs=[output])

    with pytest.raises(ClassificationError, match="without text"):
        ImageClassifier(language_model=lm).classify("AA==", [], COLLECTIONS)


def test_unparseable_reply_raises_classification_error() -> None:
    lm = FakeLM(outputs=["I think it is a car"])

    with pytest.raises(ClassificationError, match="unparseable AI response"):
        ImageClassifier(language_model=lm).classify("AA==", [], COLLECTIONS)


def test_non_object_reply_raises_classification_error() -> None:
    with pytest.raises(ClassificationError):
        parse_response("[1, 2]")


def test_parse_response_strips_code_fences() -> None:
    text = '```json\n{"isOwned": false, "itemName": "Stamp", "itemDescription": "Blue"}\n```'

    assert parse_response(text).item_name == "Stamp"


def test_normalize_fills_placeholders() -> None:
    result = normalize_result({"isOwned": False, "itemName": "", "itemDescription": "Y"})

    assert result.item_name == "unrecognized item"
    assert result.item_description == "Y"
    assert result.is_owned is False


def test_normalize_handles_missing_fields_and_string_booleans() -> None:
    result = normalize_result({"isOwned": "false", "suggestedCollectionId": ""})

    assert result.is_owned is False
    assert result.item_name == "unrecognized item"
    assert result.item_description == "no description"
    assert result.suggested_collection_id is None
    assert normalize_result({"isOwned": "true"}).is_owned is True
    assert normalize_result({"isOwned": 1}).is_owned is True


def test_empty_reply_is_treated_as_empty_object() -> None:
    result = parse_response("")

    assert result.is_owned is False
    assert result.item_name == "unrecognized item"


def test_build_item_context_resolves_category_names() -> None:
    context = build_item_context(ITEMS, COLLECTIONS)

    assert [entry.category for entry in context] == ["Model Cars", "unknown"]
    assert context[0].model_dump() == {
        "id": "item-1",
        "name": "Red Ferrari",
        "description": "1:43 die-cast",
        "category": "Model Cars",
    }
