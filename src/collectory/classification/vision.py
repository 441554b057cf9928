"""Vision classifier that identifies photographed collectibles.

The classifier sends one photo together with the user's current catalogue to a
multimodal model and asks for a JSON verdict: is this item already owned, and if
not, what is it and where should it go. Requests go through DSPy's LiteLLM-backed
``dspy.LM`` client so any provider LiteLLM understands can be configured.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Iterable, Optional, Sequence

try:  # pragma: no cover - optional dependency
    import dspy  # type: ignore
except ImportError:  # pragma: no cover - executed when DSPy absent
    dspy = None  # type: ignore[assignment]

from collectory.config.models import LLMSettings
from collectory.state.models import Collection, CollectionItem

from .errors import ClassificationError
from .models import (
    MISSING_DESCRIPTION,
    RESPONSE_SCHEMA,
    UNKNOWN_CATEGORY,
    UNRECOGNIZED_ITEM_NAME,
    ClassificationResult,
    ItemContext,
)

LOGGER = logging.getLogger(__name__)

LanguageModel = Callable[..., Sequence[Any]]

_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {"name": "classification_result", "schema": RESPONSE_SCHEMA},
}
_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$")
_FALSE_STRINGS = {"", "false", "no", "0", "none", "null"}


class ImageClassifier:
    """Classify a collectible photo against the existing collection."""

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        *,
        language_model: Optional[LanguageModel] = None,
    ) -> None:
        """Initialise the classifier.

        Args:
            settings: Vision model configuration.
            language_model: Callable with the ``dspy.LM`` calling convention. Built from
                ``settings`` when omitted.

        Raises:
            RuntimeError: If DSPy is unavailable or the language model cannot be configured.
        """
        self._settings = settings or LLMSettings()
        self._lm = language_model if language_model is not None else self._build_language_model()

    def classify(
        self,
        image_base64: str,
        existing_items: Iterable[CollectionItem],
        existing_collections: Iterable[Collection],
        *,
        mime_type: str = "image/jpeg",
    ) -> ClassificationResult:
        """Ask the model what the photographed item is.

        Args:
            image_base64: Base64-encoded image bytes (no ``data:`` prefix).
            existing_items: Items already in the catalogue.
            existing_collections: Collections the item may belong to.
            mime_type: MIME type of the encoded image.

        Returns:
            ClassificationResult: Normalized classification.

        Raises:
            ClassificationError: If the request fails or the reply cannot be parsed.
        """
        collections = list(existing_collections)
        context = build_item_context(existing_items, collections)
        messages = [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime_type};base64,{image_base64}"},
                    },
                    {"type": "text", "text": build_prompt(context, collections)},
                ],
            }
        ]

        try:
            outputs = self._lm(messages=messages, response_format=_RESPONSE_FORMAT)
        except Exception as exc:
            LOGGER.debug("Vision request failed: %s", exc)
            raise ClassificationError(f"Vision request failed: {exc}") from exc

        return parse_response(_first_output(outputs))

    def _build_language_model(self) -> LanguageModel:
        """Configure a ``dspy.LM`` according to the LLM settings."""
        if dspy is None:
            raise RuntimeError(
                "Photo classification requires DSPy. Install the `dspy` package to scan items."
            )

        model = self._settings.model
        if "/" not in model and self._settings.provider:
            model = f"{self._settings.provider}/{model}"

        lm_kwargs: dict[str, Any] = {
            "model": model,
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
            "cache": False,
        }
        if self._settings.api_base_url:
            lm_kwargs["api_base"] = self._settings.api_base_url
        if self._settings.api_key is not None:
            lm_kwargs["api_key"] = self._settings.api_key

        try:
            return dspy.LM(**lm_kwargs)
        except Exception as exc:  # pragma: no cover - DSPy configuration errors
            raise RuntimeError(
                f"Unable to configure the vision model '{model}'. Verify the `llm` settings."
            ) from exc


def build_item_context(
    items: Iterable[CollectionItem], collections: Iterable[Collection]
) -> list[ItemContext]:
    """Project owned items into the compact form sent to the model."""
    names = {collection.id: collection.name for collection in collections}
    return [
        ItemContext(
            id=item.id,
            name=item.name,
            description=item.description,
            category=names.get(item.collection_id, UNKNOWN_CATEGORY),
        )
        for item in items
    ]


def build_prompt(context: Sequence[ItemContext], collections: Sequence[Collection]) -> str:
    """Return the instruction text accompanying the photo."""
    items_json = json.dumps([entry.model_dump() for entry in context], ensure_ascii=False)
    collections_json = json.dumps(
        [c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in collections],
        ensure_ascii=False,
    )
    return (
        "You are an expert appraiser of collectibles. The photo was taken or chosen by a "
        "collector.\n\n"
        f"The collector currently owns these items:\n{items_json}\n\n"
        f"The existing collection categories are:\n{collections_json}\n\n"
        "Do the following:\n"
        "1. Identify the object in the photo.\n"
        "2. Compare it with the owned items, considering details, model numbers and "
        "appearance.\n"
        "3. If it is almost certainly one of them, answer isOwned: true and give its id as "
        "matchedItemId.\n"
        "4. If it is a new find, answer isOwned: false and provide itemName, "
        "itemDescription and the id of the best matching category as suggestedCollectionId.\n"
        "Respond with a single JSON object."
    )


def parse_response(text: Optional[str]) -> ClassificationResult:
    """Parse and normalize the raw model reply.

    Raises:
        ClassificationError: If the reply is not a JSON object.
    """
    cleaned = _CODE_FENCE.sub("", text or "")
    try:
        payload = json.loads(cleaned or "{}")
    except json.JSONDecodeError as exc:
        LOGGER.error("AI response parsing error: %s", exc)
        raise ClassificationError("unparseable AI response") from exc
    if not isinstance(payload, dict):
        LOGGER.error("AI response was %s, expected an object.", type(payload).__name__)
        raise ClassificationError("unparseable AI response")
    return normalize_result(payload)


def normalize_result(payload: dict[str, Any]) -> ClassificationResult:
    """Fill placeholders and coerce types in a decoded reply."""
    return ClassificationResult(
        is_owned=_strict_bool(payload.get("isOwned")),
        matched_item_id=_optional_text(payload.get("matchedItemId")),
        item_name=_text(payload.get("itemName")) or UNRECOGNIZED_ITEM_NAME,
        item_description=_text(payload.get("itemDescription")) or MISSING_DESCRIPTION,
        suggested_collection_id=_optional_text(payload.get("suggestedCollectionId")),
    )


def _first_output(outputs: Sequence[Any]) -> str:
    if not outputs:
        raise ClassificationError("Vision model returned no output.")
    first = outputs[0]
    if isinstance(first, dict):
        first = first.get("text")
    if not isinstance(first, str):
        LOGGER.error("Vision model output had no text: %r", outputs[0])
        raise ClassificationError("Vision model returned an output without text.")
    return first


def _strict_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    return _text(value) or None


__all__ = [
    "ImageClassifier",
    "build_item_context",
    "build_prompt",
    "parse_response",
    "normalize_result",
]
