"""Photo classification package."""

from .errors import ClassificationError
from .models import ClassificationResult, ItemContext
from .vision import ImageClassifier, build_item_context, normalize_result, parse_response

__all__ = [
    "ClassificationError",
    "ClassificationResult",
    "ItemContext",
    "ImageClassifier",
    "build_item_context",
    "normalize_result",
    "parse_response",
]
