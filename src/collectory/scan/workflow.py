"""Scan workflow: photo capture, classification, and staged commit."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from collectory.catalog.store import CollectionStore
from collectory.classification.models import ClassificationResult
from collectory.state.models import Collection, CollectionItem

from .errors import ScanError, ScanInProgressError, ScanStateError
from .images import EncodedImage, encode_image

LOGGER = logging.getLogger(__name__)

CLASSIFICATION_FAILED_MESSAGE = (
    "AI recognition failed. Check your network connection and try again."
)


class ScanState(str, Enum):
    """Lifecycle states of a single scan."""

    IDLE = "idle"
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    DONE = "done"


class PhotoClassifier(Protocol):
    def classify(
        self,
        image_base64: str,
        existing_items: Sequence[CollectionItem],
        existing_collections: Sequence[Collection],
        *,
        mime_type: str = ...,
    ) -> ClassificationResult: ...


@dataclass(frozen=True, slots=True)
class StagedScan:
    """Classification awaiting the user's decision.

    Attributes:
        result: Normalized classification.
        image_url: ``data:`` URI of the photo, stored on commit.
        source: Path of the scanned file.
    """

    result: ClassificationResult
    image_url: str
    source: Path


StateListener = Callable[[ScanState], None]


class ScanWorkflow:
    """Drive one scan at a time through ``idle -> uploading -> analyzing -> done``."""

    def __init__(
        self,
        store: CollectionStore,
        classifier: PhotoClassifier,
        *,
        encoder: Callable[[Path], EncodedImage] = encode_image,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._encoder = encoder
        self._state = ScanState.IDLE
        self._staged: Optional[StagedScan] = None
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def staged(self) -> Optional[StagedScan]:
        """Return the staged scan while in ``done``, otherwise ``None``."""
        return self._staged

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` for state transitions and return an unsubscribe hook."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def start(self, path: Path) -> StagedScan:
        """Encode and classify the photo at ``path``.

        Args:
            path: Image file to scan.

        Returns:
            StagedScan: The staged result; the workflow is left in ``done``.

        Raises:
            ScanInProgressError: If the workflow is not idle.
            ScanError: If the image cannot be read or classification fails. The
                workflow returns to ``idle``.
        """
        if self._state is not ScanState.IDLE:
            raise ScanInProgressError(
                f"A scan is already {self._state.value}; finish or discard it first."
            )

        self._transition(ScanState.UPLOADING)
        try:
            encoded = self._encoder(path)
        except ScanError:
            self._transition(ScanState.IDLE)
            raise
        except Exception as exc:
            LOGGER.warning("Reading %s failed: %s", path, exc)
            self._transition(ScanState.IDLE)
            raise ScanError(f"Unable to read image {path}: {exc}") from exc

        self._transition(ScanState.ANALYZING)
        data = self._store.data
        try:
            result = self._classifier.classify(
                encoded.data,
                data.items,
                data.collections,
                mime_type=encoded.mime_type,
            )
        except Exception as exc:
            LOGGER.warning("Classification of %s failed: %s", path, exc)
            self._transition(ScanState.IDLE)
            raise ScanError(CLASSIFICATION_FAILED_MESSAGE) from exc

        self._staged = StagedScan(result=result, image_url=encoded.data_url, source=path)
        self._transition(ScanState.DONE)
        return self._staged

    def commit(self, collection_id: str) -> CollectionItem:
        """File the staged result under ``collection_id`` and return to ``idle``.

        Raises:
            ScanStateError: If there is no staged result.
        """
        staged = self._require_staged("commit")
        item = self._store.add_item(collection_id, staged.result, staged.image_url)
        LOGGER.info("Added %s (%s) to collection %s", item.name, item.id, collection_id)
        self._staged = None
        self._transition(ScanState.IDLE)
        return item

    def discard(self) -> None:
        """Drop the staged result without touching the store.

        Raises:
            ScanStateError: If there is no staged result.
        """
        self._require_staged("discard")
        self._staged = None
        self._transition(ScanState.IDLE)

    def _require_staged(self, action: str) -> StagedScan:
        if self._state is not ScanState.DONE or self._staged is None:
            raise ScanStateError(f"Cannot {action} while the scan is {self._state.value}.")
        return self._staged

    def _transition(self, state: ScanState) -> None:
        LOGGER.debug("Scan state %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._listeners):
            listener(state)


__all__ = [
    "CLASSIFICATION_FAILED_MESSAGE",
    "PhotoClassifier",
    "ScanState",
    "ScanWorkflow",
    "StagedScan",
]
