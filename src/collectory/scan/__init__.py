"""Photo scan workflow."""

from .errors import ScanError, ScanInProgressError, ScanStateError
from .images import EncodedImage, encode_image
from .workflow import ScanState, ScanWorkflow, StagedScan

__all__ = [
    "EncodedImage",
    "ScanError",
    "ScanInProgressError",
    "ScanState",
    "ScanStateError",
    "ScanWorkflow",
    "StagedScan",
    "encode_image",
]
