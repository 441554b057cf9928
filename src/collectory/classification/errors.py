"""Classification errors."""


class ClassificationError(Exception):
    """Raised when the vision model cannot produce a usable classification."""
