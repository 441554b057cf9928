"""State management errors."""


class StateError(Exception):
    """Base exception for collection store operations."""


class DataImportError(StateError):
    """Raised when a backup file cannot be read as collection data."""
