"""Scan workflow errors."""


class ScanError(Exception):
    """Raised when a scan cannot be completed; the message is shown to the user."""


class ScanStateError(ScanError):
    """Raised when an operation is not valid in the workflow's current state."""


class ScanInProgressError(ScanStateError):
    """Raised when a scan is started while another one is still active."""
