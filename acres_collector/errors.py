"""
Error taxonomy for the collector.

Per-record and per-request errors are contained by the correlation engine and
the crop resolver. Only EmptyDatasetError and PersistenceError reach callers
of the command surface.
"""
from typing import Optional


class CollectorError(Exception):
    """Base class for all collector errors."""


class AdmissionRejected(CollectorError):
    """Comp is outside the county allow-list (reason value, never raised to callers)."""


class DuplicateEntityError(CollectorError):
    """Comp id was already collected."""


class FetchError(CollectorError):
    """Any failure while replaying a crop statistics request."""


class FetchTransportError(FetchError):
    """Network or transport level failure."""


class FetchStatusError(FetchError):
    """Endpoint answered with a non-success status."""

    def __init__(self, status: int, url: Optional[str] = None):
        self.status = status
        self.url = url
        super().__init__(f"Network response was not ok: {status}")


class ResponseShapeError(FetchError):
    """Response body is missing info, labels, data or acres."""


class RetryExhaustedError(CollectorError):
    """A crop request failed more than MAX_RETRIES times."""

    def __init__(self, request_id: str, retries: int):
        self.request_id = request_id
        self.retries = retries
        super().__init__(f"Failed to get crop data after {retries} retries for request ID: {request_id}")


class EmptyDatasetError(CollectorError):
    """Export requested while no properties are collected."""

    def __init__(self, message: str = "No data to download"):
        super().__init__(message)


class RequestNotFoundError(CollectorError):
    """Tracker operation on a request id that is not pending."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"No pending crop request with ID: {request_id}")


class PersistenceError(CollectorError):
    """Snapshot could not be saved or loaded."""


class AutomationPermissionError(CollectorError):
    """The interaction agent lost access to the page."""
