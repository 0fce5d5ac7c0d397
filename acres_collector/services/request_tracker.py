"""
Accounting for in-flight crop statistics requests.

The tracker never performs I/O. It records what the resolver needs to replay
a request (the captured body and the endpoint) and how often it has failed.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional

import structlog

from ..errors import RequestNotFoundError

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PendingCropRequest:
    """A captured crop request awaiting a successful replay."""
    request_id: str
    payload: str
    url: Optional[str] = None
    issued_at: datetime = field(default_factory=_utcnow)
    retry_count: int = 0


class CropRequestTracker:
    """Pending crop requests keyed by the browser's opaque request id."""

    def __init__(self):
        self._pending: Dict[str, PendingCropRequest] = {}

    def capture(self, request_id: str, payload: str, url: Optional[str] = None) -> bool:
        """
        Record a newly observed request.

        Capturing an id that is already pending is a caller bug: the existing
        entry is kept and False is returned.
        """
        if request_id in self._pending:
            logger.warning("Crop request already captured, ignoring",
                           request_id=request_id)
            return False

        self._pending[request_id] = PendingCropRequest(
            request_id=request_id,
            payload=payload,
            url=url,
        )
        logger.debug("Captured crop request body", request_id=request_id)
        return True

    def get(self, request_id: str) -> Optional[PendingCropRequest]:
        return self._pending.get(request_id)

    def set_url(self, request_id: str, url: str) -> None:
        """Remember the endpoint once the completion event reveals it."""
        pending = self._pending.get(request_id)
        if pending is None:
            raise RequestNotFoundError(request_id)
        pending.url = url

    def bump_retry(self, request_id: str) -> int:
        """Increment and return the retry count."""
        pending = self._pending.get(request_id)
        if pending is None:
            raise RequestNotFoundError(request_id)
        pending.retry_count += 1
        return pending.retry_count

    def discard(self, request_id: str) -> None:
        self._pending.pop(request_id, None)

    def clear(self) -> None:
        self._pending.clear()

    def __contains__(self, request_id: str) -> bool:
        return request_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def __iter__(self) -> Iterator[PendingCropRequest]:
        return iter(list(self._pending.values()))
