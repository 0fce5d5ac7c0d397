"""
Crop statistics resolver with bounded retry.

State machine per captured request:

    CAPTURED -> FETCHING -> SUCCEEDED
                         -> FAILED -> FETCHING    (retry_count < max_retries, after a delay)
                                   -> DISCARDED   (retry_count >= max_retries)

Only FETCHING performs I/O. Fetch outcomes are delivered to handle() as
explicit messages (CropFetchSucceeded / CropFetchFailed), so the transitions
can be driven without a network.

Two backoff policies exist for two trigger points and are kept distinct:
- the browser's own request errored (on_request_error): base * retry_count
- our replay failed (transport, status or response shape): base * 2 ** (retry_count - 1)
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Set, Union

import structlog

from ..errors import (
    FetchError,
    FetchTransportError,
    PersistenceError,
    ResponseShapeError,
    RetryExhaustedError,
)
from ..models import MAX_CROPS, CropProfile, CropShare
from .correlation import CorrelationEngine
from .request_tracker import CropRequestTracker

logger = structlog.get_logger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 5.0


class CropRequestState(Enum):
    CAPTURED = "captured"
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DISCARDED = "discarded"


class BackoffPolicy(Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"

    def delay(self, base: float, retry_count: int) -> float:
        if self is BackoffPolicy.LINEAR:
            return base * retry_count
        return base * 2 ** (retry_count - 1)


class ResolveOutcome(Enum):
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    DISCARDED = "discarded"
    IGNORED = "ignored"


@dataclass
class CropFetchSucceeded:
    """Replay returned a JSON body (not yet validated)."""
    request_id: str
    body: Any


@dataclass
class CropFetchFailed:
    """Replay or the observed request failed."""
    request_id: str
    error: Exception
    policy: BackoffPolicy = BackoffPolicy.EXPONENTIAL


CropFetchMessage = Union[CropFetchSucceeded, CropFetchFailed]


class CropFetcher(ABC):
    """Replays a captured crop statistics request."""

    @abstractmethod
    async def replay(self, url: str, payload: str) -> Any:
        """
        POST the captured body to the endpoint and return the decoded JSON.

        Raises:
            FetchTransportError, FetchStatusError, ResponseShapeError
        """


def parse_crop_response(body: Any) -> CropProfile:
    """
    Rank a crop statistics response into a profile.

    The response carries parallel `labels` / `data` arrays (data being each
    crop's share) and the total `acres`. Crops are ranked by share, the top
    three kept, and each share converted to acres rounded to 2 decimals.

    Raises:
        ResponseShapeError: if info, labels, data or acres is missing
    """
    if not body:
        raise ResponseShapeError("Response data is undefined or null")

    info = body.get('info') if isinstance(body, Mapping) else None
    if not info or not isinstance(info, Mapping):
        raise ResponseShapeError("Response data missing info property")

    labels = info.get('labels')
    data = info.get('data')
    total_acres = info.get('acres')
    if labels is None or data is None or total_acres is None:
        raise ResponseShapeError("Response data missing required properties")

    try:
        total_acres = float(total_acres)
        pairs = [(str(label), float(value)) for label, value in zip(labels, data)]
    except (TypeError, ValueError) as e:
        raise ResponseShapeError(f"Non-numeric crop statistics: {e}") from e

    # Stable sort keeps the endpoint's order among equal shares
    pairs.sort(key=lambda pair: pair[1], reverse=True)

    crops = [
        CropShare(name=label, acres=round(value * total_acres, 2))
        for label, value in pairs[:MAX_CROPS]
    ]
    return CropProfile(acres=total_acres, crops=crops)


class CropResolver:
    """
    Drives captured crop requests to a profile or to a terminal discard.

    Every resume after a suspension re-checks that the request is still
    tracked, so completions arriving after clear() or exhaustion are no-ops.
    """

    def __init__(
        self,
        tracker: CropRequestTracker,
        engine: CorrelationEngine,
        fetcher: CropFetcher,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.tracker = tracker
        self.engine = engine
        self.fetcher = fetcher
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

        self._states: Dict[str, CropRequestState] = {}
        self._retry_tasks: Set[asyncio.Task] = set()

    def capture(self, request_id: str, payload: str, url: Optional[str] = None) -> bool:
        """Record an observed outbound request (CAPTURED). No I/O."""
        captured = self.tracker.capture(request_id, payload, url=url)
        if captured:
            self._states[request_id] = CropRequestState.CAPTURED
        return captured

    def state(self, request_id: str) -> Optional[CropRequestState]:
        """Current state of a live request; None once it is terminal or unknown."""
        return self._states.get(request_id)

    @property
    def pending_retries(self) -> int:
        return len(self._retry_tasks)

    async def resolve(self, request_id: str, url: Optional[str] = None) -> ResolveOutcome:
        """Replay a captured request (FETCHING) and feed the result to handle()."""
        pending = self.tracker.get(request_id)
        if pending is None:
            logger.warning("No request body found for crop request", request_id=request_id)
            return ResolveOutcome.IGNORED

        if url:
            pending.url = url
        if not pending.url:
            logger.error("Crop request has no endpoint to replay", request_id=request_id)
            self._terminate(request_id, CropRequestState.DISCARDED)
            return ResolveOutcome.DISCARDED

        self._states[request_id] = CropRequestState.FETCHING
        logger.info("Processing crop data request",
                    request_id=request_id,
                    attempt=pending.retry_count + 1)

        try:
            body = await self.fetcher.replay(pending.url, pending.payload)
        except FetchError as e:
            message = CropFetchFailed(request_id, e, BackoffPolicy.EXPONENTIAL)
        except Exception as e:
            # Any other fetcher fault still ends in a retry or a discard
            logger.error("Unexpected crop fetch failure",
                         request_id=request_id,
                         error=str(e),
                         error_type=type(e).__name__)
            message = CropFetchFailed(request_id, e, BackoffPolicy.EXPONENTIAL)
        else:
            message = CropFetchSucceeded(request_id, body)

        return await self.handle(message)

    async def on_request_error(self, request_id: str, error: str, url: Optional[str] = None) -> ResolveOutcome:
        """The browser's own crop request errored; retry on the linear schedule."""
        logger.info("Error occurred in crop data request", request_id=request_id, error=error)
        if request_id not in self.tracker:
            return ResolveOutcome.IGNORED
        if url:
            self.tracker.set_url(request_id, url)
        return await self.handle(
            CropFetchFailed(request_id, FetchTransportError(error), BackoffPolicy.LINEAR)
        )

    async def handle(self, message: CropFetchMessage) -> ResolveOutcome:
        """Apply one fetch outcome to the state machine."""
        request_id = message.request_id
        if request_id not in self.tracker:
            # Cleared or exhausted while the fetch was in flight
            logger.debug("Dropping result for untracked crop request", request_id=request_id)
            return ResolveOutcome.IGNORED

        if isinstance(message, CropFetchFailed):
            return self._on_failure(request_id, message.error, message.policy)

        try:
            profile = parse_crop_response(message.body)
        except ResponseShapeError as e:
            return self._on_failure(request_id, e, BackoffPolicy.EXPONENTIAL)

        self._terminate(request_id, CropRequestState.SUCCEEDED)
        logger.info("Successfully fetched crop data",
                    request_id=request_id,
                    acres=profile.acres,
                    crops=[c.name for c in profile.crops])

        try:
            await self.engine.apply_profile(profile)
        except PersistenceError as e:
            # The profile is in the store; only the save failed
            logger.error("Could not persist crop profile", acres=profile.acres, error=str(e))

        return ResolveOutcome.SUCCEEDED

    async def drain(self) -> None:
        """Wait until no retries are scheduled (retries may schedule retries)."""
        while self._retry_tasks:
            await asyncio.gather(*list(self._retry_tasks), return_exceptions=True)

    def clear(self) -> None:
        """Cancel scheduled retries and forget every pending request."""
        for task in list(self._retry_tasks):
            task.cancel()
        self._retry_tasks.clear()
        self._states.clear()
        self.tracker.clear()

    def _on_failure(self, request_id: str, error: Exception, policy: BackoffPolicy) -> ResolveOutcome:
        pending = self.tracker.get(request_id)
        self._states[request_id] = CropRequestState.FAILED
        logger.warning("Error processing crop data",
                       request_id=request_id,
                       error=str(error),
                       error_type=type(error).__name__,
                       retry_count=pending.retry_count)

        if pending.retry_count < self.max_retries:
            retry_count = self.tracker.bump_retry(request_id)
            delay = policy.delay(self.retry_delay, retry_count)
            self._schedule_retry(request_id, delay)
            logger.info("Scheduled crop data retry",
                        request_id=request_id,
                        attempt=retry_count,
                        delay_seconds=delay,
                        policy=policy.value)
            return ResolveOutcome.RETRY_SCHEDULED

        exhausted = RetryExhaustedError(request_id, self.max_retries)
        logger.error(str(exhausted), request_id=request_id, last_error=str(error))
        self._terminate(request_id, CropRequestState.DISCARDED)
        return ResolveOutcome.DISCARDED

    def _terminate(self, request_id: str, state: CropRequestState) -> None:
        self.tracker.discard(request_id)
        self._states.pop(request_id, None)
        logger.debug("Crop request finished", request_id=request_id, state=state.value)

    def _schedule_retry(self, request_id: str, delay: float) -> None:
        task = asyncio.create_task(self._retry_after(request_id, delay))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)

    async def _retry_after(self, request_id: str, delay: float) -> None:
        await self._sleep(delay)
        if request_id not in self.tracker:
            return
        logger.info("Retrying crop data request",
                    request_id=request_id,
                    attempt=self.tracker.get(request_id).retry_count)
        await self.resolve(request_id)
