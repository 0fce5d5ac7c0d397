"""
AcresCollector - wires observed page traffic into the correlation pipeline

Events come from whatever watches the browser's network traffic:

    comp loaded         -> on_comp_completed(url)     -> re-fetch JSON -> engine.add_property
    crop request sent   -> on_crop_request(id, body)  -> tracker capture
    crop request done   -> on_crop_completed(id, url) -> resolver replay -> engine.apply_profile
    crop request failed -> on_crop_error(id, error)   -> resolver retry (linear backoff)

Per-event failures are logged here and never stop the next event.
"""
import json
from typing import Any, Dict, Mapping, Optional

import structlog

from .config.settings import Settings
from .errors import FetchError, PersistenceError
from .scheduler.automation import AutomationScheduler, InteractionAgent
from .scrapers.acres_client import AcresClient, is_comp_url, is_crop_stats_url
from .services.correlation import CorrelationEngine, IngestOutcome
from .services.crop_resolver import CropFetcher, CropFetchSucceeded, CropResolver, ResolveOutcome
from .services.dispatcher import CommandDispatcher, FileExportSink
from .services.persistence import SnapshotGateway, create_gateway
from .services.request_tracker import CropRequestTracker
from .services.stores import CropProfileStore, PropertyStore

logger = structlog.get_logger(__name__)


def decode_request_body(request_body: Any) -> Optional[str]:
    """
    Turn a captured request body into text.

    Accepts text, bytes, a list of raw chunks ({"bytes": ...}) or form data
    (a mapping, serialized as JSON).
    """
    if request_body is None:
        return None
    if isinstance(request_body, str):
        return request_body
    if isinstance(request_body, (bytes, bytearray)):
        return bytes(request_body).decode('utf-8', errors='replace')
    if isinstance(request_body, Mapping):
        if 'raw' in request_body:
            return decode_request_body(request_body['raw'])
        if 'formData' in request_body:
            return json.dumps(request_body['formData'])
        return json.dumps(request_body)
    if isinstance(request_body, (list, tuple)):
        parts = []
        for chunk in request_body:
            data = chunk.get('bytes') if isinstance(chunk, Mapping) else chunk
            if data:
                parts.append(decode_request_body(data))
        return ''.join(parts)
    return str(request_body)


class AcresCollector:
    """Composition root owning the stores, engine, resolver and command surface."""

    def __init__(
        self,
        engine: CorrelationEngine,
        resolver: CropResolver,
        dispatcher: CommandDispatcher,
        client: Optional[AcresClient] = None
    ):
        self.engine = engine
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.client = client
        self._started = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        gateway: Optional[SnapshotGateway] = None,
        fetcher: Optional[CropFetcher] = None,
        agent: Optional[InteractionAgent] = None
    ) -> "AcresCollector":
        """Build a collector from settings; collaborators can be injected."""
        client = None
        if fetcher is None:
            client = AcresClient(timeout=settings.REQUEST_TIMEOUT_SECONDS)
            fetcher = client
        elif isinstance(fetcher, AcresClient):
            client = fetcher

        engine = CorrelationEngine(
            PropertyStore(),
            CropProfileStore(),
            gateway or create_gateway(settings),
            tolerance=settings.MATCH_TOLERANCE,
        )
        resolver = CropResolver(
            CropRequestTracker(),
            engine,
            fetcher,
            max_retries=settings.MAX_RETRIES,
            retry_delay=settings.RETRY_DELAY_SECONDS,
        )
        automation = AutomationScheduler(
            agent,
            interval_seconds=settings.AUTOMATION_INTERVAL_SECONDS,
            refocus_probability=settings.REFOCUS_PROBABILITY,
        )
        dispatcher = CommandDispatcher(
            engine,
            resolver,
            FileExportSink(settings.EXPORT_DIR, settings.EXPORT_FILENAME),
            automation=automation,
        )
        return cls(engine, resolver, dispatcher, client=client)

    async def start(self) -> None:
        """Rehydrate from the saved snapshot; only the first call loads."""
        if self._started:
            return
        await self.engine.load()
        self._started = True

    async def close(self) -> None:
        automation = self.dispatcher.automation
        if automation is not None and automation.enabled:
            automation.stop()
        self.resolver.clear()
        if self.client is not None:
            await self.client.cleanup()
        await self.engine.gateway.close()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # Comp stream

    async def on_comp_payload(self, payload: Mapping[str, Any]) -> IngestOutcome:
        """Ingest a comp JSON document."""
        try:
            return await self.engine.add_property(payload)
        except PersistenceError as e:
            # Record is collected in memory; the next successful save covers it
            logger.error("Property stored but snapshot not saved",
                         property_id=payload.get('id'),
                         error=str(e))
            return IngestOutcome.ADDED

    async def on_comp_completed(self, url: str, method: str = "GET") -> Optional[IngestOutcome]:
        """The page loaded a comp; fetch it again as JSON and ingest it."""
        if not is_comp_url(url, method):
            return None
        if self.client is None:
            logger.warning("No HTTP client configured for comp fetch", url=url)
            return None

        try:
            payload = await self.client.fetch_comp(url)
        except FetchError as e:
            logger.error("Error processing property response", url=url, error=str(e))
            return None

        if not isinstance(payload, Mapping):
            logger.warning("Comp response is not an object", url=url)
            return IngestOutcome.INVALID
        return await self.on_comp_payload(payload)

    # Crop statistics stream

    def on_crop_request(self, request_id: str, url: str, body: Any, method: str = "POST") -> bool:
        """The page is sending a crop statistics request; keep its body for replay."""
        if not is_crop_stats_url(url, method):
            return False
        payload = decode_request_body(body)
        if not payload:
            logger.debug("Crop request without body, not captured", request_id=request_id)
            return False
        return self.resolver.capture(request_id, payload, url=url)

    async def on_crop_completed(self, request_id: str, url: str, method: str = "POST") -> Optional[ResolveOutcome]:
        if not is_crop_stats_url(url, method):
            return None
        return await self.resolver.resolve(request_id, url=url)

    async def on_crop_error(self, request_id: str, url: str, error: str, method: str = "POST") -> Optional[ResolveOutcome]:
        if not is_crop_stats_url(url, method):
            return None
        return await self.resolver.on_request_error(request_id, error, url=url)

    async def on_crop_response(self, request_id: str, body: Any) -> ResolveOutcome:
        """Feed an already obtained crop response (e.g. from a recorded session)."""
        return await self.resolver.handle(CropFetchSucceeded(request_id, body))

    # Event log replay

    async def replay_event(self, event: Mapping[str, Any]) -> Any:
        """
        Apply one recorded event.

        Event types: comp, crop_request, crop_response, crop_error.
        """
        kind = event.get('type')
        if kind == 'comp':
            return await self.on_comp_payload(event.get('payload') or {})
        if kind == 'crop_request':
            return self.on_crop_request(
                str(event.get('request_id')),
                event.get('url', ''),
                event.get('body'),
                method=event.get('method', 'POST'),
            )
        if kind == 'crop_response':
            return await self.on_crop_response(str(event.get('request_id')), event.get('body'))
        if kind == 'crop_error':
            return await self.resolver.on_request_error(
                str(event.get('request_id')),
                event.get('error', 'unknown error'),
            )
        logger.warning("Unknown event type", type=kind)
        return None

    def status(self) -> Dict[str, Any]:
        automation = self.dispatcher.automation
        return {
            'properties': len(self.engine),
            'profiles': len(self.engine.profiles),
            'pending_crop_requests': len(self.resolver.tracker),
            'scheduled_retries': self.resolver.pending_retries,
            'automation_enabled': bool(automation and automation.enabled),
        }
