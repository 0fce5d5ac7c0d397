"""
aiohttp client for acres.com endpoints.

Two calls are needed:
- GET a courthouse comp by the URL the browser loaded (comp JSON)
- POST a captured body back to the cropland statistics endpoint (replay)

Both map transport failures to FetchTransportError and non-2xx answers to
FetchStatusError; undecodable JSON is a ResponseShapeError.
"""
import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp
import structlog

from ..errors import FetchStatusError, FetchTransportError, ResponseShapeError
from ..services.crop_resolver import CropFetcher

logger = structlog.get_logger(__name__)

COMPS_PATH = "/courthouse-comps/"
CROP_STATS_PATH = "/geoserver/cdl_stats/latest"


def is_comp_url(url: str, method: str = "GET") -> bool:
    return method.upper() == "GET" and f"acres.com{COMPS_PATH}" in url


def is_crop_stats_url(url: str, method: str = "POST") -> bool:
    return method.upper() == "POST" and f"acres.com{CROP_STATS_PATH}" in url


class AcresClient(CropFetcher):
    """Session wrapper; use as an async context manager."""

    def __init__(
        self,
        timeout: float = 30.0,
        cookies: Optional[Dict[str, str]] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.timeout = timeout
        self.cookies = cookies or {}
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup()

    async def initialize(self) -> None:
        if self.session is None:
            connector = aiohttp.TCPConnector(limit=20, limit_per_host=10)
            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                cookies=self.cookies,
                headers={'Accept': 'application/json'},
            )
            self._owns_session = True

    async def cleanup(self) -> None:
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None

    async def fetch_comp(self, url: str) -> Dict[str, Any]:
        """Fetch a courthouse comp as JSON."""
        return await self._request_json('GET', url)

    async def replay(self, url: str, payload: str) -> Any:
        """POST a captured crop statistics body as-is."""
        return await self._request_json(
            'POST',
            url,
            data=payload.encode('utf-8'),
            headers={'Content-Type': 'application/json'},
        )

    async def _request_json(self, method: str, url: str, **kwargs) -> Any:
        if self.session is None:
            await self.initialize()

        try:
            async with self.session.request(method, url, **kwargs) as response:
                if response.status >= 400:
                    raise FetchStatusError(response.status, url)
                text = await response.text()
        except aiohttp.ClientError as e:
            logger.warning("Request failed", method=method, url=url, error=str(e))
            raise FetchTransportError(f"{type(e).__name__}: {e}") from e
        except asyncio.TimeoutError as e:
            raise FetchTransportError(f"Timed out after {self.timeout}s: {url}") from e
        except UnicodeDecodeError as e:
            raise ResponseShapeError(f"Response body does not match its charset: {e}") from e

        try:
            return json.loads(text)
        except ValueError as e:
            raise ResponseShapeError(f"Response is not JSON: {e}") from e
