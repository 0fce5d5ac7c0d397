"""Test data builders and fakes shared across test modules."""
import asyncio
from typing import Any, Callable, Dict, List, Optional

from acres_collector.errors import PersistenceError
from acres_collector.models import Snapshot
from acres_collector.scheduler.automation import InteractionAgent
from acres_collector.services.crop_resolver import CropFetcher
from acres_collector.services.persistence import SnapshotGateway

CROP_STATS_URL = "https://www.acres.com/geoserver/cdl_stats/latest"
COMP_URL = "https://www.acres.com/courthouse-comps/abc123"


def make_comp(
    comp_id: str = "A",
    fips: Optional[str] = "06019",
    acres: Optional[float] = 40.0,
    **overrides
) -> Dict[str, Any]:
    comp = {
        'id': comp_id,
        'document_numbers': [f"DOC-{comp_id}"],
        'fips_code': fips,
        'sale_date': "2024-03-15",
        'sale_amount': 1250000,
        'computed_acres': acres,
        'courthouse_acres': None,
        'price_per_acre_computed': 31250.0,
        'centroid': {'type': 'Point', 'coordinates': [-119.7726, 36.7468]},
    }
    comp.update(overrides)
    return comp


def crop_response(acres: float, labels: List[str], data: List[float]) -> Dict[str, Any]:
    return {'info': {'acres': acres, 'labels': labels, 'data': data}}


class FakeFetcher(CropFetcher):
    """Returns queued results in order; exceptions in the queue are raised."""

    def __init__(self, results: Optional[List[Any]] = None, default: Any = None):
        self.results = list(results or [])
        self.default = default
        self.calls: List[tuple] = []
        self.before_return: Optional[Callable[[], None]] = None

    async def replay(self, url: str, payload: str) -> Any:
        self.calls.append((url, payload))
        await asyncio.sleep(0)
        result = self.results.pop(0) if self.results else self.default
        if self.before_return is not None:
            self.before_return()
        if isinstance(result, Exception):
            raise result
        return result


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays and only yields."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FailingGateway(SnapshotGateway):
    def __init__(self):
        self.attempts = 0

    async def save(self, snapshot: Snapshot) -> None:
        self.attempts += 1
        raise PersistenceError("disk full")

    async def load(self) -> Optional[Snapshot]:
        return None


class FakeAgent(InteractionAgent):
    def __init__(self, outcome: str = "Clicked on map feature", error: Optional[Exception] = None,
                 access_error: Optional[Exception] = None):
        self.outcome = outcome
        self.error = error
        self.access_error = access_error
        self.interactions = 0
        self.focused: List[str] = []

    async def check_access(self) -> None:
        if self.access_error is not None:
            raise self.access_error

    async def attempt_interaction(self) -> str:
        self.interactions += 1
        if self.error is not None:
            raise self.error
        return self.outcome

    async def focus_county(self, county) -> bool:
        self.focused.append(county.name)
        return True
