"""
In-process stores for collected properties and crop profiles.

Both are owned, explicitly scoped structures: the correlation engine gets
them injected, rehydrates them from a snapshot once at start and resets them
on clear.
"""
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from ..models import CropProfile, PropertyRecord


MATCH_EPSILON = 1e-9


def within_tolerance(a: float, b: float, tolerance: float) -> bool:
    """
    Strict acreage match: |a - b| < tolerance.

    The bound is pulled in by MATCH_EPSILON so a gap of exactly the tolerance
    (e.g. 40.00 vs 40.15) never matches through float noise, while a true gap
    just under it (40.00 vs 40.1499996) still does.
    """
    return abs(a - b) < tolerance - MATCH_EPSILON


class PropertyStore:
    """Ordered, deduplicated property records plus the set of seen ids."""

    def __init__(self):
        self._records: List[PropertyRecord] = []
        self._seen_ids: Set[str] = set()

    def has_seen(self, property_id: str) -> bool:
        return property_id in self._seen_ids

    def mark_seen(self, property_id: str) -> None:
        self._seen_ids.add(property_id)

    def append(self, record: PropertyRecord) -> None:
        self._records.append(record)

    def matching(self, acres: float, tolerance: float) -> Iterator[PropertyRecord]:
        """Records whose acreage is within tolerance of `acres`."""
        for record in self._records:
            if record.acres and within_tolerance(record.acres, acres, tolerance):
                yield record

    @property
    def records(self) -> List[PropertyRecord]:
        return list(self._records)

    @property
    def seen_ids(self) -> List[str]:
        return sorted(self._seen_ids)

    def restore(self, records: Iterable[PropertyRecord], seen_ids: Iterable[str]) -> None:
        self._records = list(records)
        self._seen_ids = set(seen_ids)
        # A record is always seen, even if an older snapshot lost the id
        self._seen_ids.update(r.id for r in self._records)

    def clear(self) -> None:
        self._records = []
        self._seen_ids = set()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[PropertyRecord]:
        return iter(self._records)


class CropProfileStore:
    """Most recent crop profile per quantized acreage key, in insertion order."""

    def __init__(self):
        self._profiles: Dict[str, CropProfile] = {}

    def put(self, profile: CropProfile) -> None:
        # Overwriting keeps the key's original position in enumeration order
        self._profiles[profile.key] = profile

    def get(self, key: str) -> Optional[CropProfile]:
        return self._profiles.get(key)

    def find_match(self, acres: Optional[float], tolerance: float) -> Optional[CropProfile]:
        """First profile, in insertion order, within tolerance of `acres`."""
        if not acres:
            return None
        for profile in self._profiles.values():
            if within_tolerance(acres, profile.acres, tolerance):
                return profile
        return None

    def items(self) -> List[Tuple[str, CropProfile]]:
        return list(self._profiles.items())

    def restore(self, profiles: Dict[str, CropProfile]) -> None:
        self._profiles = dict(profiles)

    def clear(self) -> None:
        self._profiles = {}

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, key: str) -> bool:
        return key in self._profiles
