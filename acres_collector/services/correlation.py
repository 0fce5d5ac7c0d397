"""
CorrelationEngine - pairs sale comps with crop profiles by acreage

The two streams share no identifier. A comp carries its acreage; a crop
statistics response carries the total acreage it was computed for. Records
are joined when the two acreages are within MATCH_TOLERANCE.

Arrival order between the streams is not guaranteed, so both entry points do
a full lookup:
- add_property() looks for an already stored profile
- apply_profile() rescans every stored property (backfill)

Both are idempotent: properties are deduplicated by id and a profile fully
replaces a property's crops, so reapplying it changes nothing.
"""
from collections import Counter
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, Union

import structlog
from pydantic import ValidationError

from ..config.counties import TARGET_COUNTIES
from ..errors import AdmissionRejected, CollectorError, DuplicateEntityError, PersistenceError
from ..models import CourthouseComp, CropProfile, PropertyRecord, Snapshot
from .admission import admit
from .persistence import SnapshotGateway
from .stores import CropProfileStore, PropertyStore

logger = structlog.get_logger(__name__)

DEFAULT_TOLERANCE = 0.15


class IngestOutcome(Enum):
    """Result of offering one comp to the engine."""
    ADDED = "added"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    INVALID = "invalid"

    @property
    def reason(self) -> Optional[Type[CollectorError]]:
        """Error class naming why a comp was not collected, if it was skipped."""
        return _SKIP_REASONS.get(self)


_SKIP_REASONS = {
    IngestOutcome.DUPLICATE: DuplicateEntityError,
    IngestOutcome.REJECTED: AdmissionRejected,
}


class CorrelationEngine:
    """Owns no data itself; works through the injected stores and gateway."""

    def __init__(
        self,
        properties: PropertyStore,
        profiles: CropProfileStore,
        gateway: SnapshotGateway,
        tolerance: float = DEFAULT_TOLERANCE
    ):
        self.properties = properties
        self.profiles = profiles
        self.gateway = gateway
        self.tolerance = tolerance

    async def load(self) -> bool:
        """
        Rehydrate the stores from the gateway. Called once at start.

        Returns:
            True if a snapshot was found
        """
        snapshot = await self.gateway.load()
        if snapshot is None:
            logger.info("No saved snapshot, starting empty")
            return False

        self.properties.restore(snapshot.entities, snapshot.dedup_ids)
        self.profiles.restore(snapshot.profiles)
        logger.info("Loaded data from storage",
                    properties=len(self.properties),
                    profiles=len(self.profiles))
        return True

    async def add_property(self, raw: Union[CourthouseComp, Mapping[str, Any]]) -> IngestOutcome:
        """
        Offer one raw comp to the collection.

        Steps: dedup by id, admission by county, build the record, enrich it
        from an already stored crop profile, append and persist.
        """
        try:
            comp = raw if isinstance(raw, CourthouseComp) else CourthouseComp.model_validate(raw)
        except ValidationError as e:
            logger.warning("Unparseable comp payload", error=str(e))
            return IngestOutcome.INVALID

        if not comp.id:
            logger.debug("Comp payload without id, ignoring")
            return IngestOutcome.INVALID

        if self.properties.has_seen(comp.id):
            logger.info("Skipping duplicate property",
                        property_id=comp.id,
                        reason=DuplicateEntityError.__name__)
            return IngestOutcome.DUPLICATE

        if not admit(comp):
            return IngestOutcome.REJECTED

        self.properties.mark_seen(comp.id)
        record = PropertyRecord.from_comp(comp)

        profile = self.profiles.find_match(record.acres, self.tolerance)
        if profile is not None:
            record.apply_crops(profile)

        self.properties.append(record)
        logger.info("Found new property data",
                    property_id=record.id,
                    county_fips=record.county_fips,
                    acres=record.acres,
                    enriched=profile is not None,
                    total=len(self.properties))

        await self._persist()
        return IngestOutcome.ADDED

    async def apply_profile(self, profile: CropProfile) -> bool:
        """
        Store a crop profile and backfill every matching property.

        Returns:
            True if at least one property was updated
        """
        self.profiles.put(profile)

        updated = 0
        for record in self.properties.matching(profile.acres, self.tolerance):
            record.apply_crops(profile)
            updated += 1

        if updated:
            logger.info("Updated properties with crop data",
                        acres=profile.acres,
                        updated=updated)
        else:
            # Kept for properties that arrive later
            logger.info("No matching properties for crop data", acres=profile.acres)

        await self._persist()
        return updated > 0

    async def clear(self) -> None:
        """Drop all properties, seen ids and profiles, then persist the empty state."""
        self.reset()
        await self._persist()

    def reset(self) -> None:
        """Synchronous part of clear(); no await between the store resets."""
        self.properties.clear()
        self.profiles.clear()

    def snapshot(self) -> Snapshot:
        return Snapshot(
            entities=[r.model_copy(deep=True) for r in self.properties],
            dedup_ids=self.properties.seen_ids,
            profiles={key: p.model_copy(deep=True) for key, p in self.profiles.items()},
        )

    @property
    def records(self) -> List[PropertyRecord]:
        return self.properties.records

    def county_counts(self) -> Dict[str, Dict[str, Any]]:
        """Collected properties per target county, in rotation order."""
        counts = Counter(r.county_fips for r in self.properties)
        return {
            county.fips: {'name': county.name, 'count': counts.get(county.fips, 0)}
            for county in TARGET_COUNTIES
        }

    def __len__(self) -> int:
        return len(self.properties)

    async def _persist(self) -> None:
        # Snapshot is built before the await so it reflects a committed state
        snapshot = self.snapshot()
        try:
            await self.gateway.save(snapshot)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("Snapshot save failed", error=str(e))
            raise PersistenceError(str(e)) from e
