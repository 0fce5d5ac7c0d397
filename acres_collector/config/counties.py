"""
Target counties for collection.

Central Valley counties whose sale comps are kept. The FIPS codes here are
the admission allow-list; the map focus points drive the automation rotation.
"""
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field


class County(BaseModel):
    """One target county."""
    name: str = Field(..., min_length=1)
    fips: str = Field(..., min_length=5, max_length=5)
    longitude: float
    latitude: float
    zoom: int = 10

    model_config = {"frozen": True}


# Rotation order: Fresno -> Kern -> Tulare -> Kings
TARGET_COUNTIES: List[County] = [
    County(name="Fresno", fips="06019", longitude=-119.7726, latitude=36.7468, zoom=10),
    County(name="Kern", fips="06029", longitude=-118.9015, latitude=35.3933, zoom=10),
    County(name="Tulare", fips="06107", longitude=-118.8028, latitude=36.2308, zoom=9),
    County(name="Kings", fips="06031", longitude=-119.8815, latitude=36.0988, zoom=10),
]

ALLOWED_FIPS_CODES: FrozenSet[str] = frozenset(c.fips for c in TARGET_COUNTIES)

COUNTIES_BY_FIPS: Dict[str, County] = {c.fips: c for c in TARGET_COUNTIES}


def county_name(fips: str) -> Optional[str]:
    """Return the county name for a FIPS code, or None when not a target."""
    county = COUNTIES_BY_FIPS.get(fips)
    return county.name if county else None
