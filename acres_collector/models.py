"""
Data models for collected properties, crop profiles and persisted snapshots.

CourthouseComp validates the raw comp JSON observed on acres.com; the other
models are what the stores own and what the snapshot gateway persists.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_CROPS = 3


def quantize_acres(value: float) -> float:
    """Round an acreage to the 2-decimal key used to join the two streams."""
    return round(float(value), 2)


def acres_key(value: float) -> str:
    """String form of a quantized acreage, e.g. 40.1 -> "40.10"."""
    return f"{quantize_acres(value):.2f}"


def _first_truthy(*values):
    for value in values:
        if value:
            return value
    return None


class Centroid(BaseModel):
    """GeoJSON point; coordinates are [longitude, latitude]."""
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    coordinates: List[Optional[float]] = Field(default_factory=list)


class CourthouseComp(BaseModel):
    """Raw courthouse comp payload as served by the comps endpoint."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    document_numbers: Optional[List[str]] = None
    fips_code: Optional[str] = None
    sale_date: Optional[str] = None
    sale_amount: Optional[float] = None
    computed_acres: Optional[float] = None
    courthouse_acres: Optional[float] = None
    price_per_acre_computed: Optional[float] = None
    price_per_acre_courthouse: Optional[float] = None
    centroid: Optional[Centroid] = None

    @field_validator('id', 'fips_code', 'sale_date', mode='before')
    @classmethod
    def coerce_text(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator('document_numbers', mode='before')
    @classmethod
    def coerce_document_numbers(cls, v):
        if v is None:
            return None
        if isinstance(v, (str, int)):
            return [str(v)]
        return [str(item) for item in v if item is not None]

    @field_validator(
        'sale_amount', 'computed_acres', 'courthouse_acres',
        'price_per_acre_computed', 'price_per_acre_courthouse',
        mode='before'
    )
    @classmethod
    def parse_number(cls, v):
        if v is None or v == "":
            return None
        try:
            return float(v)
        except (ValueError, TypeError):
            return None

    @property
    def acres(self) -> Optional[float]:
        """Computed acres preferred, courthouse acres as fallback."""
        return _first_truthy(self.computed_acres, self.courthouse_acres)

    @property
    def price_per_acre(self) -> Optional[float]:
        return _first_truthy(self.price_per_acre_computed, self.price_per_acre_courthouse)

    def coordinate(self, index: int) -> Optional[float]:
        if not self.centroid or len(self.centroid.coordinates) <= index:
            return None
        return self.centroid.coordinates[index]


class CropShare(BaseModel):
    """One crop and the acres it covers."""
    name: str
    acres: float


class CropProfile(BaseModel):
    """Top crops (at most 3, by descending share) for one total acreage."""
    acres: float
    crops: List[CropShare] = Field(default_factory=list, max_length=MAX_CROPS)

    @field_validator('acres')
    @classmethod
    def quantize(cls, v):
        return quantize_acres(v)

    @property
    def key(self) -> str:
        return acres_key(self.acres)


class PropertyRecord(BaseModel):
    """One collected sale, optionally enriched with crop shares."""
    id: str
    document_number: Optional[str] = None
    county_fips: str
    sale_date: Optional[str] = None
    sale_amount: Optional[float] = None
    acres: Optional[float] = None
    price_per_acre: Optional[float] = None
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    crops: List[CropShare] = Field(default_factory=list, max_length=MAX_CROPS)

    @classmethod
    def from_comp(cls, comp: CourthouseComp) -> "PropertyRecord":
        return cls(
            id=comp.id,
            document_number=comp.document_numbers[0] if comp.document_numbers else None,
            county_fips=comp.fips_code or "",
            sale_date=comp.sale_date,
            sale_amount=comp.sale_amount,
            acres=comp.acres,
            price_per_acre=comp.price_per_acre,
            longitude=comp.coordinate(0),
            latitude=comp.coordinate(1),
        )

    def apply_crops(self, profile: CropProfile) -> None:
        """Replace crop shares with the profile's (full replace, not a merge)."""
        self.crops = [share.model_copy() for share in profile.crops[:MAX_CROPS]]

    def to_row(self) -> Dict[str, Any]:
        """Flatten into the export column names."""
        row = {
            'Document_num': self.document_number,
            'County_fipscode': self.county_fips,
            'Sales_date': self.sale_date,
            'Sales_amount': self.sale_amount,
            'Sold_acre': self.acres,
            'price_per_acre': self.price_per_acre,
            'longitude': self.longitude,
            'latitude': self.latitude,
        }
        for i in range(MAX_CROPS):
            share = self.crops[i] if i < len(self.crops) else None
            row[f'crop{i + 1}'] = share.name if share else None
            row[f'crop_ac{i + 1}'] = share.acres if share else None
        return row


class Snapshot(BaseModel):
    """Persisted state: properties, seen ids and crop profiles by acreage key."""
    model_config = ConfigDict(populate_by_name=True)

    entities: List[PropertyRecord] = Field(default_factory=list)
    dedup_ids: List[str] = Field(default_factory=list, alias="dedupIds")
    profiles: Dict[str, CropProfile] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.entities or self.dedup_ids or self.profiles)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw) -> "Snapshot":
        return cls.model_validate_json(raw)
