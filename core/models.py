"""
Pydantic models shared across the Conflict Atlas core.

Request bodies and third-party payloads are decoded tolerantly here, at the
boundary, so the services only ever see one canonical shape.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from core.errors import InvalidRequest


def coerce_id(value: Any) -> Optional[int]:
    """Coerce a JSON id to a positive int, or None when absent/invalid."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0 or number != int(number):
        return None
    return int(number)


def _count(value: Any) -> int:
    """Coerce an upstream count to a non-negative int; junk becomes 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number) or number < 0:
        return 0
    return int(number)


# ── Summary targets ────────────────────────────────────────────────────────


class TargetKind(str, Enum):
    """What a summary (or dashboard) is about."""

    CONFLICT = "conflict"
    COUNTRY = "country"


class SummaryTarget(BaseModel):
    """A conflict or a whole country, identified by its UCDP numeric id."""

    model_config = ConfigDict(frozen=True)

    kind: TargetKind
    id: int = Field(gt=0)

    @property
    def storage_key(self) -> int:
        """Signed single-integer key: ``id`` for conflicts, ``-id`` for countries."""
        return self.id if self.kind is TargetKind.CONFLICT else -self.id

    @classmethod
    def conflict(cls, conflict_id: int) -> SummaryTarget:
        return cls(kind=TargetKind.CONFLICT, id=conflict_id)

    @classmethod
    def country(cls, country_id: int) -> SummaryTarget:
        return cls(kind=TargetKind.COUNTRY, id=country_id)

    @classmethod
    def from_storage_key(cls, key: int) -> SummaryTarget:
        if key == 0:
            raise InvalidRequest("Storage key 0 does not identify a conflict or country")
        return cls.conflict(key) if key > 0 else cls.country(-key)

    @classmethod
    def for_request(
        cls,
        conflict_id: Optional[int],
        country_id: Optional[int],
    ) -> SummaryTarget:
        """Conflict-level when a conflict id is given, else country-level."""
        if conflict_id is not None:
            return cls.conflict(conflict_id)
        if country_id is not None:
            return cls.country(country_id)
        raise InvalidRequest("Invalid or missing conflictId/countryId")


class SummaryRequest(BaseModel):
    """Body of ``POST /api/conflict-summary``."""

    model_config = ConfigDict(populate_by_name=True)

    conflict_id: Optional[int] = Field(default=None, alias="conflictId")
    country_id: Optional[int] = Field(default=None, alias="countryId")
    conflict_name: Optional[str] = Field(default=None, alias="conflictName")
    country_name: Optional[str] = Field(default=None, alias="countryName")
    force_refresh: bool = Field(default=False, alias="forceRefresh")

    @field_validator("conflict_id", "country_id", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Optional[int]:
        return coerce_id(value)

    @field_validator("conflict_name", "country_name", mode="before")
    @classmethod
    def _names(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @field_validator("force_refresh", mode="before")
    @classmethod
    def _truthy(cls, value: Any) -> bool:
        return bool(value)

    def target(self) -> SummaryTarget:
        return SummaryTarget.for_request(self.conflict_id, self.country_id)


class SummaryRecord(BaseModel):
    """One cached summary row, overwritten in place on every regeneration."""

    target: SummaryTarget
    country_id: Optional[int] = None
    #: Display name the summary was generated for, reused when a later
    #: request omits it.
    title: Optional[str] = None
    text: str = Field(min_length=1)
    model_id: str
    generated_at: datetime

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.generated_at < ttl


class SummaryResult(BaseModel):
    text: str
    model_id: str
    cached: bool

    def to_response(self) -> dict[str, Any]:
        return {"summary": self.text, "model": self.model_id, "cached": self.cached}


# ── Displacement ───────────────────────────────────────────────────────────


class PopulationRow(BaseModel):
    """A single UNHCR population row, whatever casing the API used."""

    year: Optional[int] = None
    refugees: int = Field(
        default=0, validation_alias=AliasChoices("refugees", "Refugees")
    )
    asylum_seekers: int = Field(
        default=0,
        validation_alias=AliasChoices("asylum_seekers", "Asylum_seekers", "asylumSeekers"),
    )
    idps: int = Field(default=0, validation_alias=AliasChoices("idps", "IDPs", "idp"))

    @field_validator("year", mode="before")
    @classmethod
    def _year(cls, value: Any) -> Optional[int]:
        return coerce_id(value)

    @field_validator("refugees", "asylum_seekers", "idps", mode="before")
    @classmethod
    def _counts(cls, value: Any) -> int:
        return _count(value)


class DisplacementSnapshot(BaseModel):
    """Latest-year displacement figures for one country of origin."""

    iso3: str
    refugees: int = Field(ge=0)
    asylum_seekers: int = Field(ge=0)
    idps: Optional[int] = Field(default=None, ge=0)
    year: Optional[int] = None
    source: str

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ── UCDP events ────────────────────────────────────────────────────────────


class GedEvent(BaseModel):
    """A UCDP Georeferenced Event Dataset row (only the fields we use)."""

    id: int
    conflict_new_id: int
    conflict_name: str = ""
    dyad_new_id: Optional[int] = None
    dyad_name: Optional[str] = None
    latitude: float
    longitude: float
    date_end: str
    best: int = 0
    type_of_violence: int = 1
    country_id: int

    @field_validator("best", mode="before")
    @classmethod
    def _best(cls, value: Any) -> int:
        return _count(value)


class MonthlyCount(BaseModel):
    month: str
    events: int
    best: int


class ConflictNumbers(BaseModel):
    """Aggregated GED figures for a conflict or country."""

    total_events: int
    total_best: int
    by_type: dict[int, int]
    by_month: list[MonthlyCount]


# ── Dashboards ─────────────────────────────────────────────────────────────


class GridLayoutItem(BaseModel):
    """One tile position; extra grid options are stored untouched."""

    model_config = ConfigDict(extra="allow")

    i: str
    x: int
    y: int
    w: int
    h: int


class DashboardLayout(BaseModel):
    user_id: str
    target: SummaryTarget
    layout: list[GridLayoutItem]
    updated_at: datetime
