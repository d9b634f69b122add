"""
Point-in-polygon country resolution.

Rings are sequences of ``(lon, lat)`` pairs, as in GeoJSON. Containment uses
the standard ray-casting test; no spatial index is built because the world
boundaries dataset is small (a few hundred features) and lookups are
memoised by the caller.

Features whose rings span more than 180° of longitude wrap the antimeridian.
They are excluded from rendering, but containment is not corrected for them,
so results near ±180° longitude are unreliable.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from core.errors import UpstreamFetchFailed
from core.models import GedEvent

logger = logging.getLogger(__name__)

Ring = Sequence[Sequence[float]]

_NAME_KEYS = ("name", "NAME", "ADMIN", "admin", "name_long", "NAME_LONG")
_ISO3_KEYS = ("iso_a3", "ISO_A3", "ADM0_A3", "adm0_a3", "iso3", "ISO3")


# ── Containment ────────────────────────────────────────────────────────────


def point_in_ring(lon: float, lat: float, ring: Ring) -> bool:
    """Return True if (lon, lat) lies inside the closed *ring*.

    Counts crossings of a horizontal ray from the point; an odd count means
    inside. Whether the ring repeats its first vertex does not matter.
    """
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > lat) != (yj > lat) and lon < (xj - xi) * (lat - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def polygon_contains(rings: Sequence[Ring], lon: float, lat: float) -> bool:
    """Inside the outer ring (``rings[0]``) and inside none of the holes."""
    if not rings or not point_in_ring(lon, lat, rings[0]):
        return False
    return not any(point_in_ring(lon, lat, hole) for hole in rings[1:])


def geometry_contains(geometry: Optional[dict[str, Any]], lon: float, lat: float) -> bool:
    """Containment for a GeoJSON ``Polygon`` or ``MultiPolygon`` geometry."""
    if not geometry:
        return False
    kind = geometry.get("type")
    coordinates = geometry.get("coordinates") or []
    if kind == "Polygon":
        return polygon_contains(coordinates, lon, lat)
    if kind == "MultiPolygon":
        return any(polygon_contains(part, lon, lat) for part in coordinates)
    return False


# ── Antimeridian ───────────────────────────────────────────────────────────


def ring_spans_antimeridian(ring: Ring) -> bool:
    if not ring:
        return False
    lons = [point[0] for point in ring]
    return max(lons) - min(lons) > 180


def geometry_spans_antimeridian(geometry: Optional[dict[str, Any]]) -> bool:
    if not geometry:
        return False
    kind = geometry.get("type")
    coordinates = geometry.get("coordinates") or []
    if kind == "Polygon":
        polygons = [coordinates]
    elif kind == "MultiPolygon":
        polygons = coordinates
    else:
        return False
    return any(ring_spans_antimeridian(ring) for rings in polygons for ring in rings)


# ── Country index ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CountryPolygon:
    name: str
    iso3: Optional[str]
    geometry: dict[str, Any]

    def contains(self, lat: float, lon: float) -> bool:
        return geometry_contains(self.geometry, lon, lat)

    @property
    def spans_antimeridian(self) -> bool:
        return geometry_spans_antimeridian(self.geometry)


def _first_property(properties: dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = properties.get(key)
        if isinstance(value, str) and value.strip() and value != "-99":
            return value.strip()
    return None


def resolve_country(
    lat: float, lon: float, polygons: Iterable[CountryPolygon]
) -> Optional[str]:
    """Return the name of the first polygon containing the point, or None.

    Iteration order is the dataset order, which doubles as the tie-break
    should two features overlap.
    """
    for polygon in polygons:
        if polygon.contains(lat, lon):
            return polygon.name
    return None


class CountryPolygonIndex:
    """Read-only list of country polygons loaded from a GeoJSON FeatureCollection."""

    def __init__(self, polygons: Sequence[CountryPolygon]) -> None:
        self._polygons = tuple(polygons)

    def __len__(self) -> int:
        return len(self._polygons)

    def __iter__(self):
        return iter(self._polygons)

    @classmethod
    def from_geojson(cls, data: dict[str, Any]) -> CountryPolygonIndex:
        polygons = []
        for feature in data.get("features") or []:
            geometry = feature.get("geometry")
            if not geometry or geometry.get("type") not in ("Polygon", "MultiPolygon"):
                continue
            properties = feature.get("properties") or {}
            name = _first_property(properties, _NAME_KEYS)
            if name is None:
                continue
            iso3 = _first_property(properties, _ISO3_KEYS)
            if iso3 is None and isinstance(feature.get("id"), str) and len(feature["id"]) == 3:
                iso3 = feature["id"]
            polygons.append(
                CountryPolygon(name=name, iso3=iso3.upper() if iso3 else None, geometry=geometry)
            )
        return cls(polygons)

    @classmethod
    def load(cls, path: Path | str) -> CountryPolygonIndex:
        """Load the index from a GeoJSON file.

        Raises:
            UpstreamFetchFailed: The file is missing or is not valid JSON.
        """
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise UpstreamFetchFailed(f"Could not load world boundaries from {path}: {exc}") from exc
        index = cls.from_geojson(data)
        logger.info("Loaded %d country polygons from %s", len(index), path)
        return index

    def lookup(self, lat: float, lon: float) -> Optional[CountryPolygon]:
        for polygon in self._polygons:
            if polygon.contains(lat, lon):
                return polygon
        return None

    def resolve(self, lat: float, lon: float) -> Optional[str]:
        return resolve_country(lat, lon, self._polygons)

    def renderable(self) -> list[CountryPolygon]:
        """Polygons safe to draw directly (no antimeridian wrap)."""
        return [polygon for polygon in self._polygons if not polygon.spans_antimeridian]


def centroid(events: Sequence[GedEvent]) -> Optional[tuple[float, float]]:
    """Mean (lat, lon) of the events, or None when there are none."""
    if not events:
        return None
    lat = sum(event.latitude for event in events) / len(events)
    lon = sum(event.longitude for event in events) / len(events)
    return lat, lon
