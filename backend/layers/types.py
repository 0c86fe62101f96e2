from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias, Union


GeometryKind = Literal["Point", "LineString", "MultiLineString", "Polygon", "MultiPolygon"]

Position: TypeAlias = tuple[float, float]  # (lon, lat)
Ring: TypeAlias = list[Position]


@dataclass(frozen=True)
class PointFeature:
    id: str
    lon: float
    lat: float
    props: dict[str, Any]

    kind: GeometryKind = field(default="Point", init=False)

    @property
    def name(self) -> str | None:
        return _name(self.props)

    def coordinates(self) -> list[float]:
        return [self.lon, self.lat]


@dataclass(frozen=True)
class LineFeature:
    id: str
    coords: list[Position]  # [(lon, lat), ...]
    props: dict[str, Any]

    kind: GeometryKind = field(default="LineString", init=False)

    @property
    def name(self) -> str | None:
        return _name(self.props)

    def coordinates(self) -> list[list[float]]:
        return [[lon, lat] for lon, lat in self.coords]


@dataclass(frozen=True)
class MultiLineFeature:
    id: str
    lines: list[list[Position]]  # each item is [(lon, lat), ...]
    props: dict[str, Any]

    kind: GeometryKind = field(default="MultiLineString", init=False)

    @property
    def name(self) -> str | None:
        return _name(self.props)

    def coordinates(self) -> list[list[list[float]]]:
        return [[[lon, lat] for lon, lat in line] for line in self.lines]


@dataclass(frozen=True)
class PolygonFeature:
    id: str
    rings: list[Ring]  # [outer_ring, *holes]; each ring is closed
    props: dict[str, Any]

    kind: GeometryKind = field(default="Polygon", init=False)

    @property
    def name(self) -> str | None:
        return _name(self.props)

    def coordinates(self) -> list[list[list[float]]]:
        return [[[lon, lat] for lon, lat in ring] for ring in self.rings]


@dataclass(frozen=True)
class MultiPolygonFeature:
    id: str
    polygons: list[list[Ring]]  # each item is [outer_ring, *holes]
    props: dict[str, Any]

    kind: GeometryKind = field(default="MultiPolygon", init=False)

    @property
    def name(self) -> str | None:
        return _name(self.props)

    def coordinates(self) -> list[list[list[list[float]]]]:
        return [
            [[[lon, lat] for lon, lat in ring] for ring in poly]
            for poly in self.polygons
        ]


Feature: TypeAlias = Union[
    PointFeature, LineFeature, MultiLineFeature, PolygonFeature, MultiPolygonFeature
]


@dataclass(frozen=True)
class FeatureCollection:
    """
    Ordered, immutable set of features converted from one Overpass response.
    """

    features: tuple[Feature, ...] = ()

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self):
        return iter(self.features)

    def names(self) -> list[str]:
        return [f.name for f in self.features if f.name]

    def to_geojson(self) -> dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [feature_to_geojson(f) for f in self.features],
        }


def feature_to_geojson(feature: Feature) -> dict[str, Any]:
    return {
        "type": "Feature",
        "id": feature.id,
        "geometry": {"type": feature.kind, "coordinates": feature.coordinates()},
        "properties": dict(feature.props),
    }


def _name(props: dict[str, Any]) -> str | None:
    v = props.get("name")
    if v is None:
        return None
    s = str(v)
    return s or None
