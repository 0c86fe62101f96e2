from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shapely.geometry import LineString, MultiLineString, MultiPolygon, Point, Polygon
from shapely.geometry import box as shapely_box
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree

from geo.aoi import Viewport
from layers.types import (
    Feature,
    FeatureCollection,
    LineFeature,
    MultiLineFeature,
    MultiPolygonFeature,
    PointFeature,
    PolygonFeature,
)


@dataclass
class ContainmentIndex:
    """
    STRtree over one immutable `FeatureCollection`, built once and queried per viewport.

    Notes:
    - Input data is EPSG:4326 (lon/lat degrees); the viewport box is in the same CRS.
    - Features whose geometry can't be built are left out of the tree, so they are
      never reported as contained.
    """

    collection: FeatureCollection

    _tree: STRtree | None = field(default=None, repr=False)
    # tree position -> position in `collection.features`
    _feature_pos: list[int] = field(default_factory=list, repr=False)

    def contained_positions(self, viewport: Viewport) -> list[int]:
        """
        Positions (in collection order) of features fully covered by `viewport`.

        Uses `covers`, so a coordinate exactly on the viewport edge counts as inside,
        while a feature with any coordinate outside is excluded entirely.
        """
        if self._tree is None:
            return []
        bbox = shapely_box(viewport.west, viewport.south, viewport.east, viewport.north)
        idxs = _to_int_list(self._tree.query(bbox, predicate="covers"))
        return sorted(self._feature_pos[i] for i in idxs)

    def contained(self, viewport: Viewport) -> list[Feature]:
        feats = self.collection.features
        return [feats[i] for i in self.contained_positions(viewport)]


def build_containment_index(collection: FeatureCollection) -> ContainmentIndex:
    idx = ContainmentIndex(collection=collection)
    geoms: list[BaseGeometry] = []
    for pos, f in enumerate(collection.features):
        g = feature_geometry(f)
        if g is None:
            continue
        geoms.append(g)
        idx._feature_pos.append(pos)
    idx._tree = STRtree(geoms) if geoms else None
    return idx


def feature_geometry(f: Feature) -> BaseGeometry | None:
    try:
        if isinstance(f, PointFeature):
            g: BaseGeometry = Point(float(f.lon), float(f.lat))
        elif isinstance(f, LineFeature):
            if len(f.coords) < 2:
                return None
            g = LineString(f.coords)
        elif isinstance(f, MultiLineFeature):
            lines = [line for line in f.lines if len(line) >= 2]
            if not lines:
                return None
            g = MultiLineString(lines)
        elif isinstance(f, PolygonFeature):
            if not f.rings or len(f.rings[0]) < 4:
                return None
            g = Polygon(f.rings[0], holes=[r for r in f.rings[1:] if len(r) >= 4] or None)
        elif isinstance(f, MultiPolygonFeature):
            polys = [
                Polygon(rings[0], holes=[r for r in rings[1:] if len(r) >= 4] or None)
                for rings in f.polygons
                if rings and len(rings[0]) >= 4
            ]
            if not polys:
                return None
            g = MultiPolygon(polys)
        else:
            return None
    except (TypeError, ValueError):
        return None
    if g.is_empty:
        return None
    return g


def _to_int_list(idxs: Any) -> list[int]:
    # Shapely STRtree returns a numpy.ndarray of indices.
    if idxs is None:
        return []
    return [int(i) for i in idxs]
