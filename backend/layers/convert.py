from __future__ import annotations

from typing import Any

from shapely.geometry import Point, Polygon

from layers.types import (
    Feature,
    FeatureCollection,
    LineFeature,
    MultiLineFeature,
    MultiPolygonFeature,
    PointFeature,
    PolygonFeature,
    Position,
    Ring,
)
from pipeline.errors import ConversionError

# Closed ways carrying one of these keys are areas unless tagged area=no.
AREA_KEYS = frozenset(
    {
        "aeroway",
        "amenity",
        "building",
        "building:part",
        "craft",
        "emergency",
        "healthcare",
        "historic",
        "landuse",
        "leisure",
        "man_made",
        "military",
        "natural",
        "office",
        "place",
        "public_transport",
        "shop",
        "sport",
        "tourism",
    }
)

AREA_RELATION_TYPES = frozenset({"multipolygon", "boundary"})

# Relations whose member ways are drawn as lines.
LINE_RELATION_TYPES = frozenset({"route", "waterway"})


def convert(raw: Any) -> FeatureCollection:
    """
    Convert an Overpass JSON response into a `FeatureCollection`.

    Input is expected from `out geom;` (ways/relations carry inline geometry) or
    `out center;` (ways/relations carry a `center`). Elements without usable geometry
    are dropped; only a response that is not `{"elements": [...]}` is an error.
    """
    if not isinstance(raw, dict):
        raise ConversionError(f"Overpass response must be an object, got {type(raw).__name__}")
    elements = raw.get("elements")
    if not isinstance(elements, list):
        raise ConversionError("Overpass response is missing an `elements` list")
    for i, el in enumerate(elements):
        if not isinstance(el, dict):
            raise ConversionError(f"Overpass element #{i} is not an object")

    way_node_refs: set[int] = set()
    for el in elements:
        if el.get("type") == "way":
            for ref in el.get("nodes") or []:
                if isinstance(ref, int):
                    way_node_refs.add(ref)

    out: list[Feature] = []
    for el in elements:
        etype = el.get("type")
        if etype == "node":
            f = _node_feature(el, way_node_refs)
        elif etype == "way":
            f = _way_feature(el)
        elif etype == "relation":
            f = _relation_feature(el)
        else:
            f = None
        if f is not None:
            out.append(f)

    return FeatureCollection(features=tuple(out))


def _props(el: dict[str, Any]) -> dict[str, Any]:
    tags = el.get("tags")
    tags = tags if isinstance(tags, dict) else {}
    return {"@id": _fid(el), **tags}


def _fid(el: dict[str, Any]) -> str:
    return f"{el.get('type')}/{el.get('id')}"


def _position(p: Any) -> Position | None:
    if not isinstance(p, dict):
        return None
    lon = p.get("lon")
    lat = p.get("lat")
    if lon is None or lat is None:
        return None
    try:
        return (float(lon), float(lat))
    except (TypeError, ValueError):
        return None


def _center_feature(el: dict[str, Any]) -> PointFeature | None:
    pos = _position(el.get("center"))
    if pos is None:
        return None
    return PointFeature(id=_fid(el), lon=pos[0], lat=pos[1], props=_props(el))


def _node_feature(el: dict[str, Any], way_node_refs: set[int]) -> PointFeature | None:
    pos = _position(el)
    if pos is None:
        return None
    # Untagged way members are vertices, not features of their own.
    if not el.get("tags") and el.get("id") in way_node_refs:
        return None
    return PointFeature(id=_fid(el), lon=pos[0], lat=pos[1], props=_props(el))


def _coords(geometry: Any) -> list[Position]:
    out: list[Position] = []
    for p in geometry if isinstance(geometry, list) else []:
        pos = _position(p)
        if pos is not None:
            out.append(pos)
    return out


def _is_area(tags: dict[str, Any]) -> bool:
    area = tags.get("area")
    if area == "no":
        return False
    if area == "yes":
        return True
    if tags.get("natural") == "coastline":
        return False
    return any(k in AREA_KEYS for k in tags)


def _way_feature(el: dict[str, Any]) -> Feature | None:
    coords = _coords(el.get("geometry"))
    if len(coords) < 2:
        return _center_feature(el)

    tags = el.get("tags") if isinstance(el.get("tags"), dict) else {}
    closed = len(coords) >= 4 and coords[0] == coords[-1]
    if closed and _is_area(tags):
        return PolygonFeature(id=_fid(el), rings=[coords], props=_props(el))
    return LineFeature(id=_fid(el), coords=coords, props=_props(el))


def _relation_feature(el: dict[str, Any]) -> Feature | None:
    tags = el.get("tags") if isinstance(el.get("tags"), dict) else {}
    rtype = tags.get("type")
    if rtype in LINE_RELATION_TYPES:
        return _line_relation_feature(el)
    if rtype not in AREA_RELATION_TYPES:
        return _center_feature(el)

    outer_segments: list[list[Position]] = []
    inner_segments: list[list[Position]] = []
    for role, coords in _way_members(el):
        if role == "inner":
            inner_segments.append(coords)
        else:
            outer_segments.append(coords)

    outers = assemble_rings(outer_segments)
    inners = assemble_rings(inner_segments)
    if not outers:
        return _center_feature(el)

    polygons = _assign_holes(outers, inners)
    if len(polygons) == 1:
        return PolygonFeature(id=_fid(el), rings=polygons[0], props=_props(el))
    return MultiPolygonFeature(id=_fid(el), polygons=polygons, props=_props(el))


def _line_relation_feature(el: dict[str, Any]) -> Feature | None:
    lines = join_segments([coords for _role, coords in _way_members(el)])
    if not lines:
        return _center_feature(el)
    return MultiLineFeature(id=_fid(el), lines=lines, props=_props(el))


def _way_members(el: dict[str, Any]) -> list[tuple[str | None, list[Position]]]:
    out: list[tuple[str | None, list[Position]]] = []
    for m in el.get("members") or []:
        if not isinstance(m, dict) or m.get("type") != "way":
            continue
        coords = _coords(m.get("geometry"))
        if len(coords) >= 2:
            out.append((m.get("role"), coords))
    return out


def join_segments(segments: list[list[Position]]) -> list[list[Position]]:
    """
    Join way segments end-to-end (reversing as needed) into maximal chains.

    A chain stops growing once it closes or nothing else touches its ends.
    """
    pending = [list(s) for s in segments if len(s) >= 2]
    chains: list[list[Position]] = []
    while pending:
        chain = pending.pop(0)
        while chain[0] != chain[-1]:
            head, tail = chain[0], chain[-1]
            for i, seg in enumerate(pending):
                if seg[0] == tail:
                    chain.extend(seg[1:])
                elif seg[-1] == tail:
                    chain.extend(reversed(seg[:-1]))
                elif seg[-1] == head:
                    chain[:0] = seg[:-1]
                elif seg[0] == head:
                    chain[:0] = list(reversed(seg[1:]))
                else:
                    continue
                pending.pop(i)
                break
            else:
                break
        chains.append(chain)
    return chains


def assemble_rings(segments: list[list[Position]]) -> list[Ring]:
    """
    Join way segments end-to-end into closed rings.

    Chains that cannot be closed are discarded; the rest still form rings.
    """
    return [
        c for c in join_segments(segments) if len(c) >= 4 and c[0] == c[-1]
    ]


def _assign_holes(outers: list[Ring], inners: list[Ring]) -> list[list[Ring]]:
    polygons: list[list[Ring]] = [[o] for o in outers]
    if not inners:
        return polygons

    shells = [Polygon(o) for o in outers]
    for inner in inners:
        first = Point(inner[0])
        for shell, poly in zip(shells, polygons):
            if shell.covers(first):
                poly.append(inner)
                break
    return polygons
