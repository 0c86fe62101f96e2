import pytest

from geo.aoi import Viewport
from geo.index import build_containment_index
from geo.viewport_filter import ViewportFilter, filter_results
from layers.types import (
    FeatureCollection,
    LineFeature,
    MultiLineFeature,
    MultiPolygonFeature,
    PointFeature,
    PolygonFeature,
)
from store.results import StyledResult
from stubs import square

VP = Viewport(west=0.0, south=0.0, east=10.0, north=10.0)


def _result(identifier: str, *features) -> StyledResult:
    return StyledResult(
        identifier=identifier,
        style={"emoji": "🏥"},
        collection=FeatureCollection(features=tuple(features)),
    )


def _pt(fid: str, lon: float, lat: float) -> PointFeature:
    return PointFeature(id=fid, lon=lon, lat=lat, props={})


def test_only_fully_contained_features_survive():
    inside_poly = PolygonFeature(id="in", rings=[square(1, 1, 2, 2)], props={})
    straddling = PolygonFeature(id="edge", rings=[square(9, 9, 11, 11)], props={})
    line_out = LineFeature(id="line", coords=[(5, 5), (5, 12)], props={})
    line_in = LineFeature(id="line-in", coords=[(1, 1), (9, 9)], props={})

    out = filter_results(
        VP, [_result("h", _pt("p-in", 5, 5), _pt("p-out", 11, 5), inside_poly, straddling, line_out, line_in)]
    )
    assert [f.id for f in out[0].collection.features] == ["p-in", "in", "line-in"]


def test_boundary_coordinates_count_as_inside():
    on_edge = PolygonFeature(id="edge", rings=[square(0, 0, 10, 10)], props={})
    out = filter_results(VP, [_result("h", _pt("corner", 10, 10), on_edge)])
    assert [f.id for f in out[0].collection.features] == ["corner", "edge"]


def test_multipolygon_is_excluded_when_any_part_is_outside():
    mp = MultiPolygonFeature(
        id="mp", polygons=[[square(1, 1, 2, 2)], [square(20, 20, 21, 21)]], props={}
    )
    out = filter_results(VP, [_result("h", mp)])
    assert out[0].collection.features == ()


def test_empty_matches_still_emit_every_collection():
    results = [_result("a", _pt("x", 50, 50)), _result("b")]
    out = filter_results(VP, results)
    assert [r.identifier for r in out] == ["a", "b"]
    assert all(len(r.collection) == 0 for r in out)
    assert out[0].style == {"emoji": "🏥"}


def test_output_keeps_feature_order():
    feats = [_pt(f"p{i}", 9 - i, 1 + i) for i in range(8)]
    out = filter_results(VP, [_result("h", *feats)])
    assert [f.id for f in out[0].collection.features] == [f.id for f in feats]


def test_index_is_reused_but_results_follow_the_latest_viewport():
    vf = ViewportFilter()
    results = [_result("h", _pt("west", 1, 1), _pt("east", 8, 8))]

    first = vf.filter(Viewport(0, 0, 5, 5), results)
    idx = vf._indexes["h"]
    second = vf.filter(Viewport(5, 5, 10, 10), results)

    assert vf._indexes["h"] is idx
    assert [f.id for f in first[0].collection.features] == ["west"]
    assert [f.id for f in second[0].collection.features] == ["east"]


def test_degenerate_geometry_is_never_contained():
    broken = PolygonFeature(id="broken", rings=[[(1, 1), (2, 2)]], props={})
    idx = build_containment_index(FeatureCollection(features=(broken, _pt("ok", 1, 1))))
    assert [f.id for f in idx.contained(VP)] == ["ok"]


@pytest.mark.parametrize(
    "bounds",
    [(10, 0, 0, 10), (0, 10, 10, 0), (0, 0, float("nan"), 10), (0, 0, float("inf"), 10)],
)
def test_invalid_viewports_are_rejected(bounds):
    with pytest.raises(ValueError):
        Viewport.from_bounds(bounds)


def test_viewport_from_bounds_order():
    vp = Viewport.from_bounds([1, 2, 3, 4])
    assert (vp.west, vp.south, vp.east, vp.north) == (1.0, 2.0, 3.0, 4.0)


def test_multiline_needs_every_part_inside():
    inside = MultiLineFeature(id="in", lines=[[(1, 1), (2, 2)], [(3, 3), (4, 4)]], props={})
    straddling = MultiLineFeature(id="out", lines=[[(1, 1), (2, 2)], [(9, 9), (12, 9)]], props={})
    out = filter_results(VP, [_result("h", inside, straddling)])
    assert [f.id for f in out[0].collection.features] == ["in"]


def test_filtered_style_is_a_copy_of_the_stored_style():
    stored = _result("h", _pt("p", 1, 1))
    out = filter_results(VP, [stored])
    out[0].style["emoji"] = "X"
    assert stored.style == {"emoji": "🏥"}
