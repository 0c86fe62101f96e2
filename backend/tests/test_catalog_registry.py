import pytest

from catalog.registry import (
    clear_registry_cache,
    get_catalog,
    list_catalogs,
)


@pytest.fixture(autouse=True)
def _fresh_registry():
    clear_registry_cache()
    yield
    clear_registry_cache()


def test_shipped_catalog_has_hospitals_and_schools():
    entry = get_catalog("toyama_amenities")
    ids = [q.id for q in entry.config.queries]
    assert ids == ["hospitals", "schools"]

    hospitals = entry.config.queries[0]
    assert hospitals.style.emoji == "🏥"
    assert hospitals.style.fillColor == "rgba(255, 0, 0, 1)"
    assert 'nwr["amenity"="hospital"](area.a);' in hospitals.query
    assert hospitals.query.endswith("out geom;\n")


def test_unknown_catalog_falls_back_to_default():
    assert get_catalog("nope").config.id == "toyama_amenities"
    assert get_catalog(None).config.id == "toyama_amenities"


def test_style_passes_unknown_keys_through(tmp_path, monkeypatch):
    d = tmp_path / "demo"
    d.mkdir()
    (d / "catalog.yaml").write_text(
        "id: demo\n"
        "title: Demo\n"
        "queries:\n"
        "  - id: cafes\n"
        "    query: 'nwr[amenity=cafe];out center;'\n"
        "    style: {emoji: '☕', strokeWidth: 3}\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("MAPVIEW_CATALOGS_DIR", str(tmp_path))

    [cfg] = list_catalogs()
    assert cfg.id == "demo"
    assert cfg.queries[0].style.as_dict() == {"emoji": "☕", "strokeWidth": 3}


def test_enabled_catalog_without_queries_is_rejected(tmp_path, monkeypatch):
    d = tmp_path / "empty"
    d.mkdir()
    (d / "catalog.yaml").write_text("id: empty\ntitle: Empty\nqueries: []\n", encoding="utf-8")
    monkeypatch.setenv("MAPVIEW_CATALOGS_DIR", str(tmp_path))

    with pytest.raises(ValueError):
        list_catalogs()


def test_duplicate_query_ids_in_catalog_are_rejected(tmp_path, monkeypatch):
    d = tmp_path / "dupes"
    d.mkdir()
    (d / "catalog.yaml").write_text(
        "id: dupes\n"
        "title: Dupes\n"
        "queries:\n"
        "  - {id: a, query: 'node(1);out;'}\n"
        "  - {id: a, query: 'node(2);out;'}\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("MAPVIEW_CATALOGS_DIR", str(tmp_path))

    with pytest.raises(ValueError):
        list_catalogs()
