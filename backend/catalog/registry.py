from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable

import yaml

from catalog.types import CatalogConfig

DEFAULT_CATALOG_ID = "toyama_amenities"


def _repo_root() -> Path:
    # .../backend/catalog/registry.py -> repo root is 2 levels up
    return Path(__file__).resolve().parents[2]


def _catalogs_root() -> Path:
    return Path(os.getenv("MAPVIEW_CATALOGS_DIR") or (_repo_root() / "catalogs"))


@dataclass(frozen=True)
class CatalogEntry:
    config: CatalogConfig
    # Absolute path to catalog.yaml on disk (useful for debugging).
    path: Path


def _iter_catalog_yaml_files() -> Iterable[Path]:
    root = _catalogs_root()
    if not root.exists():
        return []
    # Convention: catalogs/*/catalog.yaml
    return root.glob("*/catalog.yaml")


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid catalog yaml root: {path}")
    return data


@lru_cache(maxsize=1)
def get_registry() -> dict[str, CatalogEntry]:
    out: dict[str, CatalogEntry] = {}
    for p in sorted(_iter_catalog_yaml_files(), key=lambda x: str(x)):
        cfg = CatalogConfig.model_validate(_load_yaml(p))
        if cfg.enabled and not cfg.queries:
            raise ValueError(f"Enabled catalog is missing `queries`: {p}")
        out[cfg.id] = CatalogEntry(config=cfg, path=p)
    return out


def default_catalog_id() -> str:
    reg = get_registry()
    preferred = (os.getenv("MAPVIEW_CATALOG") or DEFAULT_CATALOG_ID).strip()
    if preferred in reg:
        return preferred
    return next(iter(reg.keys()), preferred)


def list_catalogs() -> list[CatalogConfig]:
    return [e.config for e in get_registry().values() if e.config.enabled]


def get_catalog(catalog_id: str | None) -> CatalogEntry:
    reg = get_registry()
    if not reg:
        raise RuntimeError("No catalogs discovered under `catalogs/*/catalog.yaml`")
    cid = (catalog_id or "").strip() or default_catalog_id()
    if cid not in reg:
        # Unknown catalog falls back to the default one.
        cid = default_catalog_id()
    return reg[cid]


def clear_registry_cache() -> None:
    """
    Drop the cached registry so YAML edits are picked up without a restart.
    """
    get_registry.cache_clear()
