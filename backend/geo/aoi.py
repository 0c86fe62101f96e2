from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class Viewport:
    """
    WGS84 rectangle in lon/lat degrees currently visible to the consumer.

    Convention used throughout this repo: west, south, east, north
    (same order as a GeoJSON bbox). The antimeridian is not handled, so
    west <= east is required.
    """

    west: float
    south: float
    east: float
    north: float

    def __post_init__(self) -> None:
        for name in ("west", "south", "east", "north"):
            v = getattr(self, name)
            if not isinstance(v, (int, float)) or not math.isfinite(v):
                raise ValueError(f"Viewport {name} must be a finite number, got {v!r}")
        if self.west > self.east:
            raise ValueError(f"Viewport west ({self.west}) is greater than east ({self.east})")
        if self.south > self.north:
            raise ValueError(
                f"Viewport south ({self.south}) is greater than north ({self.north})"
            )

    @classmethod
    def from_bounds(cls, bounds: Sequence[float]) -> "Viewport":
        if len(bounds) != 4:
            raise ValueError(f"Expected 4 bounds (west, south, east, north), got {len(bounds)}")
        west, south, east, north = (float(b) for b in bounds)
        return cls(west=west, south=south, east=east, north=north)

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.west, self.south, self.east, self.north)
