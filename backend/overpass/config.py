from __future__ import annotations

import os

DEFAULT_OVERPASS_URL = "https://overpass-api.de/api/interpreter"


def overpass_url() -> str:
    return (os.getenv("MAPVIEW_OVERPASS_URL") or DEFAULT_OVERPASS_URL).strip()


def overpass_timeout_s() -> float:
    # Queries declare [timeout:...] server-side; this only bounds the HTTP exchange.
    try:
        return float(os.getenv("MAPVIEW_OVERPASS_TIMEOUT_S") or 180.0)
    except ValueError:
        return 180.0


def max_concurrency() -> int:
    try:
        return max(1, int(os.getenv("MAPVIEW_MAX_CONCURRENCY") or 1))
    except ValueError:
        return 1
