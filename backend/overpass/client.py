from __future__ import annotations

import json
from typing import Any, Protocol

import httpx

from overpass.config import overpass_timeout_s, overpass_url
from pipeline.errors import FetchError

RawResponse = Any


class OverpassTransport(Protocol):
    """
    Sends one query to the data source and returns the decoded JSON body.

    Implementations raise `FetchError` for every failure mode.
    """

    async def post(self, query_text: str) -> RawResponse: ...


class HttpxOverpassTransport:
    """
    Overpass over HTTPS via `httpx.AsyncClient`.

    The query is sent verbatim as the `data` form field, which is what the Overpass
    interpreter endpoint expects.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        timeout_s: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url or overpass_url()
        self.timeout_s = timeout_s if timeout_s is not None else overpass_timeout_s()
        self._client = client

    async def post(self, query_text: str) -> RawResponse:
        try:
            if self._client is not None:
                response = await self._client.post(self.url, data={"data": query_text})
            else:
                async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                    response = await client.post(self.url, data={"data": query_text})
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                query_text, f"HTTP {e.response.status_code} from {self.url}"
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(query_text, e) from e

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FetchError(query_text, f"response is not JSON: {e}") from e
