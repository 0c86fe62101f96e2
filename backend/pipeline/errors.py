from __future__ import annotations


class PipelineError(Exception):
    """Base class for ingestion pipeline failures."""


class FetchError(PipelineError):
    """
    The data source could not produce a usable response for a query.

    Covers transport errors, non-success HTTP statuses and bodies that are not JSON.
    """

    def __init__(self, query_text: str, cause: BaseException | str) -> None:
        self.query_text = query_text
        self.cause = cause
        super().__init__(f"Overpass fetch failed: {cause}")


class ConversionError(PipelineError):
    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class IdentityError(PipelineError):
    """Raised when an identifier cannot be derived; this is a programming error."""
