from __future__ import annotations

import hashlib

from pipeline.errors import IdentityError


def identify(query_text: str) -> str:
    """
    Stable identifier for a query's result: lowercase hex MD5 of the UTF-8 query text.

    The text is hashed verbatim (no whitespace normalization), so two queries that
    differ only in formatting get different identifiers.
    """
    if not isinstance(query_text, str):
        raise IdentityError(
            f"Query text must be str, got {type(query_text).__name__}"
        )
    return hashlib.md5(query_text.encode("utf-8")).hexdigest()
