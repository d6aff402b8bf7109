"""
Site identifiers.

Every service stores and looks up a site under the same canonical id, so
" hotel-1 " and "hotel-1" address the same checklist.
"""
from typing import Any


def site_key(site_id: Any) -> str:
    """
    Canonical form of a site id (surrounding whitespace removed).

    Raises:
        ValueError: If site_id is missing or blank
    """
    if site_id is None or not str(site_id).strip():
        raise ValueError("site_id is required")
    return str(site_id).strip()
