"""
Capability matching between a booking selector and a provider's services.

Pure predicates over already-loaded data. Callers resolve the provider (and
raise NotFound) first; results are never cached across requests.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


def _entry_subcategories(entry: Any) -> frozenset[str]:
    ids = getattr(entry, "subcategory_ids", None)
    if ids is None:
        return frozenset()
    return frozenset(ids)


def entry_matches(entry: Any, category_id: str, subcategory_id: Optional[str] = None) -> bool:
    """
    Return True if one service entry covers the requested selector.

    An entry with no subcategories declared is unrestricted within its
    category and accepts any requested subcategory.
    """
    if entry.category_id != category_id:
        return False
    if not subcategory_id:
        return True
    subcategories = _entry_subcategories(entry)
    return not subcategories or subcategory_id in subcategories


def find_matching_service(
    services: Iterable[Any],
    category_id: str,
    subcategory_id: Optional[str] = None,
) -> Optional[Any]:
    """
    Return the first entry matching the selector, preferring an explicit
    subcategory listing over an unrestricted entry for the same category.
    """
    fallback = None
    for entry in services:
        if not entry_matches(entry, category_id, subcategory_id):
            continue
        if subcategory_id and subcategory_id in _entry_subcategories(entry):
            return entry
        if fallback is None:
            fallback = entry
    return fallback


def can_fulfill(provider: Any, category_id: str, subcategory_id: Optional[str] = None) -> bool:
    """Decide whether ``provider`` may fulfill a booking for the selector."""
    if not category_id:
        return False
    return find_matching_service(provider.services or [], category_id, subcategory_id) is not None
