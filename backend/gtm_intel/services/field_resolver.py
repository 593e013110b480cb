"""
Deterministic deep field lookup over model output.

Upstream steps put the same semantic field in different places: top level,
nested under a section name, inside a list of cards. `resolve_field` finds the
first usable value with a fixed depth-first order:

1. Non-composite values (str, int, None, ...) own nothing: NOT_FOUND.
2. A dict that directly owns `field` with a non-None value returns it before
   any child is visited, so a top-level value always beats a nested one.
3. Otherwise children are visited in natural order (dict insertion order,
   list index order). Each composite child is searched completely before its
   next sibling; the first hit wins. Depths are never compared across
   siblings.

Given {"a": {"x": 1}, "b": {"x": 2}} the result for "x" is 1, and given
{"x": 1, "a": {"x": 2}} it is also 1.
"""
from __future__ import annotations

from typing import Any, Iterable


class _NotFound:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()


def _is_composite(value: Any) -> bool:
    return isinstance(value, (dict, list, tuple))


def resolve_field(value: Any, field: str) -> Any:
    """Return the first value for `field` inside `value`, or NOT_FOUND."""
    if not _is_composite(value):
        return NOT_FOUND

    if isinstance(value, dict):
        direct = value.get(field)
        if direct is not None:
            return direct
        children = value.values()
    else:
        children = value

    for child in children:
        if _is_composite(child):
            found = resolve_field(child, field)
            if found is not NOT_FOUND:
                return found

    return NOT_FOUND


def resolve_with_aliases(value: Any, field: str, aliases: Iterable[str] = ()) -> Any:
    """
    Resolve `field`, then each alias in declared order.

    Every name gets a full resolution pass before the next name is tried, so a
    canonical name nested deep still beats an alias at the top level.
    """
    found = resolve_field(value, field)
    if found is not NOT_FOUND:
        return found

    for alias in aliases:
        if alias == field:
            continue
        found = resolve_field(value, alias)
        if found is not NOT_FOUND:
            return found

    return NOT_FOUND
