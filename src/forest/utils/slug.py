"""Utilities for generating consistent, filesystem-safe plant slugs."""

from __future__ import annotations

from typing import FrozenSet

_SEPARATORS: FrozenSet[str] = frozenset("-_ .")


def slugify(value: str | None, *, fallback: str = "untitled") -> str:
    """Normalize ``value`` into a lowercase, dash-separated slug.

    Letters and digits are kept (lowercased), any run of ``-``, ``_``, space
    or ``.`` becomes a single dash, and every other character is dropped.
    Leading and trailing dashes are removed. ``fallback`` is returned when
    nothing survives; pass an empty fallback to detect unusable input.
    """
    source = (value or "").strip()
    if not source:
        return fallback

    pieces: list[str] = []
    last_was_dash = False
    # Lowercasing first: some letters expand into a letter plus a combining mark.
    for char in source.lower():
        if char.isalpha() or char.isdecimal():
            pieces.append(char)
            last_was_dash = False
        elif char in _SEPARATORS and not last_was_dash:
            pieces.append("-")
            last_was_dash = True

    slug = "".join(pieces).strip("-")
    return slug or fallback


def plant_key(plan_id: str, slug: str) -> str:
    """Return the stable plant key for ``slug`` inside ``plan_id``."""
    return f"{plan_id}:{slug}"


def split_plant_key(key: str | None) -> tuple[str, str] | None:
    """Split ``plan:slug`` into its parts, or ``None`` when malformed.

    The first colon separates the parts; it must be neither the first nor the
    last character.
    """
    text = (key or "").strip()
    index = text.find(":")
    if index <= 0 or index >= len(text) - 1:
        return None
    return text[:index].strip(), text[index + 1 :].strip()
