"""Turn raw forum proposals into collision-free, deterministically ordered plants.

The pipeline runs in a fixed order:

1. normalize each proposal (trim, derive the slug, drop keys that claim
   another plan's namespace);
2. sort by ``(slug, title, planner_id, key)`` using code point comparison;
3. resolve slug collisions with ``-01``, ``-02``, ... suffixes and recompute
   every key from the final slug;
4. give unassigned plants one planter from the plan, round-robin over the
   sorted order.

The output only depends on the set of proposals, not on the order a forum
produced them in.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Optional, Sequence

from ..utils.slug import plant_key, slugify, split_plant_key
from .context import DesiredPlant

UNTITLED_SLUG = "untitled"


def normalize_desired_plants(
    plan_id: str,
    desired: Iterable[Optional[DesiredPlant]] | None,
    *,
    planters: Sequence[str] = (),
) -> list[DesiredPlant]:
    """Return normalized plants with unique ``plan_id:slug`` keys."""
    plan = (plan_id or "").strip()
    if not plan:
        return []

    normalized = [_normalize_item(plan, item) for item in (desired or ()) if item is not None]
    ordered = sorted(normalized, key=_sort_key)
    unique = _resolve_collisions(plan, ordered)
    return _assign_fallback_planters(unique, normalize_ids(planters))


def normalize_ids(ids: Iterable[Optional[str]] | None) -> tuple[str, ...]:
    """Trim ids, drop blanks and case-insensitive duplicates, keep first spelling."""
    results: list[str] = []
    seen: set[str] = set()
    for raw in ids or ():
        value = (raw or "").strip()
        if not value:
            continue
        folded = value.casefold()
        if folded in seen:
            continue
        seen.add(folded)
        results.append(value)
    return tuple(results)


def _normalize_item(plan_id: str, item: DesiredPlant) -> DesiredPlant:
    key = (item.key or "").strip()
    slug_from_key = ""
    if key:
        parts = split_plant_key(key)
        if parts is None:
            key = ""
        else:
            key_plan, slug_from_key = parts
            if key_plan != plan_id:
                # Keys may not claim another plan's namespace.
                key = ""

    raw_slug = (item.slug or "").strip() or slug_from_key
    if not raw_slug:
        raw_slug = (item.title or "").strip() or UNTITLED_SLUG
    slug = slugify(raw_slug, fallback=UNTITLED_SLUG)

    title = (item.title or "").strip() or slug
    return DesiredPlant(
        key=key or plant_key(plan_id, slug),
        slug=slug,
        title=title,
        description=(item.description or "").strip(),
        planner_id=(item.planner_id or "").strip(),
        assigned_planters=normalize_ids(item.assigned_planters),
    )


def _sort_key(item: DesiredPlant) -> tuple[str, str, str, str]:
    # Python compares str by code point, which is the ordinal order required here.
    return (item.slug, item.title, item.planner_id, item.key)


def _resolve_collisions(plan_id: str, ordered: Sequence[DesiredPlant]) -> list[DesiredPlant]:
    used: set[str] = set()
    results: list[DesiredPlant] = []
    for item in ordered:
        final_slug = item.slug
        if final_slug in used:
            suffix = 1
            while f"{item.slug}-{suffix:02d}" in used:
                suffix += 1
            final_slug = f"{item.slug}-{suffix:02d}"
        used.add(final_slug)
        results.append(replace(item, slug=final_slug, key=plant_key(plan_id, final_slug)))
    return results


def _assign_fallback_planters(
    items: Sequence[DesiredPlant], planters: Sequence[str]
) -> list[DesiredPlant]:
    if not planters:
        return list(items)
    results: list[DesiredPlant] = []
    for index, item in enumerate(items):
        if item.assigned_planters:
            results.append(item)
            continue
        results.append(replace(item, assigned_planters=(planters[index % len(planters)],)))
    return results
