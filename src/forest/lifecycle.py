"""Plant lifecycle vocabulary and guarded status transitions.

Reconciliation only ever creates plants at ``planned``. Every later status
change goes through :func:`transition`, which allows staying put or moving to
the next status in :data:`STATUS_ORDER` unless ``force`` is given. Removal
is only allowed for archived plants, again unless forced.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .memory.schema import Plant, PlantStatus

STATUS_ORDER: tuple[PlantStatus, ...] = (
    PlantStatus.PLANNED,
    PlantStatus.PLANTED,
    PlantStatus.GROWING,
    PlantStatus.HARVESTABLE,
    PlantStatus.HARVESTED,
    PlantStatus.ARCHIVED,
)
INITIAL_STATUS = PlantStatus.PLANNED


class InvalidTransitionError(ValueError):
    """Raised when a status change would skip or regress a lifecycle step."""

    def __init__(self, key: str, current: PlantStatus, target: PlantStatus) -> None:
        super().__init__(
            f"Cannot transition plant '{key}' from '{current.value}' to '{target.value}'."
        )
        self.key = key
        self.current = current
        self.target = target


def parse_status(value: PlantStatus | str) -> PlantStatus:
    """Resolve ``value`` into a ``PlantStatus`` (case-insensitive)."""
    if isinstance(value, PlantStatus):
        return value
    normalized = (value or "").strip().lower()
    try:
        return PlantStatus(normalized)
    except ValueError as error:
        valid = "|".join(status.value for status in STATUS_ORDER)
        raise ValueError(f"Invalid status '{value}'. Expected: {valid}") from error


def next_status(current: PlantStatus) -> Optional[PlantStatus]:
    index = STATUS_ORDER.index(current)
    if index + 1 < len(STATUS_ORDER):
        return STATUS_ORDER[index + 1]
    return None


def can_transition(current: PlantStatus | str, target: PlantStatus | str) -> bool:
    """Return True when ``target`` equals ``current`` or directly follows it."""
    current_status = parse_status(current)
    target_status = parse_status(target)
    if current_status == target_status:
        return True
    return next_status(current_status) == target_status


def transition(plant: Plant, target: PlantStatus | str, *, force: bool = False) -> Plant:
    """Return a copy of ``plant`` moved to ``target``."""
    target_status = parse_status(target)
    if not force and not can_transition(plant.status, target_status):
        raise InvalidTransitionError(plant.key, plant.status, target_status)
    return plant.model_copy(update={"status": target_status}, deep=True)


def assign_planter(plant: Plant, planter_id: str) -> Plant:
    """Return a copy with ``planter_id`` assigned; a planned plant becomes planted."""
    planter = (planter_id or "").strip()
    if not planter:
        return plant
    planters = list(plant.assigned_planters)
    if not any(existing.casefold() == planter.casefold() for existing in planters):
        planters.append(planter)
    status = PlantStatus.PLANTED if plant.status == PlantStatus.PLANNED else plant.status
    return plant.model_copy(update={"assigned_planters": planters, "status": status}, deep=True)


def unassign_planter(plant: Plant, planter_id: str) -> Plant:
    """Return a copy without ``planter_id`` (case-insensitive); status is kept."""
    target = (planter_id or "").strip().casefold()
    planters = [
        value.strip()
        for value in plant.assigned_planters
        if value.strip() and value.strip().casefold() != target
    ]
    return plant.model_copy(update={"assigned_planters": planters}, deep=True)


class RemovalNotAllowedError(ValueError):
    """Raised when removing a plant that has not been archived."""

    def __init__(self, key: str, status: PlantStatus) -> None:
        super().__init__(
            f"Plant '{key}' must be archived before removal (status={status.value}). "
            "Use --force to override."
        )
        self.key = key
        self.status = status


def ensure_removable(plant: Plant, *, force: bool = False) -> None:
    """Raise ``RemovalNotAllowedError`` unless ``plant`` is archived or ``force`` is set."""
    if not force and plant.status != PlantStatus.ARCHIVED:
        raise RemovalNotAllowedError(plant.key, plant.status)


def removable_plants(plants: Iterable[Plant], *, force: bool = False) -> list[Plant]:
    """Return ``plants`` ordered by key, checking every one before any is removed."""
    ordered = sorted(plants, key=lambda plant: (plant.key or "").casefold())
    for plant in ordered:
        ensure_removable(plant, force=force)
    return ordered
