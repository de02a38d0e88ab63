"""Value types and ports shared by forums, the router and the reconciler."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

from ..memory.schema import Plan, Plant
from .errors import ReconcileCancelled


@dataclass(slots=True, frozen=True)
class DesiredPlant:
    """Plant a forum wants to exist; never persisted directly."""

    key: str = ""
    slug: str = ""
    title: str = ""
    description: str = ""
    planner_id: str = ""
    assigned_planters: Tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class ReconciliationStrategy:
    """Forum output: the desired plant set plus diagnostics."""

    desired_plants: Tuple[DesiredPlant, ...] = ()
    summary: str = ""
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class ReconcileContext:
    """Snapshot handed to a forum for a single reconcile call."""

    plan_id: str
    plan: Plan
    existing_plants: Tuple[Plant, ...] = ()
    repository: Optional[str] = None


class ReconciliationForum(Protocol):
    """Strategy that computes the desired plants for a plan."""

    def run(
        self,
        context: ReconcileContext,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationStrategy:
        ...


class PlanRepository(Protocol):
    def get_plan(self, plan_id: str) -> Optional[Plan]:
        ...


class PlantRepository(Protocol):
    def list_plants(self, *, plan_id: str) -> List[Plant]:
        ...

    def add_plant(self, plant: Plant) -> None:
        ...

    def update_plant(self, plant: Plant) -> None:
        ...


def raise_if_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    """Raise ``ReconcileCancelled`` when ``cancel_event`` has been set."""
    if cancel_event is not None and cancel_event.is_set():
        raise ReconcileCancelled(f"Reconcile cancelled before {stage}.")
