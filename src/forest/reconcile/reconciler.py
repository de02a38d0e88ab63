"""Apply a forum's desired plants to the persisted plants of a plan."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Sequence

from ..memory.schema import Plant, PlantStatus, utc_now
from .context import (
    DesiredPlant,
    PlanRepository,
    PlantRepository,
    ReconcileContext,
    raise_if_cancelled,
)
from .errors import InvalidPlanIdError, PlanNotInstalledError
from .normalize import normalize_desired_plants
from .router import ForumRouter

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileResult:
    """Counts produced by a reconcile plus the forum's diagnostics."""

    plan_id: str
    plants_created: int = 0
    plants_updated: int = 0
    dry_run: bool = False
    forum: str = ""
    summary: str = ""
    metadata: Dict[str, str] = field(default_factory=dict)

    def as_tuple(self) -> tuple[str, int, int]:
        return (self.plan_id, self.plants_created, self.plants_updated)


class PlanReconciler:
    """Idempotently reconcile a plan's desired plants against the store.

    Only plan-owned fields are ever written on existing plants. New plants
    start at ``planned``; nothing is deleted. Writes are applied one at a
    time, so a failure or cancellation leaves earlier writes in place.
    """

    def __init__(
        self,
        plans: PlanRepository,
        plants: PlantRepository,
        router: ForumRouter,
    ) -> None:
        self._plans = plans
        self._plants = plants
        self._router = router

    def reconcile(
        self,
        plan_id: str,
        *,
        dry_run: bool = False,
        forum: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconcileResult:
        if plan_id is None or not plan_id.strip():
            raise InvalidPlanIdError("Plan ID must be provided.")
        plan_key_id = plan_id.strip()
        forum_name = self._router.select(forum)

        plan = self._plans.get_plan(plan_key_id)
        if plan is None:
            raise PlanNotInstalledError(plan_key_id)

        existing = self._plants.list_plants(plan_id=plan_key_id)
        repository = (plan.repository or "").strip() or None
        context = ReconcileContext(
            plan_id=plan_key_id,
            plan=plan,
            existing_plants=tuple(existing),
            repository=repository,
        )

        strategy = self._router.run(context, forum_name, cancel_event=cancel_event)
        for key, value in strategy.metadata.items():
            if key.startswith("planner.") and key.endswith(".status") and value != "ok":
                LOGGER.warning("Plan %s: %s=%s", plan_key_id, key, value)

        desired = normalize_desired_plants(
            plan_key_id, strategy.desired_plants, planters=plan.planters
        )
        existing_by_key = {
            plant.key.strip(): plant for plant in existing if (plant.key or "").strip()
        }

        result = ReconcileResult(
            plan_id=plan_key_id,
            dry_run=dry_run,
            forum=forum_name,
            summary=strategy.summary,
            metadata=dict(strategy.metadata),
        )
        now = utc_now()

        for item in desired:
            current = existing_by_key.get(item.key)
            if current is None:
                result.plants_created += 1
                LOGGER.debug("Plan %s: create %s", plan_key_id, item.key)
                if not dry_run:
                    raise_if_cancelled(cancel_event, f"creating {item.key}")
                    self._plants.add_plant(_new_plant(plan_key_id, item, now))
                continue

            changes = _plan_owned_changes(plan_key_id, current, item)
            if not changes:
                continue
            result.plants_updated += 1
            LOGGER.debug("Plan %s: update %s (%s)", plan_key_id, item.key, ", ".join(sorted(changes)))
            if not dry_run:
                raise_if_cancelled(cancel_event, f"updating {item.key}")
                self._plants.update_plant(current.model_copy(update=changes, deep=True))

        LOGGER.info(
            "Reconciled plan %s via %s forum: %d created, %d updated%s",
            plan_key_id,
            forum_name,
            result.plants_created,
            result.plants_updated,
            " (dry run)" if dry_run else "",
        )
        return result


def _new_plant(plan_id: str, item: DesiredPlant, now: datetime) -> Plant:
    return Plant(
        key=item.key,
        slug=item.slug,
        plan_id=plan_id,
        planner_id=item.planner_id,
        status=PlantStatus.PLANNED,
        title=item.title,
        description=item.description,
        assigned_planters=list(item.assigned_planters),
        branches=[],
        created_at=now,
        updated_at=None,
    )


def _plan_owned_changes(plan_id: str, existing: Plant, item: DesiredPlant) -> Dict[str, object]:
    """Return the plan-owned fields of ``existing`` that differ from ``item``."""
    wanted = {
        "plan_id": plan_id,
        "slug": item.slug,
        "planner_id": item.planner_id,
        "title": item.title,
        "description": item.description,
    }
    changes: Dict[str, object] = {
        name: value for name, value in wanted.items() if (getattr(existing, name) or "") != value
    }
    if not same_planters(existing.assigned_planters, item.assigned_planters):
        changes["assigned_planters"] = list(item.assigned_planters)
    return changes


def same_planters(left: Sequence[str] | None, right: Sequence[str] | None) -> bool:
    """Compare planter lists pairwise, ignoring case and surrounding whitespace."""
    left = list(left or ())
    right = list(right or ())
    if len(left) != len(right):
        return False
    return all(
        (a or "").strip().casefold() == (b or "").strip().casefold() for a, b in zip(left, right)
    )
