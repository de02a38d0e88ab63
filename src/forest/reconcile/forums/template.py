"""Deterministic forum that seeds one plant per plan template."""

from __future__ import annotations

import threading
from typing import Optional

from ...utils.slug import plant_key, slugify
from ..context import DesiredPlant, ReconcileContext, ReconciliationStrategy

DEFAULT_TEMPLATE = "default-plant"
DEFAULT_PLANNER = "default-planner"


class TemplateForum:
    """Expand ``plan.plant_templates`` into desired plants.

    Planners and planters are assigned round-robin by template index. Slug
    collisions are left for the normalization step.
    """

    name = "file"

    def run(
        self,
        context: ReconcileContext,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationStrategy:
        plan_id = (context.plan_id or "").strip()
        if not plan_id:
            return ReconciliationStrategy(summary="file:empty-plan-id", metadata={"forum": self.name})

        plan = context.plan
        templates = [item for item in plan.plant_templates if (item or "").strip()] or [DEFAULT_TEMPLATE]
        planners = [item for item in plan.planners if (item or "").strip()] or [DEFAULT_PLANNER]
        planters = [item for item in plan.planters if (item or "").strip()]
        plan_name = (plan.name or "").strip()

        desired: list[DesiredPlant] = []
        for index, template in enumerate(templates):
            slug = slugify(template)
            assigned = (planters[index % len(planters)],) if planters else ()
            desired.append(
                DesiredPlant(
                    key=plant_key(plan_id, slug),
                    slug=slug,
                    title=f"{plan_name}: {slug}" if plan_name else slug,
                    description="",
                    planner_id=planners[index % len(planners)],
                    assigned_planters=assigned,
                )
            )

        return ReconciliationStrategy(
            desired_plants=tuple(desired),
            summary="file:ok",
            metadata={"forum": self.name, "templateCount": str(len(templates))},
        )
