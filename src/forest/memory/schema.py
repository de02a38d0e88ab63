"""Typed records tracked by the forest store."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class RecordModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid", frozen=False)


class PlantStatus(str, Enum):
    """Lifecycle states for a plant, in their guarded order."""

    PLANNED = "planned"
    PLANTED = "planted"
    GROWING = "growing"
    HARVESTABLE = "harvestable"
    HARVESTED = "harvested"
    ARCHIVED = "archived"


class Plan(RecordModel):
    """Installed plan describing intended work for a repository."""

    id: str
    name: str = ""
    version: str = ""
    source: str = ""
    repository: Optional[str] = None
    planners: List[str] = Field(default_factory=list)
    planters: List[str] = Field(default_factory=list)
    plant_templates: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    installed_at: datetime = Field(default_factory=utc_now)


class Plant(RecordModel):
    """Concrete work item derived from a plan.

    ``key`` is the only stable identity. ``plan_id``, ``slug``,
    ``planner_id``, ``title``, ``description`` and ``assigned_planters`` are
    owned by reconciliation; ``status``, ``branches``, ``selected_branch`` and
    ``created_at`` belong to the lifecycle commands.
    """

    key: str
    slug: str
    plan_id: str
    planner_id: str = ""
    status: PlantStatus = PlantStatus.PLANNED
    title: str = ""
    description: str = ""
    assigned_planters: List[str] = Field(default_factory=list)
    branches: List[str] = Field(default_factory=list)
    selected_branch: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
