"""Reconciliation engine: forums, routing, normalization and apply."""

from .context import DesiredPlant, ReconcileContext, ReconciliationStrategy
from .errors import (
    InvalidPlanIdError,
    PlanNotInstalledError,
    PlannerProposalError,
    ReconcileCancelled,
    ReconcileError,
    UnknownForumError,
)
from .normalize import normalize_desired_plants
from .reconciler import PlanReconciler, ReconcileResult
from .router import ForumRouter

__all__ = [
    "DesiredPlant",
    "ForumRouter",
    "InvalidPlanIdError",
    "PlanNotInstalledError",
    "PlanReconciler",
    "PlannerProposalError",
    "ReconcileCancelled",
    "ReconcileContext",
    "ReconcileError",
    "ReconcileResult",
    "ReconciliationStrategy",
    "UnknownForumError",
    "normalize_desired_plants",
]
