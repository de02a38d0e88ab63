"""Error taxonomy raised by the reconciliation engine."""

from __future__ import annotations

__all__ = [
    "InvalidPlanIdError",
    "PlanNotInstalledError",
    "PlannerProposalError",
    "ReconcileCancelled",
    "ReconcileError",
    "UnknownForumError",
]


class ReconcileError(RuntimeError):
    """Base error for reconciliation failures."""


class InvalidPlanIdError(ReconcileError, ValueError):
    """Raised when a reconcile is requested for a blank plan id."""


class PlanNotInstalledError(ReconcileError):
    """Raised when the plan repository has no plan with the requested id."""

    def __init__(self, plan_id: str) -> None:
        super().__init__(f"Plan not installed: {plan_id}")
        self.plan_id = plan_id


class UnknownForumError(ReconcileError, ValueError):
    """Raised when a forum name does not match any registered forum."""

    def __init__(self, name: str, available: list[str]) -> None:
        valid = ", ".join(available) or "(none)"
        super().__init__(f"Unknown reconcile forum '{name}'. Expected one of: {valid}")
        self.name = name


class PlannerProposalError(ReconcileError):
    """Raised when one planner's response cannot be parsed into proposals."""

    def __init__(self, code: str, detail: str = "", *, summary: str | None = None) -> None:
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code = code
        self.summary = summary


class ReconcileCancelled(ReconcileError):
    """Raised when the caller's cancel event is set mid-reconcile."""
