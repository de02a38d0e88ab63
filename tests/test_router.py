from __future__ import annotations

import pytest

from forest.reconcile.context import ReconcileContext, ReconciliationStrategy
from forest.reconcile.errors import UnknownForumError
from forest.reconcile.router import ForumRouter


class _NamedForum:
    def __init__(self, name: str) -> None:
        self.name = name
        self.runs = 0

    def run(self, context, *, cancel_event=None) -> ReconciliationStrategy:
        self.runs += 1
        return ReconciliationStrategy(summary=f"{self.name}:{context.plan_id}")


def _router(default: str = "file") -> ForumRouter:
    return ForumRouter({"file": _NamedForum("file"), "ai": _NamedForum("ai")}, default_forum=default)


def test_default_forum_is_used_without_override(make_plan) -> None:
    router = _router()
    context = ReconcileContext(plan_id="demo", plan=make_plan())

    assert router.run(context).summary == "file:demo"
    assert router.run(context, "  ").summary == "file:demo"


def test_override_is_case_insensitive_and_supports_aliases(make_plan) -> None:
    router = _router()
    context = ReconcileContext(plan_id="demo", plan=make_plan())

    assert router.run(context, " AI ").summary == "ai:demo"
    assert router.run(context, "agent").summary == "ai:demo"
    assert router.select("Template") == "file"


def test_configured_default_can_point_at_ai() -> None:
    router = _router(default="Agent")

    assert router.default_forum == "ai"
    assert router.select() == "ai"
    assert sorted(router.available_forums()) == ["ai", "file"]


def test_unknown_forum_fails_before_running(make_plan) -> None:
    file_forum = _NamedForum("file")
    router = ForumRouter({"file": file_forum})

    with pytest.raises(UnknownForumError) as excinfo:
        router.run(ReconcileContext(plan_id="demo", plan=make_plan()), "oracle")

    assert isinstance(excinfo.value, ValueError)
    assert "oracle" in str(excinfo.value)
    assert file_forum.runs == 0
