from __future__ import annotations

from forest.reconcile.context import ReconcileContext
from forest.reconcile.forums import TemplateForum


def test_templates_expand_round_robin(make_plan) -> None:
    plan = make_plan(
        plant_templates=["Add Tests", "fix-lint", "docs"],
        planners=["p1", "p2"],
        planters=["w1", "w2"],
    )

    strategy = TemplateForum().run(ReconcileContext(plan_id="demo", plan=plan))

    assert strategy.summary == "file:ok"
    assert strategy.metadata == {"forum": "file", "templateCount": "3"}
    assert [item.key for item in strategy.desired_plants] == [
        "demo:add-tests",
        "demo:fix-lint",
        "demo:docs",
    ]
    assert [item.planner_id for item in strategy.desired_plants] == ["p1", "p2", "p1"]
    assert [item.assigned_planters for item in strategy.desired_plants] == [("w1",), ("w2",), ("w1",)]
    assert strategy.desired_plants[0].title == "Demo: add-tests"


def test_defaults_apply_when_plan_is_sparse(make_plan) -> None:
    plan = make_plan(name="", plant_templates=[], planners=[], planters=[])

    strategy = TemplateForum().run(ReconcileContext(plan_id="demo", plan=plan))

    (item,) = strategy.desired_plants
    assert item.key == "demo:default-plant"
    assert item.title == "default-plant"
    assert item.planner_id == "default-planner"
    assert item.assigned_planters == ()


def test_blank_plan_id_yields_empty_strategy(make_plan) -> None:
    strategy = TemplateForum().run(ReconcileContext(plan_id=" ", plan=make_plan()))

    assert strategy.desired_plants == ()
    assert strategy.summary == "file:empty-plan-id"
