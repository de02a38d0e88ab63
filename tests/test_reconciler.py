from __future__ import annotations

import threading

import pytest

from forest.memory.schema import PlantStatus
from forest.memory.store import PersistenceError
from forest.reconcile import (
    ForumRouter,
    InvalidPlanIdError,
    PlanNotInstalledError,
    PlanReconciler,
    ReconcileCancelled,
)
from forest.reconcile.forums import AgentForum, TemplateForum


def _reconciler(store, client=None, *, plants=None) -> PlanReconciler:
    forums = {"file": TemplateForum()}
    if client is not None:
        forums["ai"] = AgentForum(client)
    return PlanReconciler(store, plants or store, ForumRouter(forums))


def test_reconcile_is_idempotent(store, make_plan) -> None:
    store.save_plan(make_plan(plant_templates=["add-tests", "fix-lint"]))
    reconciler = _reconciler(store)

    first = reconciler.reconcile("demo")
    second = reconciler.reconcile("demo")

    assert first.as_tuple() == ("demo", 2, 0)
    assert second.as_tuple() == ("demo", 0, 0)
    plants = store.list_plants(plan_id="demo")
    assert [plant.key for plant in plants] == ["demo:add-tests", "demo:fix-lint"]
    assert all(plant.status == PlantStatus.PLANNED for plant in plants)
    assert all(plant.assigned_planters == ["w1"] for plant in plants)


def test_reconcile_only_touches_plan_owned_fields(store, make_plan) -> None:
    store.save_plan(make_plan())
    reconciler = _reconciler(store)
    reconciler.reconcile("demo")

    plant = store.get_plant("demo:add-tests")
    assert plant is not None
    store.update_plant(
        plant.model_copy(update={"status": PlantStatus.PLANTED, "branches": ["b1"], "selected_branch": "b1"})
    )
    store.save_plan(make_plan(name="Renamed", planters=["w2"]))

    result = reconciler.reconcile("demo")

    assert result.as_tuple() == ("demo", 0, 1)
    updated = store.get_plant("demo:add-tests")
    assert updated is not None
    assert updated.title == "Renamed: add-tests"
    assert updated.assigned_planters == ["w2"]
    assert updated.status == PlantStatus.PLANTED
    assert updated.branches == ["b1"]
    assert updated.selected_branch == "b1"
    assert updated.created_at == plant.created_at


def test_dry_run_reports_counts_without_writing(store, make_plan) -> None:
    store.save_plan(make_plan(plant_templates=["a", "b"]))
    reconciler = _reconciler(store)

    preview = reconciler.reconcile("demo", dry_run=True)

    assert preview.dry_run is True
    assert preview.as_tuple() == ("demo", 2, 0)
    assert store.list_plants(plan_id="demo") == []
    assert reconciler.reconcile("demo").as_tuple() == ("demo", 2, 0)


def test_colliding_templates_get_suffixed_keys(store, make_plan) -> None:
    store.save_plan(make_plan(plant_templates=["add tests", "Add-Tests"]))

    _reconciler(store).reconcile("demo")

    assert [plant.key for plant in store.list_plants(plan_id="demo")] == [
        "demo:add-tests",
        "demo:add-tests-01",
    ]


def test_missing_plan_is_a_distinct_error(store) -> None:
    with pytest.raises(PlanNotInstalledError) as excinfo:
        _reconciler(store).reconcile("missing")

    assert excinfo.value.plan_id == "missing"


def test_blank_plan_id_is_rejected(store) -> None:
    with pytest.raises(InvalidPlanIdError):
        _reconciler(store).reconcile("   ")


def test_cancel_event_stops_before_writes(store, make_plan) -> None:
    store.save_plan(make_plan())
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(ReconcileCancelled):
        _reconciler(store).reconcile("demo", cancel_event=cancel)

    assert store.list_plants(plan_id="demo") == []


def test_persistence_errors_propagate(store, make_plan) -> None:
    class _FailingPlants:
        def list_plants(self, *, plan_id):
            return []

        def add_plant(self, plant) -> None:
            raise PersistenceError("disk full")

        def update_plant(self, plant) -> None:
            raise PersistenceError("disk full")

    store.save_plan(make_plan())

    with pytest.raises(PersistenceError):
        _reconciler(store, plants=_FailingPlants()).reconcile("demo")


def test_agent_forum_failures_do_not_abort_reconcile(store, make_plan, scripted_client) -> None:
    store.save_plan(make_plan(planners=["p1", "p2"], planters=["w1", "w2"]))
    client = scripted_client(
        {
            "p1": "I cannot help with that.",
            "p2": '{"desiredPlants": [{"slug": "b"}, {"slug": "a"}]}',
        }
    )

    result = _reconciler(store, client).reconcile("demo", forum="ai")

    assert result.forum == "ai"
    assert result.metadata["planner.p1.status"] == "invalid"
    assert result.metadata["planner.p1.error"] == "no_json_found"
    assert result.as_tuple() == ("demo", 2, 0)
    plants = store.list_plants(plan_id="demo")
    assert [(plant.key, plant.planner_id, plant.assigned_planters) for plant in plants] == [
        ("demo:a", "p2", ["w1"]),
        ("demo:b", "p2", ["w2"]),
    ]


def test_dry_run_reports_updates_without_writing(store, make_plan) -> None:
    store.save_plan(make_plan())
    reconciler = _reconciler(store)
    reconciler.reconcile("demo")
    before = store.get_plant("demo:add-tests")
    store.save_plan(make_plan(name="Renamed"))

    preview = reconciler.reconcile("demo", dry_run=True)

    assert preview.as_tuple() == ("demo", 0, 1)
    assert store.get_plant("demo:add-tests") == before


def test_cancel_after_first_write_keeps_earlier_writes(store, make_plan) -> None:
    cancel = threading.Event()

    class _CancelAfterFirstAdd:
        def list_plants(self, *, plan_id):
            return store.list_plants(plan_id=plan_id)

        def add_plant(self, plant) -> None:
            store.add_plant(plant)
            cancel.set()

        def update_plant(self, plant) -> None:
            store.update_plant(plant)

    store.save_plan(make_plan(plant_templates=["a", "b", "c"]))

    with pytest.raises(ReconcileCancelled):
        _reconciler(store, plants=_CancelAfterFirstAdd()).reconcile("demo", cancel_event=cancel)

    assert [plant.key for plant in store.list_plants(plan_id="demo")] == ["demo:a"]


def test_first_planner_owns_a_shared_slug(store, make_plan, scripted_client) -> None:
    store.save_plan(make_plan(planners=["p1", "p2"]))
    client = scripted_client(
        {
            "p1": '{"desiredPlants": [{"slug": "same", "title": "FromP1"}]}',
            "p2": '{"desiredPlants": [{"slug": "same", "title": "FromP2"}]}',
        }
    )

    result = _reconciler(store, client).reconcile("demo", forum="ai")

    assert result.as_tuple() == ("demo", 1, 0)
    plant = store.get_plant("demo:same")
    assert plant is not None
    assert plant.planner_id == "p1"
    assert plant.title == "FromP1"
