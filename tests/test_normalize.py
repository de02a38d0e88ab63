from __future__ import annotations

from forest.reconcile.context import DesiredPlant
from forest.reconcile.normalize import normalize_desired_plants, normalize_ids


def test_slug_collisions_are_suffixed_regardless_of_input_order() -> None:
    first = DesiredPlant(slug="add-tests", title="A")
    second = DesiredPlant(slug="Add Tests", title="B")

    forward = normalize_desired_plants("demo", [first, second])
    backward = normalize_desired_plants("demo", [second, first])

    assert forward == backward
    assert [(item.key, item.title) for item in forward] == [
        ("demo:add-tests", "A"),
        ("demo:add-tests-01", "B"),
    ]
    assert forward[1].slug == "add-tests-01"


def test_keys_stay_unique_when_a_suffix_is_already_taken() -> None:
    items = [
        DesiredPlant(slug="add-tests", title="A"),
        DesiredPlant(slug="add-tests", title="B"),
        DesiredPlant(slug="add-tests-01", title="C"),
    ]

    result = normalize_desired_plants("demo", items)

    keys = [item.key for item in result]
    assert len(keys) == len(set(keys)) == 3
    assert all(item.key == f"demo:{item.slug}" for item in result)


def test_fallback_planters_are_assigned_round_robin() -> None:
    items = [DesiredPlant(slug=slug) for slug in ("d", "b", "a", "c")]

    result = normalize_desired_plants("demo", items, planters=["w1", "w2", "w3"])

    assert [item.slug for item in result] == ["a", "b", "c", "d"]
    assert [item.assigned_planters for item in result] == [("w1",), ("w2",), ("w3",), ("w1",)]


def test_forum_assignments_are_kept_and_round_robin_counts_positions() -> None:
    items = [
        DesiredPlant(slug="a", assigned_planters=("ext", " EXT ", "")),
        DesiredPlant(slug="b"),
    ]

    result = normalize_desired_plants("demo", items, planters=["w1", "w2"])

    assert result[0].assigned_planters == ("ext",)
    assert result[1].assigned_planters == ("w2",)


def test_foreign_and_malformed_keys_are_replaced() -> None:
    items = [
        DesiredPlant(key="other:thing"),
        DesiredPlant(key=":broken", title="Fix Bug"),
    ]

    result = normalize_desired_plants("demo", items)

    assert [item.key for item in result] == ["demo:fix-bug", "demo:thing"]
    assert result[0].title == "Fix Bug"
    assert result[1].title == "thing"


def test_empty_proposals_fall_back_to_untitled_slug() -> None:
    result = normalize_desired_plants("demo", [DesiredPlant(), None])

    assert len(result) == 1
    assert result[0].key == "demo:untitled"
    assert result[0].title == "untitled"


def test_blank_plan_id_yields_nothing() -> None:
    assert normalize_desired_plants("  ", [DesiredPlant(slug="a")]) == []


def test_normalize_ids_drops_blanks_and_case_insensitive_duplicates() -> None:
    assert normalize_ids(["w1", " W1 ", "", None, "w2"]) == ("w1", "w2")
