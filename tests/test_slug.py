from __future__ import annotations

from forest.utils.slug import plant_key, slugify, split_plant_key


def test_slugify_collapses_separators_and_drops_symbols() -> None:
    assert slugify("Add Tests!") == "add-tests"
    assert slugify("  --Hello__World..  ") == "hello-world"
    assert slugify("v2.0 release") == "v2-0-release"
    assert slugify("Café au lait") == "café-au-lait"


def test_slugify_drops_combining_marks_from_lowercasing() -> None:
    slug = slugify("İnstall Guide")

    assert slug == "install-guide"
    assert "\u0307" not in slug


def test_slugify_fallback_when_nothing_survives() -> None:
    assert slugify("***") == "untitled"
    assert slugify(None) == "untitled"
    assert slugify("   ", fallback="") == ""


def test_plant_key_and_split() -> None:
    key = plant_key("demo", "add-tests")
    assert key == "demo:add-tests"
    assert split_plant_key(key) == ("demo", "add-tests")
    assert split_plant_key("demo:a:b") == ("demo", "a:b")


def test_split_plant_key_rejects_malformed_keys() -> None:
    assert split_plant_key("no-colon") is None
    assert split_plant_key(":slug") is None
    assert split_plant_key("plan:") is None
    assert split_plant_key(None) is None
