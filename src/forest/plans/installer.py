"""Install plan YAML files into the forest store."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Any, List, Mapping

import yaml

from ..memory.schema import Plan, utc_now
from ..memory.store import ForestStore

LOGGER = logging.getLogger(__name__)


class PlanFormatError(ValueError):
    """Raised when a plan file cannot be turned into a ``Plan``."""


def load_plan(source: Path | str) -> Plan:
    """Parse the plan at ``source`` without persisting it."""
    path = Path(source).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Plan file not found: {path}")

    raw = path.read_bytes()
    try:
        data = yaml.safe_load(raw.decode("utf-8")) or {}
    except yaml.YAMLError as error:
        raise PlanFormatError(f"Failed to parse plan YAML at {path}: {error}") from error
    if not isinstance(data, Mapping):
        raise PlanFormatError(f"Plan YAML at {path} must be a mapping at the top level.")

    plan_id = _scalar(data.get("id"))
    if not plan_id:
        raise PlanFormatError(f"Plan YAML at '{path}' is missing required top-level 'id'.")

    repository = _scalar(data.get("repository"))
    metadata = {
        key: _scalar(data.get(key))
        for key in ("category", "author", "license", "homepage")
        if _scalar(data.get(key))
    }
    metadata["sha256"] = hashlib.sha256(raw).hexdigest()

    return Plan(
        id=plan_id,
        name=_scalar(data.get("name")),
        version=_scalar(data.get("version")),
        source=str(path.resolve()),
        repository=repository or None,
        planners=_string_list(data.get("planners"), field="planners"),
        planters=_string_list(data.get("planters"), field="planters"),
        plant_templates=_template_names(data.get("plant_templates")),
        metadata=metadata,
        installed_at=utc_now(),
    )


def install_plan(store: ForestStore, source: Path | str) -> Plan:
    """Parse and save a plan; re-installing replaces the plan but keeps its plants."""
    plan = load_plan(source)
    store.save_plan(plan)
    LOGGER.info("Installed plan %s (version %s) from %s", plan.id, plan.version or "-", plan.source)
    return plan


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _string_list(value: Any, *, field: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (str, int, float)):
        value = [value]
    if not isinstance(value, list):
        raise PlanFormatError(f"Plan field '{field}' must be a list.")
    results: List[str] = []
    for item in value:
        if isinstance(item, Mapping):
            item = item.get("id") or item.get("name")
        text = _scalar(item)
        if text:
            results.append(text)
    return results


def _template_names(value: Any) -> List[str]:
    """Accept ``- name`` strings or ``- name: ...`` mappings."""
    return _string_list(value, field="plant_templates")
