from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from forest.memory.schema import Plan  # noqa: E402
from forest.memory.store import ForestStore  # noqa: E402
from forest.models.chat_client import ChatClient, ChatResponse  # noqa: E402


class ScriptedChatClient(ChatClient):
    """Chat client stub that answers each planner from a lookup table.

    A value that is an exception instance is raised instead of returned.
    """

    def __init__(self, replies: Dict[str, Any] | None = None) -> None:
        super().__init__("stub-model")
        self.replies: Dict[str, Any] = dict(replies or {})
        self.calls: List[Dict[str, Any]] = []

    def _raw_chat(self, payload: Dict[str, Any]) -> ChatResponse:
        self.calls.append(payload)
        reply = self.replies.get(payload["agent_id"], '{"desiredPlants": []}')
        if isinstance(reply, BaseException):
            raise reply
        return ChatResponse(raw_content=reply)


@pytest.fixture()
def store(tmp_path: Path) -> Iterator[ForestStore]:
    with ForestStore(tmp_path / "forest.sqlite") as forest_store:
        yield forest_store


@pytest.fixture()
def make_plan() -> Callable[..., Plan]:
    def factory(**overrides: Any) -> Plan:
        values: Dict[str, Any] = {
            "id": "demo",
            "name": "Demo",
            "planners": ["p1"],
            "planters": ["w1"],
            "plant_templates": ["add-tests"],
        }
        values.update(overrides)
        return Plan(**values)

    return factory


@pytest.fixture()
def scripted_client() -> Callable[..., ScriptedChatClient]:
    return ScriptedChatClient
