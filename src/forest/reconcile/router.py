"""Routing logic that maps forum names to their concrete implementations."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, Mapping, Optional

from .context import ReconcileContext, ReconciliationForum, ReconciliationStrategy
from .errors import UnknownForumError

DEFAULT_FORUM = "file"
FORUM_ALIASES: Dict[str, str] = {"template": "file", "agent": "ai"}


class ForumRouter:
    """Dispatch table selecting a forum from a per-call override or the configured default."""

    def __init__(
        self,
        forums: Mapping[str, ReconciliationForum],
        *,
        default_forum: Optional[str] = DEFAULT_FORUM,
    ) -> None:
        self._registry: Dict[str, ReconciliationForum] = {
            self._canonical(name): forum for name, forum in forums.items()
        }
        self._default = self._canonical(default_forum) or DEFAULT_FORUM

    @property
    def default_forum(self) -> str:
        return self._default

    def select(self, forum_override: Optional[str] = None) -> str:
        """Return the registered forum name that ``run`` would use."""
        name = self._canonical(forum_override) or self._default
        if name not in self._registry:
            raise UnknownForumError(name, sorted(self._registry))
        return name

    def run(
        self,
        context: ReconcileContext,
        forum_override: Optional[str] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationStrategy:
        """Execute the selected forum for ``context``."""
        forum = self._registry[self.select(forum_override)]
        return forum.run(context, cancel_event=cancel_event)

    def available_forums(self) -> Iterable[str]:
        """Return the forum names currently registered with the router."""
        return self._registry.keys()

    @staticmethod
    def _canonical(name: Optional[str]) -> str:
        return canonical_forum_name(name)


def canonical_forum_name(name: Optional[str]) -> str:
    """Trim, lowercase and resolve aliases; blank names stay blank."""
    value = (name or "").strip().lower()
    return FORUM_ALIASES.get(value, value)
