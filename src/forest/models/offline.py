"""Offline deterministic chat client used when no provider is configured."""

from __future__ import annotations

import hashlib
from typing import Any, Dict

from .chat_client import ChatClient, ChatResponse, dump_json

__all__ = ["OfflineChatClient"]


class OfflineChatClient(ChatClient):
    """Local stub that answers every planner with an empty, stable proposal.

    The reply only depends on the request contents so repeated reconciles
    stay idempotent without network access.
    """

    def __init__(self, model: str = "mock", *, temperature: float = 0.0) -> None:
        super().__init__((model or "").strip() or "mock", temperature=temperature)

    def _raw_chat(self, payload: Dict[str, Any]) -> ChatResponse:
        messages = payload.get("messages") or []
        system_prompt = messages[0]["content"] if len(messages) > 0 else ""
        user_prompt = messages[1]["content"] if len(messages) > 1 else ""
        agent_id = str(payload.get("agent_id") or "")
        model = str(payload.get("model") or self.model)
        temperature = float(payload.get("temperature") or 0.0)

        fingerprint_source = "\n".join(
            [agent_id, system_prompt, user_prompt, model, f"{temperature:g}"]
        )
        fingerprint = hashlib.sha256(fingerprint_source.encode("utf-8")).hexdigest()[:8]

        body = dump_json(
            {
                "desiredPlants": [],
                "summary": f"mock:{agent_id}:{fingerprint}",
                "metadata": {
                    "provider": "mock",
                    "model": model,
                    "temperature": f"{temperature:g}",
                    "fingerprint": fingerprint,
                },
            }
        )
        return ChatResponse(raw_content=body, json=body)
