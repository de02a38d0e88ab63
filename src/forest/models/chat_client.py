"""Chat client base class shared by all planning-agent integrations."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

__all__ = [
    "ChatClient",
    "ChatClientError",
    "ChatRequest",
    "ChatResponse",
    "ChatResponseFormatError",
    "ChatTransportError",
]


class ChatClientError(RuntimeError):
    """Base error raised for planning-agent client failures."""


class ChatTransportError(ChatClientError):
    """Raised when the underlying transport fails to return a response."""


class ChatResponseFormatError(ChatClientError):
    """Raised when the provider returns a payload the client cannot read."""


@dataclass(slots=True)
class ChatRequest:
    """Single chat turn sent to a planning agent."""

    agent_id: str
    system_prompt: str
    user_prompt: str
    temperature: Optional[float] = None
    model: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_payload(self, default_model: str, default_temperature: float) -> Dict[str, Any]:
        """Render an OpenAI-style chat completions payload."""
        temperature = self.temperature if self.temperature is not None else default_temperature
        return {
            "model": (self.model or "").strip() or default_model,
            "temperature": temperature,
            "messages": [
                {"role": "system", "content": self.system_prompt or ""},
                {"role": "user", "content": self.user_prompt or ""},
            ],
        }


@dataclass(slots=True)
class ChatResponse:
    """Assistant reply; ``json`` is set when the provider returned structured output."""

    raw_content: str
    json: Optional[str] = None


class ChatClient:
    """Common entry point that renders requests and normalizes transport errors."""

    def __init__(self, model: str, *, temperature: float = 0.0) -> None:
        self._model = model
        self._temperature = temperature

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    @property
    def temperature(self) -> float:
        return self._temperature

    def chat(self, request: ChatRequest) -> ChatResponse:
        """Send ``request`` and return the assistant reply."""
        payload = request.to_payload(self._model, self._temperature)
        payload["metadata"] = dict(request.metadata)
        payload["agent_id"] = request.agent_id
        try:
            return self._raw_chat(payload)
        except ChatClientError:
            raise
        except Exception as error:
            raise ChatTransportError(f"Transport rejected the request: {error}") from error

    def _raw_chat(self, payload: Dict[str, Any]) -> ChatResponse:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_chat().")


def dump_json(data: Any) -> str:
    """Serialise ``data`` compactly with stable key order."""
    return json.dumps(data, separators=(",", ":"), sort_keys=True)
