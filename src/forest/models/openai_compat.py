"""Chat client for OpenAI-compatible ``/chat/completions`` endpoints."""

from __future__ import annotations

import json
import os
from typing import Any, Callable, Dict, Optional

from .chat_client import ChatClient, ChatResponse, ChatResponseFormatError, ChatTransportError

__all__ = ["OpenAICompatibleClient"]


Transport = Callable[[str, Dict[str, Any], Dict[str, str]], str]


class OpenAICompatibleClient(ChatClient):
    """Thin adapter around OpenAI and OpenAI-compatible chat servers."""

    def __init__(
        self,
        *,
        base_url: str = "https://api.openai.com/v1",
        api_key_env: str = "OPENAI_API_KEY",
        model: str = "gpt-4o-mini",
        temperature: float = 0.0,
        timeout: float = 60.0,
        transport: Optional[Transport] = None,
    ) -> None:
        super().__init__(model=(model or "").strip() or "gpt-4o-mini", temperature=temperature)
        base = (base_url or "").strip().rstrip("/")
        if not base:
            raise ValueError("A base URL is required for the chat client.")
        self._endpoint = f"{base}/chat/completions"
        self._api_key_env = (api_key_env or "").strip() or "OPENAI_API_KEY"
        self._timeout = timeout
        self._transport = transport or self._http_transport

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _raw_chat(self, payload: Dict[str, Any]) -> ChatResponse:
        body = {key: payload[key] for key in ("model", "temperature", "messages")}
        headers = {"Content-Type": "application/json"}
        api_key = (os.getenv(self._api_key_env) or "").strip()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        raw = self._transport(self._endpoint, body, headers)
        if not raw or not raw.strip():
            raise ChatResponseFormatError("Chat endpoint returned an empty body.")
        content = self._extract_message_content(raw)
        if content is None:
            return ChatResponse(raw_content=raw)
        return ChatResponse(raw_content=content)

    def _http_transport(self, url: str, body: Dict[str, Any], headers: Dict[str, str]) -> str:
        """Default HTTP transport built on ``urllib``."""
        import urllib.error
        import urllib.request

        request = urllib.request.Request(
            url,
            data=json.dumps(body).encode("utf-8"),
            headers=headers,
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise ChatTransportError("Chat completion timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise ChatTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise ChatTransportError(f"Failed to reach chat endpoint: {error.reason}") from error

        if status >= 400:
            raise ChatTransportError(f"Unexpected HTTP status {status}")
        return raw.decode("utf-8")

    @staticmethod
    def _extract_message_content(raw_response: str) -> Optional[str]:
        """Return ``choices[0].message.content`` when present."""
        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            return None
        content = message.get("content")
        if isinstance(content, str):
            return content
        return None
