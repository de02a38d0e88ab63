"""Convenience exports for planning-agent chat client implementations."""

from .chat_client import (
    ChatClient,
    ChatClientError,
    ChatRequest,
    ChatResponse,
    ChatResponseFormatError,
    ChatTransportError,
)
from .offline import OfflineChatClient
from .openai_compat import OpenAICompatibleClient

__all__ = [
    "ChatClient",
    "ChatClientError",
    "ChatRequest",
    "ChatResponse",
    "ChatResponseFormatError",
    "ChatTransportError",
    "OfflineChatClient",
    "OpenAICompatibleClient",
]
