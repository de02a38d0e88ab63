from __future__ import annotations

import json

import pytest

from forest.models import (
    ChatRequest,
    ChatResponseFormatError,
    ChatTransportError,
    OfflineChatClient,
    OpenAICompatibleClient,
)


def _request(**overrides) -> ChatRequest:
    values = {"agent_id": "p1", "system_prompt": "system", "user_prompt": "user"}
    values.update(overrides)
    return ChatRequest(**values)


def test_openai_client_posts_chat_completion(monkeypatch) -> None:
    monkeypatch.setenv("FOREST_TEST_KEY", "secret")
    seen: dict = {}

    def transport(url: str, body: dict, headers: dict) -> str:
        seen.update(url=url, body=body, headers=headers)
        return json.dumps({"choices": [{"message": {"content": '{"desiredPlants": []}'}}]})

    client = OpenAICompatibleClient(
        base_url="http://localhost:8080/v1/",
        api_key_env="FOREST_TEST_KEY",
        model="local-model",
        transport=transport,
    )

    response = client.chat(_request(temperature=0.2))

    assert response.raw_content == '{"desiredPlants": []}'
    assert seen["url"] == "http://localhost:8080/v1/chat/completions"
    assert seen["headers"]["Authorization"] == "Bearer secret"
    assert seen["body"]["model"] == "local-model"
    assert seen["body"]["temperature"] == 0.2
    assert [message["role"] for message in seen["body"]["messages"]] == ["system", "user"]


def test_openai_client_returns_raw_body_without_choices() -> None:
    client = OpenAICompatibleClient(transport=lambda url, body, headers: "plain text")

    assert client.chat(_request()).raw_content == "plain text"


def test_openai_client_error_mapping() -> None:
    empty = OpenAICompatibleClient(transport=lambda url, body, headers: "  ")
    with pytest.raises(ChatResponseFormatError):
        empty.chat(_request())

    def broken(url: str, body: dict, headers: dict) -> str:
        raise OSError("socket closed")

    with pytest.raises(ChatTransportError):
        OpenAICompatibleClient(transport=broken).chat(_request())

    with pytest.raises(ValueError):
        OpenAICompatibleClient(base_url="  ")


def test_offline_client_is_deterministic() -> None:
    client = OfflineChatClient()

    first = client.chat(_request())
    second = client.chat(_request())
    other = client.chat(_request(agent_id="p2"))

    assert first == second
    assert first.json == first.raw_content
    payload = json.loads(first.raw_content)
    assert payload["desiredPlants"] == []
    assert payload["summary"].startswith("mock:p1:")
    assert payload["metadata"]["provider"] == "mock"
    assert other.raw_content != first.raw_content
