"""Tests for the model service client using httpx.MockTransport."""
import asyncio
import json

import httpx
import pytest

from kb_assistant.llm_client import (
    LLMConfigurationError,
    LLMError,
    OpenAIClient,
    extract_reply,
)


def make_client(handler) -> OpenAIClient:
    return OpenAIClient(
        api_key="sk-test",
        base_url="https://models.example/v1/",
        transport=httpx.MockTransport(handler),
    )


def test_embed_returns_vectors_in_input_order():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "data": [
                    {"index": 1, "embedding": [0.0, 1.0]},
                    {"index": 0, "embedding": [1.0, 0.0]},
                ]
            },
        )

    vectors = asyncio.run(make_client(handler).embed(["first", "second"], model="embed-small"))

    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    assert seen["url"] == "https://models.example/v1/embeddings"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {"model": "embed-small", "input": ["first", "second"]}


def test_embed_rejects_missing_vectors():
    def handler(request):
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0]}]})

    with pytest.raises(LLMError):
        asyncio.run(make_client(handler).embed(["a", "b"]))


def test_create_response_posts_messages():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"output_text": "Hello (Handbook)"})

    messages = [{"role": "system", "content": "Be brief."}, {"role": "user", "content": "Hi"}]
    data = asyncio.run(make_client(handler).create_response(messages, model="chat-mini"))

    assert data == {"output_text": "Hello (Handbook)"}
    assert seen["path"] == "/v1/responses"
    assert seen["body"] == {"model": "chat-mini", "input": messages}


def test_http_errors_are_raised():
    def handler(request):
        return httpx.Response(500, json={"error": {"message": "boom"}})

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(make_client(handler).create_response([{"role": "user", "content": "Hi"}]))


def test_missing_api_key_fails_before_any_request():
    def handler(request):
        raise AssertionError("no request expected")

    client = OpenAIClient(api_key="", transport=httpx.MockTransport(handler))

    assert client.is_configured is False
    with pytest.raises(LLMConfigurationError):
        asyncio.run(client.embed(["a"]))


def test_list_models():
    def handler(request):
        return httpx.Response(200, json={"data": [{"id": "gpt-4o-mini"}, {"id": "text-embedding-3-small"}]})

    assert asyncio.run(make_client(handler).list_models()) == ["gpt-4o-mini", "text-embedding-3-small"]


def test_extract_reply_prefers_output_text():
    assert extract_reply({"output_text": "Direct", "output": [{"content": [{"text": "Other"}]}]}) == "Direct"


def test_extract_reply_walks_output_content():
    data = {
        "output_text": "",
        "output": [
            {"content": [{"text": {"value": "First line"}}]},
            {"content": [{"text": "Second line "}, {"type": "refusal"}]},
            {"type": "reasoning"},
        ],
    }

    assert extract_reply(data) == "First line\nSecond line"


def test_extract_reply_empty_payload():
    assert extract_reply({}) == ""


def test_extract_reply_skips_entries_that_are_not_objects():
    data = {
        "output": [
            "stray string",
            {"content": ["not an item", {"text": "Usable line"}]},
        ],
    }

    assert extract_reply(data) == "Usable line"
    assert extract_reply({"output": ["only noise"]}) == ""
