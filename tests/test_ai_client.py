import asyncio
import json

import httpx
import pytest

from troubleshooter.ai_client import AIClient


def make_client(handler, api_key="sk-test"):
    return AIClient(
        api_key=api_key,
        base_url="https://llm.example/v1/",
        model="gpt-4o-mini",
        transport=httpx.MockTransport(handler),
    )


def run_chat(client, messages):
    async def _run():
        try:
            return await client.chat(messages)
        finally:
            await client.close()

    return asyncio.run(_run())


def test_chat_posts_completion_request():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "model": "gpt-4o-mini-2024",
            "choices": [{"message": {"role": "assistant", "content": "Check the resolver."}}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        })

    result = run_chat(make_client(handler), [{"role": "user", "content": "dns?"}])

    assert seen["url"] == "https://llm.example/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "gpt-4o-mini"
    assert seen["body"]["max_tokens"] == 3000
    assert seen["body"]["temperature"] == 0.7
    assert seen["body"]["top_p"] == 0.95
    assert result == {
        "text": "Check the resolver.",
        "model": "gpt-4o-mini-2024",
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


def test_chat_with_empty_choices_returns_empty_text():
    def handler(request):
        return httpx.Response(200, json={"choices": []})

    result = run_chat(make_client(handler), [])
    assert result["text"] == ""
    assert result["model"] == "gpt-4o-mini"
    assert result["usage"]["total_tokens"] == 0


@pytest.mark.parametrize("status, message", [
    (401, "OpenAI API authentication failed"),
    (429, "Rate limit exceeded. Please try again later."),
])
def test_chat_maps_upstream_errors(status, message):
    def handler(request):
        return httpx.Response(status, json={"error": {"message": "nope"}})

    with pytest.raises(RuntimeError, match=message):
        run_chat(make_client(handler), [])


def test_chat_wraps_transport_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RuntimeError, match="Failed to communicate"):
        run_chat(make_client(handler), [])


def test_chat_requires_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = make_client(lambda request: httpx.Response(200, json={}), api_key="")

    assert client.configured is False
    with pytest.raises(RuntimeError, match="not configured"):
        run_chat(client, [])
