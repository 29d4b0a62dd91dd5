"""
LLM Client Tests
================
Messages API request shape and error mapping via httpx.MockTransport.
"""
import asyncio
import json

import httpx
import pytest

from bug_analyzer.core.errors import AnalysisError, AuthError, ConnectivityError
from bug_analyzer.llm.client import LLMClient


def _complete(handler, prompt="Analyze these bugs"):
    async def run_test():
        client = LLMClient(
            "sk-test",
            model="test-model",
            max_tokens=1234,
            base_url="https://llm.example/v1/",
            transport=httpx.MockTransport(handler),
        )
        try:
            return await client.complete(prompt)
        finally:
            await client.close()
    return asyncio.run(run_test())


def _reply(text='{"summary": "ok"}'):
    return httpx.Response(200, json={
        "content": [{"type": "text", "text": text}],
        "usage": {"input_tokens": 10, "output_tokens": 5},
    })


def test_request_shape():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return _reply()

    text = _complete(handler, "hello")

    assert text == '{"summary": "ok"}'
    assert seen["url"] == "https://llm.example/v1/messages"
    assert seen["headers"]["x-api-key"] == "sk-test"
    assert seen["headers"]["anthropic-version"] == "2023-06-01"
    assert seen["body"] == {
        "model": "test-model",
        "max_tokens": 1234,
        "messages": [{"role": "user", "content": "hello"}],
    }


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_key(status):
    with pytest.raises(AuthError):
        _complete(lambda request: httpx.Response(status))


def test_server_error_is_connectivity():
    with pytest.raises(ConnectivityError):
        _complete(lambda request: httpx.Response(529, json={"type": "error"}))


def test_network_failure():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ConnectivityError):
        _complete(handler)


@pytest.mark.parametrize("response", [
    httpx.Response(200, json={"content": []}),
    httpx.Response(200, json={"content": [{"type": "tool_use", "id": "t1"}]}),
    httpx.Response(200, content=b"<html>"),
])
def test_unusable_reply(response):
    with pytest.raises(AnalysisError):
        _complete(lambda request: response)


def test_single_attempt_only():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    with pytest.raises(ConnectivityError):
        _complete(handler)
    assert len(calls) == 1
