from __future__ import annotations

import json

import httpx
import pytest

from suggestgate.core.config.schema import AppConfig
from suggestgate.core.providers.base import ChatMessage, ProviderCall
from suggestgate.core.providers.groq_adapter import GroqAdapter
from suggestgate.core.providers.lmstudio_adapter import LMStudioAdapter
from suggestgate.core.providers.openai_adapter import OpenAIAdapter
from suggestgate.core.runtime.errors import InvalidResponseError, ProviderUnavailableError


class Recorder:
    def __init__(self, responder) -> None:
        self.responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def _chat_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "model": "gpt-4o-mini",
            "choices": [{"message": {"role": "assistant", "content": "We open at 10am."}}],
            "usage": {"prompt_tokens": 42, "completion_tokens": 6},
        },
    )


def _call(**overrides) -> ProviderCall:
    base = dict(
        model="gpt-4o-mini",
        temperature=0.3,
        max_tokens=150,
        messages=[ChatMessage(role="system", content="be nice"), ChatMessage(role="user", content="hours?")],
    )
    base.update(overrides)
    return ProviderCall(**base)


@pytest.mark.asyncio
async def test_openai_chat_payload_and_parsing():
    recorder = Recorder(_chat_ok)
    cfg = AppConfig()
    adapter = OpenAIAdapter(cfg.providers.openai, env={"OPENAI_API_KEY": "sk-test"}, transport=recorder.transport)

    reply = await adapter.generate(_call())

    request = recorder.requests[0]
    body = json.loads(request.content)
    assert str(request.url) == "https://api.openai.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert body["model"] == "gpt-4o-mini"
    assert body["stream"] is False
    assert body["messages"][1] == {"role": "user", "content": "hours?"}
    assert "stop" not in body
    assert reply.text == "We open at 10am."
    assert (reply.tokens_in, reply.tokens_out) == (42, 6)


@pytest.mark.asyncio
async def test_missing_api_key_is_unavailable_without_network():
    recorder = Recorder(_chat_ok)
    adapter = OpenAIAdapter(AppConfig().providers.openai, env={}, transport=recorder.transport)

    with pytest.raises(ProviderUnavailableError):
        await adapter.generate(_call())
    report = await adapter.health()

    assert recorder.requests == []
    assert report.ok is False
    assert report.status == "PROVIDER_UNAVAILABLE"


@pytest.mark.asyncio
async def test_response_without_choices_is_invalid():
    recorder = Recorder(lambda request: httpx.Response(200, json={"error": "nope"}))
    adapter = OpenAIAdapter(AppConfig().providers.openai, env={"OPENAI_API_KEY": "k"}, transport=recorder.transport)

    with pytest.raises(InvalidResponseError):
        await adapter.generate(_call())


@pytest.mark.asyncio
async def test_non_json_body_is_invalid():
    recorder = Recorder(lambda request: httpx.Response(200, text="<html>gateway</html>"))
    adapter = OpenAIAdapter(AppConfig().providers.openai, env={"OPENAI_API_KEY": "k"}, transport=recorder.transport)

    with pytest.raises(InvalidResponseError):
        await adapter.generate(_call())


@pytest.mark.asyncio
async def test_http_error_status_is_raised():
    recorder = Recorder(lambda request: httpx.Response(503, json={"error": "overloaded"}))
    adapter = OpenAIAdapter(AppConfig().providers.openai, env={"OPENAI_API_KEY": "k"}, transport=recorder.transport)

    with pytest.raises(httpx.HTTPStatusError):
        await adapter.generate(_call())


@pytest.mark.asyncio
async def test_groq_caps_stop_sequences():
    recorder = Recorder(_chat_ok)
    cfg = AppConfig()
    adapter = GroqAdapter(cfg.providers.groq, env={"GROQ_API_KEY": "gsk"}, transport=recorder.transport)

    await adapter.generate(_call(model="llama-3.1-8b-instant", stop=["a", "b", "c", "d", "e", "f"]))

    body = json.loads(recorder.requests[0].content)
    assert str(recorder.requests[0].url) == "https://api.groq.com/openai/v1/chat/completions"
    assert body["stop"] == ["a", "b", "c", "d"]


@pytest.mark.asyncio
async def test_lmstudio_completion_payload_uses_env_base_url():
    recorder = Recorder(
        lambda request: httpx.Response(200, json={"choices": [{"text": " Sure, we can help."}]})
    )
    settings = AppConfig().providers.lmstudio
    adapter = LMStudioAdapter(settings, env={"LLM_STUDIO_URL": "http://gpu-box:1234/"}, transport=recorder.transport)

    reply = await adapter.generate(
        ProviderCall(model="gpt-oss-20b", temperature=0.3, max_tokens=200, prompt="Suggested reply:", stop=list(settings.stop))
    )

    request = recorder.requests[0]
    body = json.loads(request.content)
    assert str(request.url) == "http://gpu-box:1234/v1/completions"
    assert "Authorization" not in request.headers
    assert body["prompt"] == "Suggested reply:"
    assert "messages" not in body
    assert body["stop"] == ["\n\n", "Human:", "Assistant:"]
    assert reply.text == " Sure, we can help."
    assert reply.tokens_in is None


@pytest.mark.asyncio
async def test_lmstudio_health_lists_loaded_models():
    recorder = Recorder(
        lambda request: httpx.Response(200, json={"data": [{"id": "gpt-oss-20b"}, {"id": "mistral-7b"}]})
    )
    adapter = LMStudioAdapter(AppConfig().providers.lmstudio, env={}, transport=recorder.transport)

    report = await adapter.health()

    assert str(recorder.requests[0].url) == "http://localhost:1234/v1/models"
    assert report.ok is True
    assert report.detail == "models: gpt-oss-20b, mistral-7b"


@pytest.mark.asyncio
async def test_health_reports_unhealthy_on_connection_error():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    adapter = LMStudioAdapter(AppConfig().providers.lmstudio, env={}, transport=Recorder(refuse).transport)
    report = await adapter.health()

    assert report.ok is False
    assert report.status == "unhealthy"
    assert "connection refused" in report.detail


def test_missing_base_url_fails_construction():
    settings = AppConfig().providers.lmstudio.model_copy(update={"base_url": None})
    with pytest.raises(ProviderUnavailableError):
        LMStudioAdapter(settings, env={})
