from unittest.mock import AsyncMock, MagicMock
import logging

import httpx
import pytest

from langchain_classroom._client import ENV_HTTP_DEBUG, ClassroomHttpClient, HttpConfig
from langchain_classroom._errors import RequestFailed


def test_httpconfig_initialization():
    cfg = HttpConfig(base_url="https://example.com", timeout_s=10.0)

    assert cfg.base_url == "https://example.com"
    assert cfg.timeout_s == 10.0


def make_client():
    cfg = HttpConfig(base_url="https://example.com", timeout_s=5.0)
    return ClassroomHttpClient(config=cfg, api_key="secret-key")


def test_headers_without_accept():
    client = make_client()

    headers = client._headers()

    assert headers["Authorization"] == "Bearer secret-key"
    assert headers["Content-Type"] == "application/json"
    assert "Accept" not in headers


def test_headers_with_accept():
    client = make_client()

    headers = client._headers(accept="text/event-stream")

    assert headers["Accept"] == "text/event-stream"


def test_post_json_calls_client_and_checks_status(monkeypatch):
    client = make_client()
    mock_client = MagicMock()
    mock_response = MagicMock()
    mock_client.post.return_value = mock_response
    client._client = mock_client

    called = {}

    def fake_rfs(resp):
        called["resp"] = resp

    # Patch on the instance to avoid method binding.
    monkeypatch.setattr(client, "raise_for_status", fake_rfs)

    payload = {"topic": "fractions"}
    resp = client.post_json("/v1/chat/completions", payload)

    assert resp is mock_response
    args, kwargs = mock_client.post.call_args
    assert args[0] == "https://example.com/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer secret-key"
    assert kwargs["json"] == payload
    assert called["resp"] is mock_response


@pytest.mark.asyncio
async def test_apost_json_calls_async_client(monkeypatch):
    client = make_client()
    mock_ac = AsyncMock()
    mock_response = MagicMock()
    mock_ac.post = AsyncMock(return_value=mock_response)
    client._aclient = mock_ac

    called = {}
    monkeypatch.setattr(client, "raise_for_status", lambda resp: called.setdefault("resp", resp))

    resp = await client.apost_json("/x", {"x": 1})

    assert resp is mock_response
    mock_ac.post.assert_awaited_once()
    args, kwargs = mock_ac.post.call_args
    assert args[0] == "https://example.com/x"
    assert "Accept" not in kwargs["headers"]
    assert called["resp"] is mock_response


def test_post_json_raises_request_failed_over_the_wire():
    client = make_client()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "Topic is required"})

    client._client = httpx.Client(transport=httpx.MockTransport(handler))

    with pytest.raises(RequestFailed) as exc:
        client.post_json("/fn", {"topic": ""})

    assert exc.value.status_code == 400
    assert exc.value.message == "Topic is required"


def test_stream_post_json_returns_stream_context_manager():
    client = make_client()
    mock_client = MagicMock()
    mock_stream = MagicMock()
    mock_client.stream.return_value = mock_stream
    client._client = mock_client

    payload = {"messages": [{"role": "user", "content": "hi"}]}
    cm = client.stream_post_json("/functions/v1/chat-with-ai", payload)

    assert cm is mock_stream
    args, kwargs = mock_client.stream.call_args
    assert args[0] == "POST"
    assert args[1] == "https://example.com/functions/v1/chat-with-ai"
    headers = kwargs["headers"]
    assert headers["Authorization"] == "Bearer secret-key"
    assert headers["Content-Type"] == "application/json"
    assert headers["Accept"] == "text/event-stream"
    assert kwargs["json"] == payload


def test_astream_post_json_returns_async_stream_context_manager():
    client = make_client()
    mock_ac = AsyncMock()
    mock_stream = MagicMock()
    # AsyncClient.stream is a plain method returning an async context manager.
    mock_ac.stream = MagicMock(return_value=mock_stream)
    client._aclient = mock_ac

    cm = client.astream_post_json("/astream", {"a": 1})

    assert cm is mock_stream
    args, kwargs = mock_ac.stream.call_args
    assert args[:2] == ("POST", "https://example.com/astream")
    assert kwargs["headers"]["Accept"] == "text/event-stream"


def test_close_closes_underlying_client():
    client = make_client()
    mock_client = MagicMock()
    client._client = mock_client

    client.close()

    mock_client.close.assert_called_once()


@pytest.mark.asyncio
async def test_aclose_closes_underlying_async_client():
    client = make_client()
    mock_ac = AsyncMock()
    client._aclient = mock_ac

    await client.aclose()

    mock_ac.aclose.assert_awaited_once()


def test_log_request_redacts_authorization(monkeypatch, caplog):
    monkeypatch.setenv(ENV_HTTP_DEBUG, "1")
    client = make_client()
    request_hook = client._client.event_hooks["request"][0]

    request = httpx.Request(
        "POST",
        "https://example.com/test",
        headers={"Authorization": "Bearer secret-token"},
        content=b'{"messages": []}',
    )

    with caplog.at_level(logging.WARNING):
        request_hook(request)

    messages = " ".join(rec.getMessage() for rec in caplog.records)
    assert "***REDACTED***" in messages
    assert "secret-token" not in messages


def test_log_response_skips_event_stream_body(monkeypatch, caplog):
    monkeypatch.setenv(ENV_HTTP_DEBUG, "true")
    client = make_client()
    response_hook = client._client.event_hooks["response"][0]

    req = httpx.Request("POST", "https://example.com/functions/v1/chat-with-ai")
    resp_json = httpx.Response(400, request=req, text='{"error":"x"}', headers={"content-type": "application/json"})
    resp_stream = httpx.Response(200, request=req, text="", headers={"content-type": "text/event-stream"})

    with caplog.at_level(logging.WARNING):
        response_hook(resp_json)
        response_hook(resp_stream)

    messages = " ".join(rec.getMessage() for rec in caplog.records)
    assert '{"error":"x"}' in messages
    assert "event-stream; not auto-logged" in messages


@pytest.mark.asyncio
async def test_async_hooks_log_when_debug_on(monkeypatch, caplog):
    monkeypatch.setenv(ENV_HTTP_DEBUG, "yes")
    client = make_client()

    req = httpx.Request("POST", "https://example.com/async", headers={"Authorization": "Bearer t"}, content=b"{}")
    resp = httpx.Response(200, request=req, text="async-ok", headers={"content-type": "application/json"})

    with caplog.at_level(logging.WARNING):
        await client._aclient.event_hooks["request"][0](req)
        await client._aclient.event_hooks["response"][0](resp)

    messages = " ".join(rec.getMessage() for rec in caplog.records)
    assert "HTTPX REQUEST" in messages
    assert "async-ok" in messages


def test_hooks_silent_when_debug_off(monkeypatch, caplog):
    monkeypatch.delenv(ENV_HTTP_DEBUG, raising=False)
    client = make_client()
    req = httpx.Request("GET", "https://example.com/")

    with caplog.at_level(logging.WARNING):
        client._client.event_hooks["request"][0](req)
        client._client.event_hooks["response"][0](httpx.Response(200, request=req, text="ok"))

    assert caplog.records == []
