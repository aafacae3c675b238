from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from langchain_classroom._errors import DEFAULT_ERROR_MESSAGE, RequestFailed

ENV_HTTP_DEBUG = "CLASSROOM_HTTP_DEBUG"


@dataclass(frozen=True, slots=True)
class HttpConfig:
    base_url: str
    timeout_s: float = 120.0


def _parse_error_response(
    status_code: int,
    body_text: str,
    content_type: str,
) -> RequestFailed:
    """
    Build a RequestFailed from an error response.

    Accepted envelopes:
    - {"error": "rate limited"}                      (serverless functions)
    - {"error": {"code": "...", "message": "..."}}   (upstream providers)
    - {"message": "..."}

    Anything else keeps the raw body as message, or the generic "AI error".
    """
    message = DEFAULT_ERROR_MESSAGE
    error_code: str | None = None
    details: dict[str, Any] | None = None

    def _fallback() -> RequestFailed:
        msg = body_text.strip() if body_text and body_text.strip() else message
        return RequestFailed(status_code=status_code, message=msg, body=body_text or None)

    # Deno functions sometimes forget the header; also try JSON when the body looks like it.
    looks_json = body_text.lstrip().startswith(("{", "["))
    if "application/json" not in content_type.lower() and not looks_json:
        return _fallback()

    try:
        data = json.loads(body_text) if body_text else {}
    except (json.JSONDecodeError, ValueError):
        return _fallback()

    if not isinstance(data, dict):
        return RequestFailed(
            status_code=status_code,
            message=str(data) if data else message,
            body=body_text or None,
        )

    error_obj = data.get("error")

    if isinstance(error_obj, str) and error_obj.strip():
        message = error_obj.strip()
    elif isinstance(error_obj, dict):
        code = error_obj.get("code")
        if isinstance(code, str) and code.strip():
            error_code = code.strip()

        msg = error_obj.get("message")
        if isinstance(msg, str) and msg.strip():
            message = msg.strip()

        det = error_obj.get("details")
        if isinstance(det, dict):
            details = det
    else:
        msg = data.get("message")
        if isinstance(msg, str) and msg.strip():
            message = msg.strip()

    return RequestFailed(
        status_code=status_code,
        message=message,
        body=body_text or None,
        error_code=error_code,
        details=details,
    )


class ClassroomHttpClient:
    """
    Thin HTTPX wrapper with:
    - JSON requests
    - SSE streaming via httpx.Client.stream / AsyncClient.stream
    - Optional debug logging
    """

    def __init__(self, *, config: HttpConfig, api_key: str) -> None:
        self._config = config
        self._api_key = api_key
        self._debug_http = os.getenv(ENV_HTTP_DEBUG, "").lower() in {"1", "true", "yes", "on"}

        def _redact_headers(headers: dict[str, Any]) -> dict[str, Any]:
            out = dict(headers)
            for k in ("authorization", "Authorization"):
                if k in out:
                    out[k] = "Bearer ***REDACTED***"
            return out

        def _log_request(request: httpx.Request) -> None:
            if not self._debug_http:
                return
            logging.warning("HTTPX REQUEST %s %s", request.method, request.url)
            logging.warning("HTTPX REQUEST headers=%s", _redact_headers(dict(request.headers)))
            if request.content:
                try:
                    logging.warning("HTTPX REQUEST body=%s", request.content.decode("utf-8", "ignore"))
                except Exception:
                    logging.warning("HTTPX REQUEST body=(binary) len=%s", len(request.content))

        def _log_response_head(response: httpx.Response) -> bool:
            """Logs status and headers; returns True when the body may be logged too."""
            req = response.request
            logging.warning("HTTPX RESPONSE %s %s -> %s", req.method, req.url, response.status_code)
            logging.warning("HTTPX RESPONSE headers=%s", dict(response.headers))
            if "text/event-stream" in response.headers.get("content-type", ""):
                logging.warning("HTTPX RESPONSE body=(event-stream; not auto-logged)")
                return False
            return True

        def _log_response_sync(response: httpx.Response) -> None:
            if not self._debug_http or not _log_response_head(response):
                return
            try:
                response.read()
                logging.warning("HTTPX RESPONSE body=%s", response.text)
            except Exception as e:
                logging.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)

        async def _log_request_async(request: httpx.Request) -> None:
            _log_request(request)

        async def _log_response_async(response: httpx.Response) -> None:
            if not self._debug_http or not _log_response_head(response):
                return
            try:
                await response.aread()
                logging.warning("HTTPX RESPONSE body=%s", response.text)
            except Exception as e:
                logging.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)

        EventHooksDict = dict[str, list[Callable[..., Any]]]

        hooks_sync: EventHooksDict = {"request": [_log_request], "response": [_log_response_sync]}
        hooks_async: EventHooksDict = {"request": [_log_request_async], "response": [_log_response_async]}

        self._client = httpx.Client(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_sync)
        self._aclient = httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_async)

    def close(self) -> None:
        self._client.close()

    async def aclose(self) -> None:
        await self._aclient.aclose()

    def _headers(self, *, accept: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if accept:
            headers["Accept"] = accept
        return headers

    @staticmethod
    def _error_from(resp: Any, body_text: str | None) -> RequestFailed:
        headers = getattr(resp, "headers", None) or {}
        return _parse_error_response(
            status_code=resp.status_code,
            body_text=body_text or "",
            content_type=headers.get("content-type", ""),
        )

    @staticmethod
    def raise_for_status(resp: Any) -> None:
        """Checks the status and raises a structured RequestFailed."""
        if 200 <= resp.status_code < 300:
            return

        body_text: str | None = None
        try:
            # Streamed responses must be read before .text is available.
            if isinstance(resp, httpx.Response):
                resp.read()
            body_text = resp.text
        except Exception:
            body_text = None

        raise ClassroomHttpClient._error_from(resp, body_text)

    @staticmethod
    async def araise_for_status(resp: Any) -> None:
        """Async twin of raise_for_status for responses opened with AsyncClient.stream."""
        if 200 <= resp.status_code < 300:
            return

        body_text: str | None = None
        try:
            if isinstance(resp, httpx.Response):
                await resp.aread()
            body_text = resp.text
        except Exception:
            body_text = None

        raise ClassroomHttpClient._error_from(resp, body_text)

    def post_json(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        url = f"{self._config.base_url}{path}"
        resp = self._client.post(url, headers=self._headers(), json=payload)
        self.raise_for_status(resp)
        return resp

    async def apost_json(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        url = f"{self._config.base_url}{path}"
        resp = await self._aclient.post(url, headers=self._headers(), json=payload)
        self.raise_for_status(resp)
        return resp

    def stream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Returns an httpx stream context manager.

        Usage:
            with client.stream_post_json(...) as r:
                client.raise_for_status(r)
                for delta in open_delta_stream(r):
                    ...
        """
        url = f"{self._config.base_url}{path}"
        return self._client.stream("POST", url, headers=self._headers(accept="text/event-stream"), json=payload)

    def astream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Returns an async httpx stream context manager.

        Usage:
            async with client.astream_post_json(...) as r:
                await client.araise_for_status(r)
                async for delta in open_async_delta_stream(r):
                    ...
        """
        url = f"{self._config.base_url}{path}"
        return self._aclient.stream("POST", url, headers=self._headers(accept="text/event-stream"), json=payload)
