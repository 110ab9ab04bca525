"""Callback-style request engine on top of ``httpx.AsyncClient``.

``RequestEngine.request(options, callback)`` starts one HTTP exchange and
returns a :class:`Request` right away. The callback is called with
``(error, response, body)`` once the exchange finishes. The returned request
is also an event emitter (``response``, ``data``, ``complete``, ``error``) and
can be piped into any object with a ``write`` method.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Mapping

import httpx

from .models import Response
from .request_options import require_uri

logger = logging.getLogger(__name__)

EngineCallback = Callable[[BaseException | None, Response | None, Any], None]

SENSITIVE_HEADERS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
}


def redact_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    """Return headers with credential values replaced, for logging."""
    if not headers:
        return {}
    return {key: "[REDACTED]" if key.lower() in SENSITIVE_HEADERS else value for key, value in headers.items()}


class EventEmitter:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Callable[..., Any]]] = {}

    def on(self, event: str, listener: Callable[..., Any]) -> "EventEmitter":
        self._listeners.setdefault(event, []).append(listener)
        return self

    add_listener = on

    def once(self, event: str, listener: Callable[..., Any]) -> "EventEmitter":
        def wrapper(*args: Any) -> Any:
            self.remove_listener(event, wrapper)
            return listener(*args)

        return self.on(event, wrapper)

    def remove_listener(self, event: str, listener: Callable[..., Any]) -> "EventEmitter":
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)
        return self

    def listeners(self, event: str) -> list[Callable[..., Any]]:
        return list(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        listeners = self.listeners(event)
        for listener in listeners:
            listener(*args)
        return bool(listeners)


class Request(EventEmitter):
    """A single in-flight exchange."""

    def __init__(self, engine: "RequestEngine", options: Mapping[str, Any], callback: EngineCallback | None = None) -> None:
        super().__init__()
        self._engine = engine
        self.options = dict(options)
        self.callback = callback
        self.method = str(self.options.get("method") or "GET").upper()
        self.uri = self.options.get("uri") or self.options.get("url")
        self.response: Response | None = None
        self._destinations: list[Any] = []
        self._loop = asyncio.get_running_loop()
        self._task: asyncio.Task[None] | None = None

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self) -> "Request":
        if not self.uri:
            self._loop.call_soon(self._fail, ValueError("options.uri is a required argument"))
            return self
        self._task = self._loop.create_task(self._run())
        return self

    def pipe(self, destination: Any) -> Any:
        self._destinations.append(destination)
        return destination

    async def _run(self) -> None:
        try:
            response, body = await self._exchange()
        except Exception as exc:
            logger.debug("%s %s failed: %r", self.method, self.uri, exc)
            self._fail(exc)
            return

        self.response = response
        logger.debug("%s %s -> %s", self.method, self.uri, response.status_code)
        if self.callback is not None:
            self.callback(None, response, body)
        try:
            self.emit("complete", response, body)
        except Exception as exc:
            self._loop.call_exception_handler(
                {"message": "Unhandled error in complete listener", "exception": exc, "request": self}
            )

    async def _exchange(self) -> tuple[Response, Any]:
        kwargs = self._build_request_kwargs()
        logger.debug("%s %s headers=%s", self.method, self.uri, redact_headers(kwargs.get("headers")))
        async with self._engine.client() as client:
            async with client.stream(self.method, str(self.uri), **kwargs) as http_response:
                self.emit("response", http_response)
                chunks: list[bytes] = []
                async for chunk in http_response.aiter_bytes():
                    chunks.append(chunk)
                    self.emit("data", chunk)
                    for destination in self._destinations:
                        written = destination.write(chunk)
                        if inspect.isawaitable(written):
                            await written

        body = self._decode_body(http_response, b"".join(chunks))
        return Response.from_httpx(http_response, body), body

    def _fail(self, exc: BaseException) -> None:
        handled = False
        if self.callback is not None:
            self.callback(exc, None, None)
            handled = True
        if self.emit("error", exc):
            handled = True
        if not handled:
            self._loop.call_exception_handler(
                {"message": "Unhandled request error", "exception": exc, "request": self}
            )

    def _build_request_kwargs(self) -> dict[str, Any]:
        options = self.options
        kwargs: dict[str, Any] = {
            "follow_redirects": options.get("follow_redirects", self._engine.follow_redirects),
            "timeout": options.get("timeout", self._engine.timeout),
        }
        headers = dict(self._engine.headers)
        headers.update({str(k): str(v) for k, v in (options.get("headers") or {}).items()})
        if headers:
            kwargs["headers"] = headers
        if options.get("qs") is not None:
            kwargs["params"] = options["qs"]
        payload = options.get("json")
        if payload is not None and not isinstance(payload, bool):
            kwargs["json"] = payload
        elif options.get("body") is not None:
            body = options["body"]
            kwargs["content"] = body.encode() if isinstance(body, str) else body
        elif options.get("form") is not None:
            kwargs["data"] = options["form"]
        return kwargs

    def _decode_body(self, http_response: httpx.Response, content: bytes) -> Any:
        if "encoding" in self.options and self.options["encoding"] is None:
            return content
        text = content.decode(self.options.get("encoding") or http_response.encoding or "utf-8", errors="replace")
        if self.options.get("json") and text:
            try:
                return json.loads(text)
            except ValueError:
                return text
        return text


class RequestEngine:
    default_timeout = 30.0

    def __init__(
        self,
        httpx_client: httpx.AsyncClient | None = None,
        *,
        timeout: float | None = default_timeout,
        follow_redirects: bool = True,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._httpx = httpx_client
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.headers = {str(k): str(v) for k, v in (headers or {}).items()}

    async def __aenter__(self) -> "RequestEngine":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._httpx is not None:
            await self._httpx.aclose()

    def client(self) -> "_ClientScope":
        return _ClientScope(self._httpx)

    def request(self, options: Mapping[str, Any], callback: EngineCallback | None = None) -> Request:
        if callback is None:
            require_uri(options)
        return Request(self, options, callback).start()


class _ClientScope:
    """Yields the shared client, or a short-lived one when none was given."""

    def __init__(self, shared: httpx.AsyncClient | None) -> None:
        self._shared = shared
        self._owned: httpx.AsyncClient | None = None

    async def __aenter__(self) -> httpx.AsyncClient:
        if self._shared is not None:
            return self._shared
        self._owned = httpx.AsyncClient(trust_env=False)
        return self._owned

    async def __aexit__(self, *exc_info: object) -> None:
        if self._owned is not None:
            await self._owned.aclose()
