from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from conftest import UNREACHABLE_URL, drain, url
from request_promise import RequestEngine, Response
from request_promise.engine import EventEmitter, redact_headers


def test_callback_receives_response_and_body(rp) -> None:
    calls: list[tuple] = []

    async def scenario() -> None:
        request = rp.engine.request({"uri": url("/200")}, lambda *args: calls.append(args))
        await request.task

    asyncio.run(scenario())
    (error, response, body), = calls
    assert error is None
    assert isinstance(response, Response)
    assert response.status_code == 200
    assert response.url == url("/200")
    assert body == "GET /200"


def test_callback_runs_before_complete_listeners(rp) -> None:
    order: list[str] = []

    async def scenario() -> None:
        request = rp.engine.request({"uri": url("/200")}, lambda *args: order.append("callback"))
        request.on("complete", lambda response, body: order.append("complete"))
        await request.task

    asyncio.run(scenario())
    assert order == ["callback", "complete"]


def test_data_and_response_events(rp) -> None:
    events: list[object] = []

    async def scenario() -> None:
        request = rp.engine.request({"uri": url("/200"), "method": "put"})
        request.on("response", lambda response: events.append(response.status_code))
        request.on("data", events.append)
        await request.task

    asyncio.run(scenario())
    assert events[0] == 200
    assert b"".join(events[1:]) == b"PUT /200"


def test_transport_error_goes_to_callback_and_error_listeners(rp) -> None:
    seen: list[tuple] = []

    async def scenario() -> None:
        request = rp.engine.request({"uri": UNREACHABLE_URL}, lambda *args: seen.append(("callback", *args)))
        request.on("error", lambda exc: seen.append(("error", exc)))
        await request.task

    asyncio.run(scenario())
    assert [entry[0] for entry in seen] == ["callback", "error"]
    assert isinstance(seen[0][1], httpx.ConnectError)
    assert seen[0][2:] == (None, None)


def test_unlistened_error_is_reported_to_the_loop(rp) -> None:
    reports: list[dict] = []

    async def scenario() -> None:
        asyncio.get_running_loop().set_exception_handler(lambda loop, context: reports.append(context))
        request = rp.engine.request({"uri": UNREACHABLE_URL})
        await request.task
        await drain()

    asyncio.run(scenario())
    assert len(reports) == 1
    assert reports[0]["message"] == "Unhandled request error"


def test_missing_uri_without_callback_raises(rp) -> None:
    with pytest.raises(ValueError, match="options.uri is a required argument"):
        rp.engine.request({})


def test_encoding_none_keeps_bytes(rp) -> None:
    bodies: list[object] = []

    async def scenario() -> None:
        request = rp.engine.request({"uri": url("/200"), "encoding": None}, lambda e, r, body: bodies.append(body))
        await request.task

    asyncio.run(scenario())
    assert bodies == [b"GET /200"]


def test_query_string_option(rp) -> None:
    bodies: list[object] = []

    async def scenario() -> None:
        request = rp.engine.request({"uri": url("/200"), "qs": {"a": "1"}}, lambda e, r, body: bodies.append(body))
        await request.task

    asyncio.run(scenario())
    assert bodies == ["GET /200?a=1"]


def test_json_option_parses_json_responses() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["headers"] = dict(request.headers)
        captured["body"] = json.loads(request.content.decode())
        return httpx.Response(200, json={"ok": True}, request=request)

    engine = RequestEngine(
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        headers={"User-Agent": "request-promise-tests"},
    )
    bodies: list[object] = []

    async def scenario() -> None:
        request = engine.request(
            {"uri": url("/200"), "method": "POST", "json": {"foo": "bar"}, "headers": {"X-Trace": "1"}},
            lambda e, r, body: bodies.append(body),
        )
        await request.task
        await engine.aclose()

    asyncio.run(scenario())
    assert bodies == [{"ok": True}]
    assert captured["body"] == {"foo": "bar"}
    assert captured["headers"]["user-agent"] == "request-promise-tests"
    assert captured["headers"]["x-trace"] == "1"


def test_redirects_can_be_disabled(rp) -> None:
    statuses: list[int] = []

    async def scenario() -> None:
        request = rp.engine.request(
            {"uri": url("/302"), "follow_redirects": False},
            lambda e, response, body: statuses.append(response.status_code),
        )
        await request.task

    asyncio.run(scenario())
    assert statuses == [302]


def test_async_pipe_destination_is_awaited(rp) -> None:
    class AsyncSink:
        def __init__(self) -> None:
            self.chunks: list[bytes] = []

        async def write(self, chunk: bytes) -> None:
            await asyncio.sleep(0)
            self.chunks.append(chunk)

    sink = AsyncSink()

    async def scenario() -> None:
        request = rp.engine.request({"uri": url("/200")})
        assert request.pipe(sink) is sink
        await request.task

    asyncio.run(scenario())
    assert b"".join(sink.chunks) == b"GET /200"


def test_event_emitter_once_and_remove() -> None:
    emitter = EventEmitter()
    calls: list[int] = []

    def listener(value: int) -> None:
        calls.append(value)

    emitter.once("tick", listener)
    assert emitter.emit("tick", 1) is True
    assert emitter.emit("tick", 2) is False

    emitter.on("tick", listener)
    emitter.remove_listener("tick", listener)
    assert emitter.listeners("tick") == []
    assert calls == [1]


def test_redact_headers() -> None:
    assert redact_headers({"Authorization": "Bearer x", "Accept": "text/plain"}) == {
        "Authorization": "[REDACTED]",
        "Accept": "text/plain",
    }
    assert redact_headers(None) == {}


def test_repeated_response_headers_are_kept() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers=[("set-cookie", "a=1"), ("set-cookie", "b=2")],
            content=b"ok",
            request=request,
        )

    engine = RequestEngine(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    responses: list[Response] = []

    async def scenario() -> None:
        request = engine.request({"uri": url("/200")}, lambda e, response, body: responses.append(response))
        await request.task
        await engine.aclose()

    asyncio.run(scenario())
    assert responses[0].headers.get_list("set-cookie") == ["a=1", "b=2"]
