from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from request_promise import Dispatcher, RequestEngine

BASE_URL = "http://localhost:4000"
UNREACHABLE_URL = "http://localhost:1/200"


class EchoServer:
    """Replies ``"<METHOD> <PATH>"`` with the status code taken from the path."""

    def __init__(self) -> None:
        self.received: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.port == 1:
            raise httpx.ConnectError("connect ECONNREFUSED 127.0.0.1:1", request=request)

        path = request.url.path
        try:
            status = int(path.split("/")[1])
        except ValueError:
            status = 555

        if status == 302:
            self.received.append("")
            return httpx.Response(302, headers={"location": "/200"}, request=request)

        body = f"{request.method} {request.url.raw_path.decode()}"
        if request.method == "POST" and request.content:
            payload = json.loads(request.content.decode())
            if payload != {}:
                body += " - " + json.dumps(payload, separators=(",", ":"))
        self.received.append(body)
        content = b"" if request.method == "HEAD" else body.encode()
        return httpx.Response(status, headers={"content-type": "text/plain"}, content=content, request=request)


@pytest.fixture
def server() -> EchoServer:
    return EchoServer()


@pytest.fixture
def rp(server: EchoServer) -> Dispatcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return Dispatcher(RequestEngine(client))


def url(path: str) -> str:
    return BASE_URL + path


async def drain(turns: int = 10) -> None:
    for _ in range(turns):
        await asyncio.sleep(0)
