import inspect
from typing import Awaitable, Callable, Dict, List, Union

import httpx
import pytest

Handler = Callable[[httpx.Request], Union[httpx.Response, Awaitable[httpx.Response]]]


class FakeOrigin:
    """
    In-process upstream for the proxy. Routes are keyed by absolute URL;
    every request that reaches it is kept so tests can inspect what the
    proxy actually sent on each hop. Handlers may be plain or async.
    """

    def __init__(self):
        self.routes: Dict[str, Handler] = {}
        self.requests: List[httpx.Request] = []
        self.bodies: List[bytes] = []

    def route(self, url: str, handler: Handler) -> None:
        self.routes[url] = handler

    def reply(self, url: str, status_code: int = 200, **kwargs) -> None:
        self.routes[url] = lambda request: httpx.Response(status_code, **kwargs)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(await request.aread())
        self.requests.append(request)
        handler = self.routes.get(str(request.url))
        if handler is None:
            return httpx.Response(404, text="no route")
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def origin():
    return FakeOrigin()


@pytest.fixture
def proxy_client(origin, monkeypatch):
    """TestClient for the proxy app with the upstream replaced by ``origin``."""
    from fastapi.testclient import TestClient

    from corsproxy.server import app

    monkeypatch.setattr("corsproxy.routes.create_transport", origin.transport)
    with TestClient(app) as client:
        yield client
