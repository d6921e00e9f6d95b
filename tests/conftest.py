import json
from typing import Callable, List, Optional

import httpx
import pytest

from app.core.config import Settings
from app.models.participant import Participant

SUFFIX = "/api/trusted-participants"


class Recorder:
    """Mock transport that records outgoing requests and answers them with a handler."""

    def __init__(self, handler: Optional[Callable[[httpx.Request], httpx.Response]] = None):
        self.requests: List[httpx.Request] = []
        self.handler = handler or default_handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def matching(self, method: str, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and str(r.url) == url]

    def json_bodies(self, method: str, url: str) -> list:
        return [json.loads(r.content) for r in self.matching(method, url)]


def default_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/services"):
        return httpx.Response(200, json=[])
    return httpx.Response(200, json={})


def participant(name: str, host: str = None) -> Participant:
    return Participant(name=name, url=f"http://{host or name}:9191{SUFFIX}")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        node_name="test-node",
        asset_store_dir=tmp_path / "assets",
        completion_retries=2,
        completion_retry_delay_seconds=0.0,
    )


@pytest.fixture
def recorder():
    return Recorder()
