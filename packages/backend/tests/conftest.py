"""Test fixtures — a fresh in-memory app per test.

Learn: Testing pattern for the realtime stack without Postgres or Redis:

1. Environment is pinned *before* livecast is imported, so the module-level
   settings (and the default app built in livecast.main) use the memory
   backend, no Redis and no background scheduler.
2. Each test builds its own app via create_app(storage=MemoryStorage()),
   so registry, broadcaster and storage never leak between tests.
3. HTTP tests talk to the app through httpx's ASGITransport. Viewer
   sockets are FakeSockets registered straight into the app's registry,
   so a test can assert exactly what each room received.

WebSocket handshake tests use Starlette's TestClient instead (see
test_websocket.py).
"""

import json
import os

os.environ["LIVECAST_STORAGE_BACKEND"] = "memory"
os.environ["LIVECAST_REDIS_URL"] = ""
os.environ["LIVECAST_SCHEDULER_ENABLED"] = "false"
os.environ["LIVECAST_ENVIRONMENT"] = "development"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from starlette.websockets import WebSocketState  # noqa: E402

from livecast.config import Settings  # noqa: E402
from livecast.main import create_app  # noqa: E402
from livecast.realtime.broadcast import Broadcaster  # noqa: E402
from livecast.realtime.registry import ConnectionRegistry  # noqa: E402
from livecast.storage import MemoryStorage  # noqa: E402
from livecast.urls import BaseUrlResolver  # noqa: E402

BASE_URL = "https://live.example.com"


class FakeSocket:
    """Stands in for a Starlette WebSocket in the registry.

    Records every message sent to it (decoded from JSON). ``fail=True``
    makes send_text raise like a reset connection would.
    """

    def __init__(self, fail: bool = False, state: WebSocketState = WebSocketState.CONNECTED):
        self.client_state = state
        self.application_state = state
        self.fail = fail
        self.sent: list[dict] = []

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("connection reset by peer")
        self.sent.append(json.loads(text))

    def of_type(self, message_type: str) -> list[dict]:
        return [m for m in self.sent if m.get("type") == message_type]


@pytest.fixture()
def config():
    return Settings(
        storage_backend="memory",
        redis_url="",
        scheduler_enabled=False,
        public_url=BASE_URL,
        port=5000,
    )


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def registry():
    return ConnectionRegistry()


@pytest.fixture()
def broadcaster(registry):
    return Broadcaster(registry)


@pytest.fixture()
def resolver():
    return BaseUrlResolver(BASE_URL)


@pytest.fixture()
def app(storage, config):
    return create_app(storage=storage, config=config)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client bound to the test app (no lifespan, no network)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def viewer(app):
    """Register a FakeSocket in one of the app's rooms: ``viewer(room_id)``."""

    def _connect(room_id: int, **kwargs) -> FakeSocket:
        socket = FakeSocket(**kwargs)
        app.state.registry.assign(socket, room_id)
        return socket

    return _connect


@pytest.fixture()
def make_socket():
    """The FakeSocket class, for tests that wire their own registry."""
    return FakeSocket
