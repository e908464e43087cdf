"""
Shared pytest fixtures for the rocketchat_mcp test suite.

Provides fixtures for:
- A fake transport answering from a route table and recording every call
- A client wired to that transport
- Factories for raw server payloads
"""

from typing import Any, Callable, Dict, List, Optional

import pytest

from rocketchat_mcp.api.exceptions import APIError
from rocketchat_mcp.api.models import Credentials
from rocketchat_mcp.api.rocketchat_client import RocketChatClient


class FakeTransport:
    """Stand-in for HttpTransport.

    Routes map an endpoint path to a response dict, an exception to raise, or
    a callable ``(params, body) -> dict`` that may itself raise. Unknown paths
    fail the way a server does for an endpoint that does not apply.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None) -> None:
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[tuple] = []
        self.closed = False

    def _answer(self, path: str, params: Any, body: Any) -> Dict[str, Any]:
        if path not in self.routes:
            raise APIError(f"[{path}] The room does not exist")
        response = self.routes[path]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(params, body)
        return {"success": True, **response}

    async def call(self, path: str, method: str = "GET", params: Any = None, json: Any = None) -> Dict[str, Any]:
        self.calls.append((method, path, params, json))
        return self._answer(path, params, json)

    async def upload(self, path: str, files: Any, data: Any = None) -> Dict[str, Any]:
        self.calls.append(("POST", path, data, files))
        return self._answer(path, data, files)

    async def aclose(self) -> None:
        self.closed = True

    @property
    def paths(self) -> List[str]:
        return [call[1] for call in self.calls]


@pytest.fixture
def credentials() -> Credentials:
    return Credentials("https://chat.example.com/", "user-1", "token-1")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(credentials: Credentials, transport: FakeTransport) -> RocketChatClient:
    return RocketChatClient(credentials, transport=transport)


@pytest.fixture
def make_message() -> Callable[..., Dict[str, Any]]:
    """Factory for raw message payloads as the history endpoints return them."""

    def factory(msg_id: str, text: str = "", ts: str = "2024-05-01T10:00:00.000Z",
                user_id: str = "u-alice", username: str = "alice", **extra: Any) -> Dict[str, Any]:
        message = {
            "_id": msg_id,
            "rid": "room-1",
            "msg": text,
            "ts": ts,
            "u": {"_id": user_id, "username": username, "name": username.title()},
        }
        message.update(extra)
        return message

    return factory
