"""Tests for the HTTP transport."""

import httpx
import pytest

from rocketchat_mcp.api.exceptions import APIError, DownloadError
from rocketchat_mcp.api.models import Credentials
from rocketchat_mcp.api.transport import HttpTransport


def make_transport(handler) -> HttpTransport:
    return HttpTransport(
        Credentials("https://chat.example.com/", "user-1", "token-1"),
        transport=httpx.MockTransport(handler),
    )


class TestCall:
    """Test JSON requests."""

    async def test_attaches_auth_headers_and_api_prefix(self) -> None:
        """Every call carries the token pair and targets /api/v1."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["token"] = request.headers.get("X-Auth-Token")
            seen["user"] = request.headers.get("X-User-Id")
            return httpx.Response(200, json={"success": True, "messages": []})

        transport = make_transport(handler)
        data = await transport.call("channels.history", params={"roomId": "R1", "latest": None})
        await transport.aclose()

        assert data["messages"] == []
        assert seen["url"] == "https://chat.example.com/api/v1/channels.history?roomId=R1"
        assert seen["token"] == "token-1"
        assert seen["user"] == "user-1"

    async def test_sends_json_body(self) -> None:
        """POST bodies are sent as JSON."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.content
            seen["type"] = request.headers.get("Content-Type")
            return httpx.Response(200, json={"success": True})

        transport = make_transport(handler)
        await transport.call("chat.postMessage", method="POST", json={"channel": "#general", "text": "hi"})

        assert b'"channel"' in seen["body"]
        assert seen["type"] == "application/json"

    async def test_http_error_passes_server_message(self) -> None:
        """A non-2xx status raises with the server's error string."""
        transport = make_transport(lambda request: httpx.Response(400, json={"success": False, "error": "error-room-not-found"}))

        with pytest.raises(APIError, match="error-room-not-found"):
            await transport.call("channels.info", params={"roomName": "nope"})

    async def test_http_error_without_json(self) -> None:
        """Without a JSON body the status reason is reported."""
        transport = make_transport(lambda request: httpx.Response(502, text="<html>bad gateway</html>"))

        with pytest.raises(APIError, match="Request failed: Bad Gateway"):
            await transport.call("me")

    async def test_success_false_is_a_failure(self) -> None:
        """A 200 with success: false is treated like an HTTP failure."""
        transport = make_transport(lambda request: httpx.Response(200, json={"success": False, "error": "not-allowed"}))

        with pytest.raises(APIError, match="not-allowed"):
            await transport.call("users.list")

    async def test_success_false_without_message(self) -> None:
        transport = make_transport(lambda request: httpx.Response(200, json={"success": False}))

        with pytest.raises(APIError, match="Request was not successful"):
            await transport.call("users.list")

    async def test_network_error(self) -> None:
        """Connection problems surface as APIError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = make_transport(handler)

        with pytest.raises(APIError, match="connection refused"):
            await transport.call("me")


class TestUpload:
    """Test multipart uploads."""

    async def test_multipart_body(self) -> None:
        """Files and non-empty form fields are sent as multipart."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["type"] = request.headers.get("Content-Type")
            seen["body"] = request.content
            return httpx.Response(200, json={"success": True, "message": {"file": {"_id": "F1"}}})

        transport = make_transport(handler)
        data = await transport.upload(
            "rooms.upload/R1",
            files={"file": ("notes.txt", b"hello there", "text/plain")},
            data={"msg": "see notes", "tmid": None},
        )

        assert data["message"]["file"]["_id"] == "F1"
        assert seen["url"] == "https://chat.example.com/api/v1/rooms.upload/R1"
        assert seen["type"].startswith("multipart/form-data; boundary=")
        assert b'name="file"; filename="notes.txt"' in seen["body"]
        assert b"hello there" in seen["body"]
        assert b'name="msg"' in seen["body"]
        assert b"see notes" in seen["body"]
        assert b'name="tmid"' not in seen["body"]

    async def test_upload_rejected(self) -> None:
        transport = make_transport(lambda request: httpx.Response(200, json={"success": False}))

        with pytest.raises(APIError, match="Upload was not successful"):
            await transport.upload("rooms.upload/R1", files={"file": ("a.txt", b"x", "text/plain")})

    async def test_upload_error_status(self) -> None:
        transport = make_transport(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(APIError, match="Upload failed: Internal Server Error"):
            await transport.upload("rooms.upload/R1", files={"file": ("a.txt", b"x", "text/plain")})

    async def test_upload_network_error(self) -> None:

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = make_transport(handler)

        with pytest.raises(APIError, match="Upload failed: connection refused"):
            await transport.upload("rooms.upload/R1", files={"file": ("a.txt", b"x", "text/plain")})


class TestStream:
    """Test binary downloads."""

    async def test_stream_outside_api_prefix(self) -> None:
        """Downloads use the file-upload path, not /api/v1."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            return httpx.Response(200, content=b"abc")

        transport = make_transport(handler)
        async with transport.stream("file-upload/F1/a.txt") as response:
            body = await response.aread()

        assert seen["path"] == "/file-upload/F1/a.txt"
        assert body == b"abc"

    async def test_stream_error_status(self) -> None:
        transport = make_transport(lambda request: httpx.Response(404))

        with pytest.raises(DownloadError, match="Not Found"):
            async with transport.stream("file-upload/F1/a.txt"):
                pass
