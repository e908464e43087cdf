"""Tests for message, room and user search."""

import pytest

from rocketchat_mcp.api.exceptions import APIError, SearchError, ValidationError
from rocketchat_mcp.config import LimitsConfig
from rocketchat_mcp.search.engine import SearchService
from rocketchat_mcp.search.options import AdvancedSearchOptions


@pytest.fixture
def service(client) -> SearchService:
    return SearchService(client, LimitsConfig())


@pytest.fixture
def room_history(transport, make_message):
    """Serve three messages from channels.history."""
    transport.routes["channels.history"] = {"messages": [
        make_message("1", "hello world", ts="2024-05-01T10:00:00.000Z"),
        make_message("2", "goodbye", ts="2024-05-01T09:00:00.000Z"),
        make_message("3", "Hello there", ts="2024-05-01T08:00:00.000Z", user_id="u-bob", username="bob"),
    ]}


class TestScopedSearch:
    """Test search inside one room."""

    async def test_case_insensitive_substring(self, service, room_history) -> None:
        results = await service.search("hello", room_id="room-1")

        assert [m.id for m in results] == ["1", "3"]

    async def test_limit_truncates(self, service, room_history) -> None:
        results = await service.search("hello", room_id="room-1", limit=1)

        assert [m.id for m in results] == ["1"]

    async def test_window_is_five_times_limit(self, service, transport, room_history) -> None:
        await service.search("hello", room_id="room-1", limit=10)

        assert transport.calls[0][2]["count"] == 50

    async def test_window_is_capped(self, service, transport, room_history) -> None:
        await service.search("hello", room_id="room-1", limit=100)

        assert transport.calls[0][2]["count"] == 200

    async def test_server_search_fallback(self, service, transport, make_message) -> None:
        """chat.search is used only when history cannot be read."""
        transport.routes["chat.search"] = {"messages": [make_message("9", "hello from search")]}

        results = await service.search("hello", room_id="room-1")

        assert [m.id for m in results] == ["9"]
        assert transport.paths[-1] == "chat.search"
        assert transport.calls[-1][2]["roomId"] == "room-1"

    async def test_both_strategies_fail(self, service, transport) -> None:
        transport.routes["chat.search"] = APIError("Search is disabled")

        with pytest.raises(SearchError) as exc_info:
            await service.search("hello", room_id="room-1")

        message = str(exc_info.value)
        assert "Unable to fetch messages" in message
        assert "Direct search also failed: Search is disabled" in message

    async def test_blank_query_rejected(self, service, transport) -> None:
        with pytest.raises(ValidationError):
            await service.search("   ", room_id="room-1")

        assert transport.calls == []


class TestUnscopedSearch:
    """Test search across all rooms."""

    async def test_uses_server_search(self, service, transport, make_message) -> None:
        transport.routes["chat.search"] = {"messages": [make_message("9", "hello")]}

        results = await service.search("hello")

        assert [m.id for m in results] == ["9"]
        assert transport.paths == ["chat.search"]

    async def test_room_scan_fallback(self, service, transport, make_message) -> None:
        """Without chat.search the first five rooms are scanned."""
        transport.routes["chat.search"] = APIError("Search is disabled")
        transport.routes["rooms.get"] = {"update": [{"_id": f"r{i}", "name": f"room{i}"} for i in range(7)]}
        history = {
            "r0": [make_message("a", "hello old", ts="2024-05-01T08:00:00.000Z")],
            "r2": [make_message("b", "hello new", ts="2024-05-02T08:00:00.000Z")],
            "r6": [make_message("c", "hello unreachable")],
        }

        def answer(params, body):
            if params["roomId"] == "r1":
                raise APIError("no access")
            return {"messages": history.get(params["roomId"], [])}

        transport.routes["channels.history"] = answer

        results = await service.search("hello")

        assert [m.id for m in results] == ["b", "a"]
        scanned = {call[2]["roomId"] for call in transport.calls if call[1].endswith(".history")}
        assert scanned == {"r0", "r1", "r2", "r3", "r4"}

    async def test_room_listing_fails_too(self, service, transport) -> None:
        transport.routes["chat.search"] = APIError("Search is disabled")
        transport.routes["rooms.get"] = APIError("unauthorized")

        with pytest.raises(SearchError, match="Room-based fallback also failed: unauthorized"):
            await service.search("hello")


class TestAdvancedSearch:
    """Test filtered and paged search."""

    async def test_author_filter_and_echo(self, service, room_history) -> None:
        result = await service.advanced_search(query="hello", room_id="room-1", user_id="u-bob")

        assert [m.id for m in result.messages] == ["3"]
        assert result.total == 1
        assert result.filters == {"room_id": "room-1", "user_id": "u-bob"}

    async def test_date_window(self, service, room_history) -> None:
        result = await service.advanced_search(
            query="o", room_id="room-1",
            date_from="2024-05-01T08:30:00Z", date_to="2024-05-01T09:00:00Z",
        )

        assert [m.id for m in result.messages] == ["2"]

    async def test_message_type(self, service, transport, make_message) -> None:
        transport.routes["channels.history"] = {"messages": [
            make_message("1", "ping @bob", mentions=[{"_id": "u-bob", "username": "bob"}]),
            make_message("2", "ping nobody"),
            make_message("3", "ping pinned", pinned=True),
        ]}

        mentions = await service.advanced_search(query="ping", room_id="room-1", message_type="mentions")
        pinned = await service.advanced_search(query="ping", room_id="room-1", message_type="pinned")

        assert [m.id for m in mentions.messages] == ["1"]
        assert mentions.filters["message_type"] == "mentions"
        assert [m.id for m in pinned.messages] == ["3"]

    async def test_sort_ascending(self, service, room_history) -> None:
        result = await service.advanced_search(query="o", room_id="room-1", sort_by="timestamp", sort_order="asc")

        assert [m.id for m in result.messages] == ["3", "2", "1"]

    async def test_relevance_keeps_fetch_order(self, service, transport, make_message) -> None:
        transport.routes["channels.history"] = {"messages": [
            make_message("1", "o", ts="2024-05-01T08:00:00.000Z"),
            make_message("2", "o", ts="2024-05-01T10:00:00.000Z"),
        ]}

        result = await service.advanced_search(query="o", room_id="room-1", sort_by="relevance")

        assert [m.id for m in result.messages] == ["1", "2"]

    async def test_offset_and_count(self, service, room_history) -> None:
        result = await service.advanced_search(query="o", room_id="room-1", count=1, offset=1)

        assert [m.id for m in result.messages] == ["2"]
        assert result.total == 3

    async def test_accepts_options_model(self, service, room_history) -> None:
        options = AdvancedSearchOptions(query="goodbye", room_id="room-1")

        result = await service.advanced_search(options)

        assert result.to_dict()["messages"][0]["_id"] == "2"

    @pytest.mark.parametrize("options", [
        {"query": ""},
        {"query": "x", "count": 0},
        {"query": "x", "count": 201},
        {"query": "x", "message_type": "threads"},
        {"query": "x", "date_from": "yesterday"},
        {"query": "x", "date_from": "2024-05-02T00:00:00Z", "date_to": "2024-05-01T00:00:00Z"},
    ])
    async def test_invalid_options_rejected_before_fetching(self, service, transport, options) -> None:
        with pytest.raises(ValidationError, match="Invalid search options"):
            await service.advanced_search(options)

        assert transport.calls == []


class TestGlobalSearch:
    """Test the combined message, room and user search."""

    async def test_users_failure_keeps_other_sections(self, service, transport, make_message) -> None:
        transport.routes["chat.search"] = {"messages": [make_message("1", "deploy done")]}
        transport.routes["rooms.get"] = {"update": [
            {"_id": "r1", "name": "general", "topic": "Deploy announcements"},
            {"_id": "r2", "name": "random"},
        ]}
        transport.routes["users.list"] = APIError("error-not-allowed")

        result = await service.global_search("deploy")

        assert result["success"] is True
        assert "error" not in result
        assert [m["_id"] for m in result["results"]["messages"]] == ["1"]
        assert [r["_id"] for r in result["results"]["rooms"]] == ["r1"]
        assert result["results"]["users"] == []
        assert result["totals"] == {"messages": 1, "rooms": 1, "users": 0}

    async def test_user_query_is_escaped(self, service, transport) -> None:
        transport.routes["users.list"] = {"users": [{"_id": "u1", "username": "a.b"}]}

        result = await service.global_search("a.b", search_type="users", limit=5)

        assert result["totals"]["users"] == 1
        params = transport.calls[0][2]
        assert params["count"] == 5
        assert r"a\\.b" in params["query"]

    async def test_everything_fails(self, service, transport) -> None:
        result = await service.global_search("deploy", search_type="rooms")

        assert result["success"] is False
        assert result["error"] == "All searches failed: rooms"

    async def test_invalid_type(self, service) -> None:
        with pytest.raises(ValidationError):
            await service.global_search("deploy", search_type="files")

    @pytest.mark.parametrize("limit", [0, -1])
    async def test_non_positive_limit(self, service, transport, limit) -> None:
        with pytest.raises(ValidationError, match="limit must be positive"):
            await service.global_search("deploy", limit=limit)

        assert transport.calls == []
