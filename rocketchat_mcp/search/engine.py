"""Message, room and user search.

Server-side full-text search (``chat.search``) is often disabled by
administrators, so searching inside a room is done locally: a bounded window
of recent history is fetched through the room resolver and filtered here.
The server endpoint is only used when that path fails, or when no room is
given and there is nothing local to filter.
"""
import json
import logging
import re
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from rocketchat_mcp.api.exceptions import RocketChatException, SearchError, ValidationError
from rocketchat_mcp.api.models import Message, SearchResultSet
from rocketchat_mcp.api.rocketchat_client import RocketChatClient
from rocketchat_mcp.config import LimitsConfig
from rocketchat_mcp.search.options import AdvancedSearchOptions

logger = logging.getLogger(__name__)

SEARCH_TYPES = ('messages', 'rooms', 'users', 'all')
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

MESSAGE_TYPE_FILTERS = {
    'mentions': lambda m: len(m.mentions) > 0,
    'starred': lambda m: m.starred,
    'pinned': lambda m: m.pinned,
}


def filter_by_text(messages: List[Message], query: str) -> List[Message]:
    """Keep messages whose text contains ``query``, ignoring case"""
    needle = query.lower()
    return [m for m in messages if m.text and needle in m.text.lower()]


def sort_by_timestamp(messages: List[Message], descending: bool = True) -> List[Message]:
    return sorted(messages, key=lambda m: m.timestamp or _OLDEST, reverse=descending)


class SearchService:
    """Search built on the room resolver's history primitive"""

    def __init__(self, client: RocketChatClient, limits: Optional[LimitsConfig] = None):
        self.client = client
        self.limits = limits or LimitsConfig()

    async def search(self, query: str, room_id: Optional[str] = None, limit: int = 20) -> List[Message]:
        """Find messages containing ``query``.

        Args:
            query: Case-insensitive substring to look for
            room_id: Restrict to one room; without it all accessible rooms are searched
            limit: Maximum number of messages returned

        Raises:
            SearchError: If both the local and the server-side strategy failed
        """
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        if limit < 1:
            raise ValidationError(f"Search limit must be positive, got {limit}")

        if room_id:
            window = min(limit * 5, self.limits.search_window_max)
            return (await self._search_room(query, room_id, window))[:limit]
        return await self._search_everywhere(query, limit)

    async def _search_room(self, query: str, room_id: str, window: int) -> List[Message]:
        try:
            messages = await self.client.resolver.get_history(room_id, window)
            return filter_by_text(messages, query)
        except RocketChatException as local_error:
            logger.debug(f"Local search in {room_id} failed ({local_error}), trying chat.search")
            try:
                return await self._server_search(query, window, room_id)
            except RocketChatException as search_error:
                raise SearchError(
                    f"Search failed: {local_error}. Direct search also failed: {search_error}"
                ) from search_error

    async def _search_everywhere(self, query: str, limit: int) -> List[Message]:
        try:
            return await self._server_search(query, limit)
        except RocketChatException as search_error:
            logger.warning(f"Global search failed ({search_error}), searching accessible rooms")
            try:
                rooms = await self.client.list_rooms()
            except RocketChatException as fallback_error:
                raise SearchError(
                    f"Search failed: {search_error}. Room-based fallback also failed: {fallback_error}"
                ) from fallback_error

        per_room = max(20, limit // 5)
        found: List[Message] = []
        for room in rooms[:self.limits.search_fallback_rooms]:
            try:
                messages = await self.client.resolver.get_history(room.id, per_room)
            except RocketChatException as e:
                logger.debug(f"Skipping room {room.id}: {e}")
                continue
            found.extend(filter_by_text(messages, query))
            if len(found) >= limit:
                break

        return sort_by_timestamp(found)[:limit]

    async def _server_search(self, query: str, count: int, room_id: Optional[str] = None) -> List[Message]:
        params = {"roomId": room_id, "searchText": query, "count": count}
        data = await self.client.transport.call("chat.search", params=params)
        return [Message.from_api(m) for m in data.get("messages", [])]

    async def advanced_search(self, options: Union[AdvancedSearchOptions, Dict[str, Any], None] = None,
                              **kwargs: Any) -> SearchResultSet:
        """Search with author, date, type and ordering filters.

        Options may be given as an ``AdvancedSearchOptions``, a dict or
        keyword arguments. Filters run in a fixed order on the local matches:
        author, date_from, date_to, message type; then the optional sort and
        the ``offset``/``count`` window.
        """
        try:
            if isinstance(options, AdvancedSearchOptions):
                opts = options
            else:
                opts = AdvancedSearchOptions(**{**(options or {}), **kwargs})
        except PydanticValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}" for err in e.errors()
            )
            raise ValidationError(f"Invalid search options: {details}") from e

        window = min((opts.count + opts.offset) * 5, self.limits.search_window_max)
        if opts.room_id:
            messages = await self._search_room(opts.query, opts.room_id, window)
        else:
            messages = await self._search_everywhere(opts.query, window)

        if opts.user_id:
            messages = [m for m in messages if m.author_id == opts.user_id]

        date_from = opts.from_datetime
        if date_from:
            messages = [m for m in messages if m.timestamp and m.timestamp >= date_from]

        date_to = opts.to_datetime
        if date_to:
            messages = [m for m in messages if m.timestamp and m.timestamp <= date_to]

        if opts.message_type in MESSAGE_TYPE_FILTERS:
            messages = [m for m in messages if MESSAGE_TYPE_FILTERS[opts.message_type](m)]

        if opts.sort_by == 'timestamp':
            messages = sort_by_timestamp(messages, descending=opts.sort_order == 'desc')
        elif opts.sort_by == 'relevance':
            logger.debug("Relevance ranking is not available, keeping fetch order")

        page = messages[opts.offset:opts.offset + opts.count]
        return SearchResultSet(
            query=opts.query,
            messages=page,
            total=len(messages),
            filters=opts.applied_filters(),
        )

    async def global_search(self, query: str, search_type: str = 'all',
                            limit: Optional[int] = None) -> Dict[str, Any]:
        """Search messages, rooms and users independently.

        A failing category comes back empty with a total of 0 and does not
        stop the others. ``success`` is only false when every requested
        category failed.
        """
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        if search_type not in SEARCH_TYPES:
            raise ValidationError(f"Invalid search type '{search_type}' (expected one of {', '.join(SEARCH_TYPES)})")
        if limit is not None and limit < 1:
            raise ValidationError(f"Search limit must be positive, got {limit}")

        sections = []
        if search_type in ('messages', 'all'):
            sections.append(('messages', partial(self._find_messages, query, limit or 50)))
        if search_type in ('rooms', 'all'):
            sections.append(('rooms', partial(self._find_rooms, query, limit or 20)))
        if search_type in ('users', 'all'):
            sections.append(('users', partial(self._find_users, query, limit or 20)))

        results: Dict[str, List[Dict[str, Any]]] = {'messages': [], 'rooms': [], 'users': []}
        totals = {'messages': 0, 'rooms': 0, 'users': 0}
        failed = []

        for name, run in sections:
            try:
                found = await run()
            except RocketChatException as e:
                if name == 'users':
                    logger.warning(f"User search failed (may require admin privileges): {e}")
                else:
                    logger.warning(f"Global {name} search failed: {e}")
                failed.append(name)
                continue
            results[name] = found
            totals[name] = len(found)

        response = {
            'success': len(failed) < len(sections),
            'query': query,
            'results': results,
            'totals': totals,
        }
        if failed == [name for name, _ in sections]:
            response['error'] = f"All searches failed: {', '.join(failed)}"
        return response

    async def _find_messages(self, query: str, limit: int) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in await self.search(query, limit=limit)]

    async def _find_rooms(self, query: str, limit: int) -> List[Dict[str, Any]]:
        needle = query.lower()
        matches = []
        for room in await self.client.list_rooms():
            fields = (room.name, room.topic, room.description)
            if any(f and needle in f.lower() for f in fields):
                matches.append(room.to_dict())
        return matches[:limit]

    async def _find_users(self, query: str, limit: int) -> List[Dict[str, Any]]:
        selector = json.dumps({"name": {"$regex": re.escape(query), "$options": "i"}})
        data = await self.client.transport.call("users.list", params={"query": selector, "count": limit})
        return data.get("users", [])
