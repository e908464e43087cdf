"""Room endpoint resolution.

Rocket.Chat keeps public channels, private groups and direct conversations
under separate endpoint families (``channels.*``, ``groups.*``, ``dm.*``), and
callers usually only hold a room id. Every room-scoped operation is therefore
expressed as an ordered list of candidate calls; the first one that succeeds
wins and later candidates are never sent, so mutating calls such as kick or
invite run exactly once. When all candidates fail the caller gets a single
``RoomAccessError`` naming the operation, never the individual server errors.
"""
import json
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from rocketchat_mcp.api.exceptions import RocketChatException, RoomAccessError, ValidationError
from rocketchat_mcp.api.models import Member, Message, Room, RoomFile, RoomKind
from rocketchat_mcp.api.transport import HttpTransport

logger = logging.getLogger(__name__)

Thunk = Callable[[], Awaitable[Dict[str, Any]]]
Candidate = Tuple[str, Thunk]

ALL_KINDS = (RoomKind.CHANNEL, RoomKind.GROUP, RoomKind.DIRECT)
SHARED_KINDS = (RoomKind.CHANNEL, RoomKind.GROUP)

# list endpoint and the response field holding the rooms
ROOM_LISTINGS = {
    None: ("rooms.get", "update"),
    "public": ("channels.list", "channels"),
    "private": ("groups.list", "groups"),
    "direct": ("im.list", "ims"),
}

# references longer than this without spaces are tried as ids first
ROOM_ID_MIN_LENGTH = 15


def to_iso(value: Union[str, datetime, None]) -> Optional[str]:
    """Render a datetime the way the history endpoints expect it"""
    if value is None or isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RoomResolver:
    """Resolve room operations across the channel/group/direct endpoint families"""

    def __init__(self, transport: HttpTransport):
        self.transport = transport

    async def resolve(self, operation: str, candidates: Sequence[Candidate]) -> Dict[str, Any]:
        """Run candidates in order and return the first successful response.

        Args:
            operation: Human-readable operation name used in the final error
            candidates: ``(label, thunk)`` pairs; each thunk issues one request

        Raises:
            RoomAccessError: If every candidate failed
        """
        for label, attempt in candidates:
            try:
                result = await attempt()
            except RocketChatException as e:
                logger.debug(f"{operation}: {label} did not apply: {e}")
                continue
            logger.debug(f"{operation}: resolved via {label}")
            return result

        raise RoomAccessError(f"Unable to {operation} - room not found or no access")

    def _candidates(self, action: str, kinds: Sequence[RoomKind], method: str = "GET",
                    params: Optional[Dict[str, Any]] = None,
                    body: Optional[Dict[str, Any]] = None) -> List[Candidate]:
        candidates = []
        for kind in kinds:
            path = f"{kind.endpoint_prefix}.{action}"
            candidates.append((path, partial(self.transport.call, path, method=method, params=params, json=body)))
        return candidates

    async def get_history(self, room_id: str, count: int = 20,
                          latest: Union[str, datetime, None] = None,
                          oldest: Union[str, datetime, None] = None) -> List[Message]:
        """Fetch recent messages, newest first"""
        params = {"roomId": room_id, "count": count, "latest": to_iso(latest), "oldest": to_iso(oldest)}
        data = await self.resolve("fetch messages", self._candidates("history", ALL_KINDS, params=params))
        return [Message.from_api(m) for m in data.get("messages", [])]

    async def get_members(self, room_id: str, offset: int = 0, count: int = 50) -> List[Member]:
        params = {"roomId": room_id, "offset": offset, "count": count}
        data = await self.resolve("fetch members", self._candidates("members", SHARED_KINDS, params=params))
        return [Member.from_api(m) for m in data.get("members", [])]

    async def get_files(self, room_id: str, offset: int = 0, count: int = 50,
                        sort: Optional[Dict[str, int]] = None) -> List[RoomFile]:
        params = {
            "roomId": room_id,
            "offset": offset,
            "count": count,
            "sort": json.dumps(sort) if sort else None,
        }
        data = await self.resolve("get files", self._candidates("files", ALL_KINDS, params=params))
        return [RoomFile.from_api(f) for f in data.get("files", [])]

    async def get_counters(self, room_id: str) -> Dict[str, Any]:
        return await self.resolve(
            "get counters", self._candidates("counters", ALL_KINDS, params={"roomId": room_id})
        )

    async def invite_user(self, room_id: str, user_id: str) -> Dict[str, Any]:
        body = {"roomId": room_id, "userId": user_id}
        return await self.resolve("invite user", self._candidates("invite", SHARED_KINDS, "POST", body=body))

    async def remove_user(self, room_id: str, user_id: str) -> Dict[str, Any]:
        body = {"roomId": room_id, "userId": user_id}
        return await self.resolve("remove user", self._candidates("kick", SHARED_KINDS, "POST", body=body))

    async def set_announcement(self, room_id: str, announcement: str) -> Dict[str, Any]:
        body = {"roomId": room_id, "announcement": announcement}
        return await self.resolve(
            "set announcement", self._candidates("setAnnouncement", SHARED_KINDS, "POST", body=body)
        )

    async def set_description(self, room_id: str, description: str) -> Dict[str, Any]:
        body = {"roomId": room_id, "description": description}
        return await self.resolve(
            "set description", self._candidates("setDescription", SHARED_KINDS, "POST", body=body)
        )

    async def list_rooms(self, kind: Optional[str] = None) -> List[Room]:
        """List rooms visible to the caller, optionally restricted to one kind"""
        if kind not in ROOM_LISTINGS:
            raise ValidationError(f"Unknown room type '{kind}' (expected public, private or direct)")
        path, field_name = ROOM_LISTINGS[kind]
        data = await self.transport.call(path)
        return [Room.from_api(r) for r in data.get(field_name) or []]

    async def get_room_info(self, room_ref: str) -> Room:
        """Look a room up by id or name.

        Id-shaped references (no spaces, longer than 15 characters) are tried
        against the id lookups first. Name lookups follow, and the full room
        list is scanned for an exact ``name``/``fname`` match as a last resort.
        """
        name = room_ref[1:] if room_ref.startswith("#") else room_ref

        candidates: List[Candidate] = []
        if len(name) > ROOM_ID_MIN_LENGTH and " " not in name:
            for path in ("channels.info", "groups.info", "rooms.info"):
                candidates.append((f"{path}?roomId", partial(self.transport.call, path, params={"roomId": name})))
        for path in ("channels.info", "groups.info"):
            candidates.append((f"{path}?roomName", partial(self.transport.call, path, params={"roomName": name})))
        candidates.append(("rooms.get", partial(self._find_in_room_list, name)))

        data = await self.resolve(f"fetch room info for '{room_ref}'", candidates)
        return Room.from_api(data.get("channel") or data.get("group") or data.get("room") or {})

    async def _find_in_room_list(self, name: str) -> Dict[str, Any]:
        for room in await self.list_rooms():
            if room.matches_name(name):
                return {"room": room.raw}
        raise RoomAccessError(f"No room named '{name}' in room list")
