"""Data models for the Rocket.Chat API."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

SYSTEM_USERNAME = "rocket.cat"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a server timestamp into an aware UTC datetime.

    Accepts ISO strings (with or without a trailing ``Z``), the
    ``{"$date": <ms>}`` form used by the realtime API, epoch milliseconds
    and datetimes. Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        value = value.get("$date")
        if value is None:
            return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class RoomKind(str, Enum):
    """Room families, keyed by the server's room type letter"""
    CHANNEL = "c"
    GROUP = "p"
    DIRECT = "d"

    @property
    def endpoint_prefix(self) -> str:
        return {"c": "channels", "p": "groups", "d": "dm"}[self.value]

    @property
    def label(self) -> str:
        return {"c": "public-channel", "p": "private-group", "d": "direct-message"}[self.value]


@dataclass(frozen=True)
class Credentials:
    """Server URL plus the static token pair sent with every request"""
    base_url: str
    user_id: str
    auth_token: str

    def __post_init__(self):
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))


@dataclass
class Message:
    """Chat message as delivered by the server"""
    id: str
    room_id: str = ""
    author_id: Optional[str] = None
    author_username: Optional[str] = None
    author_name: Optional[str] = None
    text: str = ""
    timestamp: Optional[datetime] = None
    file: Optional[Dict[str, Any]] = None
    thread_id: Optional[str] = None
    reactions: Dict[str, Any] = field(default_factory=dict)
    mentions: List[Dict[str, Any]] = field(default_factory=list)
    pinned: bool = False
    starred: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Message":
        author = data.get("u") or {}
        return cls(
            id=str(data.get("_id", "")),
            room_id=str(data.get("rid", "")),
            author_id=author.get("_id"),
            author_username=author.get("username"),
            author_name=author.get("name"),
            text=data.get("msg") or "",
            timestamp=parse_timestamp(data.get("ts")),
            file=data.get("file") or None,
            thread_id=data.get("tmid"),
            reactions=data.get("reactions") or {},
            mentions=data.get("mentions") or [],
            pinned=bool(data.get("pinned")),
            # starred is a list of user refs on the wire
            starred=bool(data.get("starred")),
            raw=data,
        )

    @property
    def is_system(self) -> bool:
        return self.author_username == SYSTEM_USERNAME

    def to_dict(self) -> Dict[str, Any]:
        return self.raw or {
            "_id": self.id,
            "rid": self.room_id,
            "msg": self.text,
            "ts": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class Room:
    """Channel, private group or direct conversation"""
    id: str
    name: Optional[str] = None
    display_name: Optional[str] = None
    kind: Optional[RoomKind] = None
    topic: Optional[str] = None
    description: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Room":
        kind = data.get("t")
        return cls(
            id=str(data.get("_id", "")),
            name=data.get("name"),
            display_name=data.get("fname"),
            kind=RoomKind(kind) if kind in ("c", "p", "d") else None,
            topic=data.get("topic"),
            description=data.get("description"),
            raw=data,
        )

    def matches_name(self, name: str) -> bool:
        return self.name == name or self.display_name == name

    def to_dict(self) -> Dict[str, Any]:
        return self.raw or {"_id": self.id, "name": self.name}


@dataclass
class Member:
    """Room member with presence and roles"""
    id: str
    username: Optional[str] = None
    name: Optional[str] = None
    status: str = "offline"
    roles: List[str] = field(default_factory=list)
    joined_at: Optional[datetime] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Member":
        return cls(
            id=str(data.get("_id", "")),
            username=data.get("username"),
            name=data.get("name"),
            status=data.get("status") or "offline",
            roles=list(data.get("roles") or []),
            joined_at=parse_timestamp(data.get("joinedAt")),
            raw=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.raw or {"_id": self.id, "username": self.username}


@dataclass
class RoomFile:
    """File attached to a room, as listed by the files endpoints"""
    id: str
    name: str = ""
    mime_type: str = ""
    size: int = 0
    user_id: Optional[str] = None
    url: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RoomFile":
        return cls(
            id=str(data.get("_id", "")),
            name=data.get("name") or "",
            mime_type=data.get("type") or "",
            size=int(data.get("size") or 0),
            user_id=data.get("userId") or (data.get("user") or {}).get("_id"),
            url=data.get("url") or data.get("path"),
            raw=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.raw or {"_id": self.id, "name": self.name, "type": self.mime_type, "size": self.size}


@dataclass
class UploadedFile:
    """Reference returned by an upload; download needs both id and name"""
    id: str
    name: str
    mime_type: str
    size: int
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "mime_type": self.mime_type,
            "size": self.size,
            "url": self.url,
        }


@dataclass
class SearchResultSet:
    """Outcome of an advanced search"""
    query: str
    messages: List[Message] = field(default_factory=list)
    total: int = 0
    filters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "query": self.query,
            "messages": [m.to_dict() for m in self.messages],
            "total": self.total,
            "filters": self.filters,
        }
