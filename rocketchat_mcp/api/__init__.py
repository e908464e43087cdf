"""Rocket.Chat REST API access"""
from rocketchat_mcp.api.exceptions import (
    RocketChatException,
    APIError,
    RoomAccessError,
    SearchError,
    DownloadError,
    ValidationError,
)
from rocketchat_mcp.api.models import Credentials, Message, Member, Room, RoomFile, RoomKind, UploadedFile
from rocketchat_mcp.api.resolver import RoomResolver
from rocketchat_mcp.api.rocketchat_client import RocketChatClient
from rocketchat_mcp.api.transport import HttpTransport

__all__ = [
    "RocketChatException",
    "APIError",
    "RoomAccessError",
    "SearchError",
    "DownloadError",
    "ValidationError",
    "Credentials",
    "Message",
    "Member",
    "Room",
    "RoomFile",
    "RoomKind",
    "UploadedFile",
    "RoomResolver",
    "RocketChatClient",
    "HttpTransport",
]
