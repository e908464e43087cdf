"""Rocket.Chat API Client"""
import base64
import logging
import mimetypes
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional, Union
from urllib.parse import quote

from rocketchat_mcp.api.exceptions import APIError, DownloadError, RocketChatException, ValidationError
from rocketchat_mcp.api.models import Credentials, Member, Message, Room, RoomFile, UploadedFile
from rocketchat_mcp.api.resolver import RoomResolver
from rocketchat_mcp.api.transport import HttpTransport

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024  # 100 MB
USER_STATUSES = ("online", "away", "busy", "offline")
THREAD_LIST_TYPES = ("all", "unread", "following")
WEBHOOK_TYPES = ("webhook-incoming", "webhook-outgoing")


def _sanitize_filename(filename: str) -> str:
    """Make a server-side file name safe for the local file system"""
    sanitized = re.sub(r'[<>:"/\\|?*\x00-\x1f]', '_', filename).strip('. ')
    return sanitized or "download"


class RocketChatClient:
    """Rocket.Chat REST API Client.

    Room-scoped reads and membership changes go through ``RoomResolver`` so
    callers never need to know whether a room is a channel, a private group or
    a direct conversation. Everything else maps to a single endpoint.
    """

    def __init__(self, credentials: Credentials, timeout: float = 30,
                 verify_ssl: bool = True, transport: Optional[HttpTransport] = None):
        """Initialize Rocket.Chat client"""
        self.credentials = credentials
        self.transport = transport or HttpTransport(credentials, timeout=timeout, verify_ssl=verify_ssl)
        self.resolver = RoomResolver(self.transport)
        logger.debug(f"Rocket.Chat client for {credentials.base_url}")

    async def __aenter__(self) -> "RocketChatClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.aclose()

    # --- Connection and server ---

    async def test_connection(self) -> Dict[str, Any]:
        """Check the token pair against ``/me``"""
        try:
            user = await self.transport.call("me")
            logger.info(f"✓ Connected as {user.get('username')}")
            return {"success": True, "user": user}
        except RocketChatException as e:
            logger.error(f"✗ Connection failed: {e}")
            return {"success": False, "error": str(e) or "Connection failed"}

    async def get_server_info(self) -> Dict[str, Any]:
        return await self.transport.call("info")

    async def get_statistics(self) -> Dict[str, Any]:
        return await self.transport.call("statistics")

    # --- Messages ---

    async def send_message(self, channel: str, text: str, thread_id: Optional[str] = None) -> Dict[str, Any]:
        """Send a message to ``#channel``, ``@user`` or a room id"""
        body = {"channel": channel, "text": text}
        if thread_id:
            body["tmid"] = thread_id
        return await self.transport.call("chat.postMessage", method="POST", json=body)

    async def get_messages(self, room_id: str, count: int = 20,
                           latest: Union[str, datetime, None] = None,
                           oldest: Union[str, datetime, None] = None) -> List[Message]:
        return await self.resolver.get_history(room_id, count, latest, oldest)

    async def get_recent_messages(self, room_id: str, count: int = 20, days_back: int = 30) -> List[Message]:
        """Get messages from the last ``days_back`` days"""
        now = datetime.now(timezone.utc)
        return await self.resolver.get_history(room_id, count, latest=now, oldest=now - timedelta(days=days_back))

    async def update_message(self, room_id: str, message_id: str, text: str) -> Dict[str, Any]:
        return await self.transport.call(
            "chat.update", method="POST", json={"roomId": room_id, "msgId": message_id, "text": text}
        )

    async def delete_message(self, room_id: str, message_id: str) -> Dict[str, Any]:
        return await self.transport.call(
            "chat.delete", method="POST", json={"roomId": room_id, "msgId": message_id}
        )

    async def react_to_message(self, message_id: str, emoji: str, should_react: bool = True) -> Dict[str, Any]:
        return await self.transport.call(
            "chat.react", method="POST",
            json={"messageId": message_id, "emoji": emoji, "shouldReact": should_react},
        )

    async def pin_message(self, message_id: str) -> Dict[str, Any]:
        return await self.transport.call("chat.pinMessage", method="POST", json={"messageId": message_id})

    async def unpin_message(self, message_id: str) -> Dict[str, Any]:
        return await self.transport.call("chat.unPinMessage", method="POST", json={"messageId": message_id})

    async def _message_list(self, path: str, params: Dict[str, Any]) -> List[Message]:
        data = await self.transport.call(path, params=params)
        return [Message.from_api(m) for m in data.get("messages", [])]

    async def get_starred_messages(self, room_id: str, count: int = 20) -> List[Message]:
        return await self._message_list("chat.getStarredMessages", {"roomId": room_id, "count": count})

    async def get_pinned_messages(self, room_id: str, count: int = 20) -> List[Message]:
        return await self._message_list("chat.getPinnedMessages", {"roomId": room_id, "count": count})

    async def get_mentioned_messages(self, room_id: str, count: int = 20) -> List[Message]:
        return await self._message_list("chat.getMentionedMessages", {"roomId": room_id, "count": count})

    # --- Threads ---

    async def get_thread_messages(self, thread_id: str, count: int = 50) -> List[Message]:
        return await self._message_list("chat.getThreadMessages", {"tmid": thread_id, "count": count})

    async def get_threads_list(self, room_id: str, type: str = "all", count: int = 50) -> List[Message]:
        if type not in THREAD_LIST_TYPES:
            raise ValidationError(f"Invalid thread list type '{type}'")
        data = await self.transport.call("chat.getThreadsList", params={"rid": room_id, "type": type, "count": count})
        return [Message.from_api(t) for t in data.get("threads", [])]

    async def follow_message(self, message_id: str) -> Dict[str, Any]:
        return await self.transport.call("chat.followMessage", method="POST", json={"mid": message_id})

    async def unfollow_message(self, message_id: str) -> Dict[str, Any]:
        return await self.transport.call("chat.unfollowMessage", method="POST", json={"mid": message_id})

    # --- Rooms ---

    async def list_rooms(self, kind: Optional[str] = None) -> List[Room]:
        return await self.resolver.list_rooms(kind)

    async def get_room_info(self, room_ref: str) -> Room:
        return await self.resolver.get_room_info(room_ref)

    async def create_channel(self, name: str, members: Optional[List[str]] = None,
                             read_only: Optional[bool] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"name": name}
        if members:
            body["members"] = members
        if read_only is not None:
            body["readOnly"] = read_only
        return await self.transport.call("channels.create", method="POST", json=body)

    async def join_channel(self, room_id: str) -> Dict[str, Any]:
        return await self.transport.call("channels.join", method="POST", json={"roomId": room_id})

    async def leave_channel(self, room_id: str) -> Dict[str, Any]:
        return await self.transport.call("channels.leave", method="POST", json={"roomId": room_id})

    async def set_topic(self, room_id: str, topic: str) -> Dict[str, Any]:
        return await self.transport.call("channels.setTopic", method="POST", json={"roomId": room_id, "topic": topic})

    async def get_channel_members(self, room_id: str, offset: int = 0, count: int = 50) -> List[Member]:
        return await self.resolver.get_members(room_id, offset, count)

    async def invite_to_channel(self, room_id: str, user_id: str) -> Dict[str, Any]:
        return await self.resolver.invite_user(room_id, user_id)

    async def remove_from_channel(self, room_id: str, user_id: str) -> Dict[str, Any]:
        return await self.resolver.remove_user(room_id, user_id)

    async def set_channel_announcement(self, room_id: str, announcement: str) -> Dict[str, Any]:
        return await self.resolver.set_announcement(room_id, announcement)

    async def set_channel_description(self, room_id: str, description: str) -> Dict[str, Any]:
        return await self.resolver.set_description(room_id, description)

    async def get_room_counters(self, room_id: str) -> Dict[str, Any]:
        return await self.resolver.get_counters(room_id)

    async def get_room_files(self, room_id: str, offset: int = 0, count: int = 50,
                             sort: Optional[Dict[str, int]] = None) -> List[RoomFile]:
        return await self.resolver.get_files(room_id, offset, count, sort)

    # --- Users ---

    async def get_user_info(self, username: Optional[str] = None, user_id: Optional[str] = None) -> Dict[str, Any]:
        if not username and not user_id:
            raise ValidationError("Either username or user_id is required")
        params = {"userId": user_id} if user_id else {"username": username}
        data = await self.transport.call("users.info", params=params)
        return data.get("user", {})

    async def get_user_presence(self, user_id: str) -> Dict[str, Any]:
        data = await self.transport.call("users.getPresence", params={"userId": user_id})
        return {"presence": data.get("presence"), "connectionStatus": data.get("connectionStatus")}

    async def set_user_status(self, status: str, message: Optional[str] = None) -> Dict[str, Any]:
        if status not in USER_STATUSES:
            raise ValidationError(f"Invalid status '{status}' (expected one of {', '.join(USER_STATUSES)})")
        body = {"status": status}
        if message:
            body["message"] = message
        return await self.transport.call("users.setStatus", method="POST", json=body)

    # --- Integrations ---

    async def create_webhook(self, type: str, name: str, **options: Any) -> Dict[str, Any]:
        """Create an incoming or outgoing webhook integration.

        Extra keyword options (``channel``, ``username``, ``urls``,
        ``trigger_words``, ...) are sent in the server's camelCase form.
        """
        if type not in WEBHOOK_TYPES:
            raise ValidationError(f"Invalid webhook type '{type}'")
        body: Dict[str, Any] = {"type": type, "name": name, "enabled": options.pop("enabled", True)}
        for key, value in options.items():
            if value is None:
                continue
            head, *rest = key.split("_")
            body[head + "".join(part.title() for part in rest)] = value
        return await self.transport.call("integrations.create", method="POST", json=body)

    async def list_integrations(self, offset: int = 0, count: int = 50) -> List[Dict[str, Any]]:
        data = await self.transport.call("integrations.list", params={"offset": offset, "count": count})
        return data.get("integrations", [])

    async def delete_integration(self, type: str, integration_id: str) -> Dict[str, Any]:
        if type not in WEBHOOK_TYPES:
            raise ValidationError(f"Invalid webhook type '{type}'")
        return await self.transport.call(
            "integrations.remove", method="DELETE", json={"type": type, "integrationId": integration_id}
        )

    # --- Files ---

    @staticmethod
    def validate_file(file_path: Union[str, Path, None], allowed_types: Optional[List[str]] = None,
                      max_size: Optional[int] = None) -> Dict[str, Any]:
        """Check that a local file exists, has a known type and fits the size limit"""
        if not file_path:
            raise ValidationError("File path is required")
        path = Path(file_path)
        if not path.is_file():
            raise ValidationError(f"File not found: {file_path}")

        mime_type, _ = mimetypes.guess_type(path.name)
        if not mime_type:
            raise ValidationError("Unable to determine file type")
        if allowed_types and mime_type not in allowed_types:
            raise ValidationError(
                f"File type {mime_type} not allowed. Allowed types: {', '.join(allowed_types)}"
            )

        size = path.stat().st_size
        limit = max_size or DEFAULT_MAX_UPLOAD_BYTES
        if size > limit:
            raise ValidationError(f"File size ({size} bytes) exceeds maximum of {limit} bytes")

        return {"valid": True, "size": size, "mime_type": mime_type, "file_name": path.name}

    async def upload_file(self, room_id: str, file_path: Union[str, Path, None],
                          description: Optional[str] = None,
                          thread_id: Optional[str] = None) -> UploadedFile:
        """Upload a local file to a room"""
        if not file_path:
            raise ValidationError("File path is required")
        path = Path(file_path)
        if not path.is_file():
            raise ValidationError(f"File not found: {file_path}")

        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        data = {"msg": description, "description": description, "tmid": thread_id}

        with path.open("rb") as fh:
            result = await self.transport.upload(
                f"rooms.upload/{room_id}",
                files={"file": (path.name, fh, mime_type)},
                data=data,
            )

        message = result.get("message") or {}
        file_info = message.get("file") or {}
        if not file_info.get("_id"):
            raise APIError("Upload response did not include a file reference")

        name = file_info.get("name") or path.name
        uploaded = UploadedFile(
            id=file_info["_id"],
            name=name,
            mime_type=file_info.get("type") or mime_type,
            size=int(file_info.get("size") or path.stat().st_size),
            url=f"/file-upload/{file_info['_id']}/{name}",
        )
        logger.info(f"✓ Uploaded {uploaded.name} ({uploaded.size} bytes) to {room_id}")
        return uploaded

    async def download_file(self, file_id: str, file_name: str,
                            save_path: Union[str, Path, None] = None) -> Dict[str, Any]:
        """Download a file by id and name.

        Args:
            file_id: Server file id
            file_name: Original file name; the download URL is keyed by both
            save_path: Target file or directory. Without it the content is
                returned base64-encoded.

        Returns:
            ``{success, size, path}`` or ``{success, size, data, mime_type}``
        """
        if not file_id or not file_name:
            raise ValidationError("Downloading a file requires both file id and file name")

        path = f"file-upload/{quote(file_id, safe='')}/{quote(file_name, safe='')}"
        async with self.transport.stream(path) as response:
            mime_type = response.headers.get("content-type", "application/octet-stream")

            if save_path:
                target = Path(save_path)
                if target.is_dir():
                    target = target / _sanitize_filename(file_name)
                target.parent.mkdir(parents=True, exist_ok=True)
                part_path = target.with_name(target.name + ".part")
                size = 0
                try:
                    with part_path.open("wb") as fh:
                        async for chunk in response.aiter_bytes():
                            fh.write(chunk)
                            size += len(chunk)
                    part_path.replace(target)
                except OSError as e:
                    part_path.unlink(missing_ok=True)
                    raise DownloadError(f"Could not write {target}: {e}") from e
                except BaseException:
                    # incomplete bodies never reach the target path
                    part_path.unlink(missing_ok=True)
                    raise
                logger.info(f"✓ Downloaded {file_name} ({size} bytes) to {target}")
                return {"success": True, "path": str(target), "size": size}

            content = await response.aread()

        return {
            "success": True,
            "data": base64.b64encode(content).decode("ascii"),
            "size": len(content),
            "mime_type": mime_type,
        }

    async def delete_file(self, file_id: str) -> Dict[str, Any]:
        return await self.transport.call("rooms.deleteFile", method="POST", json={"fileId": file_id})

    async def send_message_with_attachment(self, channel: str, text: str, file_path: Union[str, Path],
                                           thread_id: Optional[str] = None) -> Dict[str, Any]:
        """Resolve the room, then upload the file with ``text`` as its message"""
        self.validate_file(file_path)
        room = await self.get_room_info(channel)
        uploaded = await self.upload_file(room.id, file_path, text, thread_id)
        return {"success": True, "room_id": room.id, "file": uploaded.to_dict()}
