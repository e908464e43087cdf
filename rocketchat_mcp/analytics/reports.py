"""Room analytics and user activity reports"""
import logging
from datetime import tzinfo
from functools import partial
from typing import Any, Dict, List, Optional

from rocketchat_mcp.analytics.aggregator import (
    Bound,
    analyze_files,
    analyze_members,
    analyze_messages,
    filter_window,
    parse_bound,
)
from rocketchat_mcp.api.exceptions import RocketChatException, ValidationError
from rocketchat_mcp.api.models import Room
from rocketchat_mcp.api.rocketchat_client import RocketChatClient
from rocketchat_mcp.config import LimitsConfig

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Compose fetches and aggregations into per-room and per-user reports.

    Every section of a report is fetched on its own; a failing section is
    logged and left out instead of failing the whole report.
    """

    def __init__(self, client: RocketChatClient, limits: Optional[LimitsConfig] = None):
        self.client = client
        self.limits = limits or LimitsConfig()

    async def get_server_statistics(self) -> Dict[str, Any]:
        try:
            statistics = await self.client.get_statistics()
        except RocketChatException as e:
            logger.warning(f"Server statistics unavailable: {e}")
            return {'success': False, 'error': str(e)}
        statistics.pop('success', None)
        return {'success': True, 'statistics': statistics}

    async def get_room_analytics(self, room_id: str, date_from: Bound = None, date_to: Bound = None,
                                 include_messages: bool = True, include_files: bool = False,
                                 include_members: bool = False,
                                 tz: Optional[tzinfo] = None) -> Dict[str, Any]:
        """Build a room report from counters plus optional message, file and member sections.

        Returns:
            ``{success, room_id, period, metrics}`` where ``metrics`` only holds
            the sections that could be fetched, or ``{success: False, error,
            room_id}`` when none could
        """
        if not room_id:
            raise ValidationError("Room id is required")
        parse_bound(date_from, 'date_from')
        parse_bound(date_to, 'date_to')

        sample = self.limits.analytics_sample_size
        sections = [('counters', partial(self._counters, room_id))]
        if include_messages:
            sections.append(('messages', partial(self._messages, room_id, sample, date_from, date_to, tz)))
        if include_files:
            sections.append(('files', partial(self._files, room_id, sample)))
        if include_members:
            sections.append(('members', partial(self._members, room_id, sample)))

        metrics: Dict[str, Any] = {}
        for name, run in sections:
            try:
                metrics[name] = await run()
            except RocketChatException as e:
                logger.warning(f"Room analytics for {room_id}: {name} unavailable: {e}")

        if not metrics:
            return {
                'success': False,
                'error': f"Unable to retrieve analytics for room {room_id} - room not found or no access",
                'room_id': room_id,
            }

        return {
            'success': True,
            'room_id': room_id,
            'period': {'from': date_from, 'to': date_to},
            'metrics': metrics,
        }

    async def _counters(self, room_id: str) -> Dict[str, Any]:
        counters = await self.client.get_room_counters(room_id)
        return {k: v for k, v in counters.items() if k != 'success'}

    async def _messages(self, room_id: str, count: int, date_from: Bound, date_to: Bound,
                        tz: Optional[tzinfo]) -> Dict[str, Any]:
        messages = await self.client.get_messages(room_id, count)
        return analyze_messages(messages, date_from, date_to, tz=tz)

    async def _files(self, room_id: str, count: int) -> Dict[str, Any]:
        return analyze_files(await self.client.get_room_files(room_id, 0, count))

    async def _members(self, room_id: str, count: int) -> Dict[str, Any]:
        return analyze_members(await self.client.get_channel_members(room_id, 0, count))

    async def get_user_activity_summary(self, user_id: str, date_from: Bound = None, date_to: Bound = None,
                                        include_rooms: Optional[List[str]] = None,
                                        tz: Optional[tzinfo] = None) -> Dict[str, Any]:
        """Summarize what one user posted across the caller's rooms.

        Only the first few rooms (``activity_room_limit``) are sampled, with a
        bounded number of recent messages each, so the totals describe recent
        activity rather than full history.
        """
        if not user_id:
            raise ValidationError("User id is required")
        start = parse_bound(date_from, 'date_from')
        end = parse_bound(date_to, 'date_to')

        activity: Dict[str, Any] = {
            'success': True,
            'user_id': user_id,
            'period': {'from': date_from, 'to': date_to},
            'metrics': {
                'total_messages': 0,
                'active_rooms': [],
                'most_active_room': None,
                'time_distribution': {},
                'message_types': {'text': 0, 'files': 0},
            },
        }
        metrics = activity['metrics']
        retrieved = False

        try:
            activity['user'] = await self.client.get_user_info(user_id=user_id)
            retrieved = True
        except RocketChatException as e:
            logger.warning(f"User info for {user_id} unavailable: {e}")

        if include_rooms:
            rooms = [Room(id=room_id) for room_id in include_rooms]
        else:
            try:
                rooms = await self.client.list_rooms()
            except RocketChatException as e:
                logger.error(f"✗ Unable to list rooms for activity summary: {e}")
                return {'success': False, 'error': f"Unable to list rooms: {e}", 'user_id': user_id}

        per_room = self.limits.activity_messages_per_room
        for room in rooms[:self.limits.activity_room_limit]:
            try:
                messages = await self.client.get_messages(room.id, per_room)
            except RocketChatException as e:
                logger.warning(f"Failed to analyze room {room.id}: {e}")
                continue
            retrieved = True

            own = [m for m in filter_window(messages, start, end) if m.author_id == user_id]
            if not own:
                continue

            metrics['total_messages'] += len(own)
            metrics['active_rooms'].append({
                'room_id': room.id,
                'room_name': room.name,
                'message_count': len(own),
            })
            for message in own:
                if message.file:
                    metrics['message_types']['files'] += 1
                else:
                    metrics['message_types']['text'] += 1
                if message.timestamp:
                    hour = message.timestamp.astimezone(tz).hour
                    metrics['time_distribution'][hour] = metrics['time_distribution'].get(hour, 0) + 1

        if not retrieved:
            return {
                'success': False,
                'error': f"Unable to retrieve activity for user {user_id} - no accessible data",
                'user_id': user_id,
            }

        if metrics['active_rooms']:
            metrics['most_active_room'] = max(metrics['active_rooms'], key=lambda r: r['message_count'])

        return activity
