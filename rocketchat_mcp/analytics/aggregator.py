"""Descriptive statistics over message, file and member collections.

Everything here is pure: the functions take already-fetched collections and
never touch the network.
"""
import math
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, List, Optional, Union

from rocketchat_mcp.api.exceptions import ValidationError
from rocketchat_mcp.api.models import Member, Message, RoomFile, parse_timestamp

RECENT_JOIN_DAYS = 30
MEMBER_STATUSES = ('online', 'away', 'busy', 'offline')

# first matching rule wins
FILE_CATEGORIES = (
    ('images', lambda t: t.startswith('image/')),
    ('videos', lambda t: t.startswith('video/')),
    ('audio', lambda t: t.startswith('audio/')),
    ('pdf', lambda t: 'pdf' in t),
    ('documents', lambda t: 'word' in t or 'document' in t),
    ('spreadsheets', lambda t: 'spreadsheet' in t or 'excel' in t),
    ('text', lambda t: 'text/' in t),
    ('archives', lambda t: 'zip' in t or 'archive' in t),
)

Bound = Union[str, datetime, None]


def file_category(mime_type: str) -> str:
    """Map a MIME type onto a coarse, human-facing family"""
    for category, matches in FILE_CATEGORIES:
        if matches(mime_type):
            return category
    return 'other'


def parse_bound(value: Bound, name: str = 'date') -> Optional[datetime]:
    """Parse an optional date bound, rejecting values that are not ISO 8601"""
    if value is None or value == '':
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValidationError(f"Invalid {name}: {value!r} is not an ISO 8601 timestamp")
    return parsed


def filter_window(messages: List[Message], date_from: Bound = None, date_to: Bound = None) -> List[Message]:
    """Keep messages inside ``[date_from, date_to]``, both ends inclusive"""
    start = parse_bound(date_from, 'date_from')
    end = parse_bound(date_to, 'date_to')
    if start is None and end is None:
        return list(messages)
    return [
        m for m in messages
        if m.timestamp
        and (start is None or m.timestamp >= start)
        and (end is None or m.timestamp <= end)
    ]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def analyze_messages(messages: List[Message], date_from: Bound = None, date_to: Bound = None,
                     tz: Optional[tzinfo] = None) -> Dict[str, Any]:
    """Summarize a message collection.

    Args:
        messages: Messages to summarize
        date_from: Optional inclusive lower bound
        date_to: Optional inclusive upper bound
        tz: Time zone for the hour/day buckets; the process' local zone when omitted

    Returns:
        Dict with ``total``, ``by_user``, ``by_type``, ``by_hour``, ``by_day``,
        ``average_length`` and ``most_active``
    """
    selected = filter_window(messages, date_from, date_to)

    by_user: Dict[str, Dict[str, Any]] = {}
    by_type = {'text': 0, 'file': 0, 'system': 0}
    by_hour: Dict[int, int] = {}
    by_day: Dict[str, int] = {}
    total_length = 0
    with_text = 0

    for message in selected:
        if message.author_id:
            entry = by_user.setdefault(message.author_id, {'count': 0, 'username': None, 'name': None})
            entry['count'] += 1
            entry['username'] = message.author_username
            entry['name'] = message.author_name

        if message.file:
            by_type['file'] += 1
        elif message.is_system:
            by_type['system'] += 1
        else:
            by_type['text'] += 1

        if message.timestamp:
            local = message.timestamp.astimezone(tz)
            by_hour[local.hour] = by_hour.get(local.hour, 0) + 1
            day = local.date().isoformat()
            by_day[day] = by_day.get(day, 0) + 1

        if message.text:
            total_length += len(message.text)
            with_text += 1

    most_active = None
    if by_user:
        # max() keeps the first author on ties
        user_id = max(by_user, key=lambda uid: by_user[uid]['count'])
        most_active = {'user_id': user_id, **by_user[user_id]}

    return {
        'total': len(selected),
        'by_user': by_user,
        'by_type': by_type,
        'by_hour': by_hour,
        'by_day': by_day,
        'average_length': _round_half_up(total_length / with_text) if with_text else 0,
        'most_active': most_active,
    }


def analyze_files(files: List[RoomFile]) -> Dict[str, Any]:
    """Summarize room files by family, uploader and size"""
    by_type: Dict[str, int] = {}
    by_user: Dict[str, int] = {}
    total_size = 0
    largest: Optional[RoomFile] = None

    for room_file in files:
        category = file_category(room_file.mime_type or 'unknown')
        by_type[category] = by_type.get(category, 0) + 1

        if room_file.user_id:
            by_user[room_file.user_id] = by_user.get(room_file.user_id, 0) + 1

        if room_file.size:
            total_size += room_file.size
            if largest is None or room_file.size > largest.size:
                largest = room_file

    return {
        'total': len(files),
        'by_type': by_type,
        'by_user': by_user,
        'total_size': total_size,
        'average_size': _round_half_up(total_size / len(files)) if files else 0,
        'largest_file': largest.to_dict() if largest else None,
    }


def analyze_members(members: List[Member], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Summarize members by presence, role and recent joins"""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    cutoff = now - timedelta(days=RECENT_JOIN_DAYS)

    by_status = {status: 0 for status in MEMBER_STATUSES}
    by_role: Dict[str, int] = {}
    joined_recently = 0

    for member in members:
        status = member.status if member.status in by_status else 'offline'
        by_status[status] += 1

        for role in member.roles or ['user']:
            by_role[role] = by_role.get(role, 0) + 1

        if member.joined_at and member.joined_at > cutoff:
            joined_recently += 1

    return {
        'total': len(members),
        'by_status': by_status,
        'by_role': by_role,
        'joined_recently': joined_recently,
    }
