"""Validated options for advanced search."""
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from rocketchat_mcp.api.models import parse_timestamp


class AdvancedSearchOptions(BaseModel):
    """Advanced search parameters.

    ``sort_by="relevance"`` is accepted for compatibility but the server gives
    no score to rank by, so results keep their fetch order.
    """
    query: str = Field(..., min_length=1, max_length=500)
    room_id: Optional[str] = Field(default=None, max_length=100)
    user_id: Optional[str] = Field(default=None, max_length=100)
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    message_type: Literal['all', 'mentions', 'starred', 'pinned'] = 'all'
    sort_by: Optional[Literal['timestamp', 'relevance']] = None
    sort_order: Literal['asc', 'desc'] = 'desc'
    count: int = Field(default=20, ge=1, le=200)
    offset: int = Field(default=0, ge=0, le=10000)

    @field_validator('query')
    @classmethod
    def strip_query(cls, v: str) -> str:
        """Reject whitespace-only queries."""
        v = v.strip()
        if not v:
            raise ValueError('query must not be blank')
        return v

    @field_validator('room_id', 'user_id')
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator('date_from', 'date_to')
    @classmethod
    def validate_timestamp(cls, v: Optional[str]) -> Optional[str]:
        """Dates must be ISO 8601."""
        if v is None or not v.strip():
            return None
        if parse_timestamp(v) is None:
            raise ValueError(f'invalid ISO timestamp: {v}')
        return v.strip()

    @model_validator(mode='after')
    def check_window(self) -> 'AdvancedSearchOptions':
        if self.from_datetime and self.to_datetime and self.from_datetime > self.to_datetime:
            raise ValueError('date_from must not be after date_to')
        return self

    @property
    def from_datetime(self) -> Optional[datetime]:
        return parse_timestamp(self.date_from)

    @property
    def to_datetime(self) -> Optional[datetime]:
        return parse_timestamp(self.date_to)

    def applied_filters(self) -> Dict[str, Any]:
        """Echo the filters that actually narrowed the result"""
        filters = {
            'room_id': self.room_id,
            'user_id': self.user_id,
            'date_from': self.date_from,
            'date_to': self.date_to,
            'message_type': self.message_type if self.message_type != 'all' else None,
        }
        return {k: v for k, v in filters.items() if v}
