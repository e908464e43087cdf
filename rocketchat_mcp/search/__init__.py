"""Local-first message, room and user search"""
from rocketchat_mcp.search.engine import SearchService, filter_by_text, sort_by_timestamp
from rocketchat_mcp.search.options import AdvancedSearchOptions

__all__ = ["SearchService", "AdvancedSearchOptions", "filter_by_text", "sort_by_timestamp"]
