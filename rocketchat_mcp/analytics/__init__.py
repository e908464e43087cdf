"""Room and user analytics"""
from rocketchat_mcp.analytics.aggregator import analyze_files, analyze_members, analyze_messages, file_category
from rocketchat_mcp.analytics.reports import AnalyticsService

__all__ = ["AnalyticsService", "analyze_files", "analyze_members", "analyze_messages", "file_category"]
