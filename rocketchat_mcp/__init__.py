"""Rocket.Chat client core for MCP tool servers"""

__version__ = "1.0.0"
