"""Custom exceptions for the Rocket.Chat client."""


class RocketChatException(Exception):
    """Base exception for Rocket.Chat API errors"""
    pass


class APIError(RocketChatException):
    """API request failed"""
    pass


class RoomAccessError(APIError):
    """No endpoint candidate could serve the room"""
    pass


class SearchError(RocketChatException):
    """Every search strategy failed"""
    pass


class DownloadError(RocketChatException):
    """File download failed"""
    pass


class ValidationError(RocketChatException):
    """Validation error"""
    pass
