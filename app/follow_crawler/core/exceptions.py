"""
Exception hierarchy for the follow-graph crawler.
"""

from typing import Optional

from .types import CrawlErrorType


class TraversalError(Exception):
    """Base exception for traversal errors"""

    def __init__(
        self,
        message: str,
        error_type: CrawlErrorType = CrawlErrorType.UNKNOWN,
        original_error: Optional[Exception] = None,
    ):
        self.error_type = error_type
        self.original_error = original_error
        super().__init__(message)


class FetchError(TraversalError):
    """Raised when a profile or follow list cannot be loaded"""

    def __init__(
        self,
        handle: str,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.handle = handle
        self.status_code = status_code
        super().__init__(f"Failed to fetch {handle}: {message}", CrawlErrorType.FETCH_ERROR, original_error)


class ProfileParseError(TraversalError):
    """Raised when fetched data does not have the expected structure"""

    def __init__(self, handle: str, message: str, original_error: Optional[Exception] = None):
        self.handle = handle
        super().__init__(f"Malformed data for {handle}: {message}", CrawlErrorType.PARSE_ERROR, original_error)


class PersistenceError(TraversalError):
    """Raised when the persistence sink cannot record an identity or its follows"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, CrawlErrorType.PERSISTENCE_ERROR, original_error)


class ChannelClosedError(Exception):
    """Raised on send to, or close of, an already closed channel, and on receive from a drained one"""

    def __init__(self, channel_name: str):
        self.channel_name = channel_name
        super().__init__(f"Channel {channel_name} is closed")
