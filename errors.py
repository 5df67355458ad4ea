"""
Error types for TubeTrend Expert.

Comment fetching is best-effort and never raises any of these; see
youtube_service.get_video_comments.
"""

from typing import Optional


class TubeTrendError(Exception):
    """Base class for errors surfaced to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingCredentialError(TubeTrendError):
    """An API key required by the call was empty. No request was made."""


class UpstreamError(TubeTrendError):
    """The YouTube Data API answered with a non-success status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class MalformedResponseError(TubeTrendError):
    """Gemini returned a body that is not the JSON shape we asked for."""
