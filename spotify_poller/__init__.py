"""Resilient Spotify "now playing" polling client.

SpotifySource is the entry point; the modules below it can be used on
their own (e.g. the parser for offline payloads).
"""

from .backoff import BackoffController, BackoffState, extract_timeout
from .client import SpotifySource
from .commands import Capability, CommandDispatcher
from .errors import (
    AuthFailure,
    MalformedResponse,
    MissingRefreshToken,
    PrivateSession,
    RateLimited,
    SpotifyPollerError,
    TransportFailure,
)
from .parser import parse_track_json
from .poller import PlaybackPoller, PollState
from .record import PlaybackRecord, PlaybackStatus
from .tokens import TokenManager, TokenState
from .transport import HttpResponse, HttpTransport

__all__ = [
    "AuthFailure",
    "BackoffController",
    "BackoffState",
    "Capability",
    "CommandDispatcher",
    "HttpResponse",
    "HttpTransport",
    "MalformedResponse",
    "MissingRefreshToken",
    "PlaybackPoller",
    "PlaybackRecord",
    "PlaybackStatus",
    "PollState",
    "PrivateSession",
    "RateLimited",
    "SpotifyPollerError",
    "SpotifySource",
    "TokenManager",
    "TokenState",
    "TransportFailure",
    "extract_timeout",
    "parse_track_json",
]
