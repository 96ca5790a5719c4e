"""Spotify polling client exceptions.

These are raised inside a component and caught at its public boundary; none
of them is allowed to escape a poll cycle or a playback command.
"""


class SpotifyPollerError(Exception):
    """Base exception for Spotify polling client errors."""


class TransportFailure(SpotifyPollerError):
    """The request never produced an HTTP response (network, DNS, timeout)."""


class AuthFailure(SpotifyPollerError):
    """A token could not be obtained or was rejected."""


class MissingRefreshToken(AuthFailure):
    """A refresh was requested but no refresh token is stored."""

    def __init__(self) -> None:
        super().__init__("Refresh token is empty!")


class RateLimited(SpotifyPollerError):
    """Spotify returned 429 Too Many Requests."""

    def __init__(self, retry_after: int = 0) -> None:
        self.retry_after = retry_after
        msg = "Spotify rate limit exceeded"
        if retry_after:
            msg += f" (retry-after: {retry_after}s)"
        super().__init__(msg)


class MalformedResponse(SpotifyPollerError):
    """The response body was not JSON or lacked the expected fields."""

    def __init__(self, message: str, body: str = "") -> None:
        self.body = body
        super().__init__(f"{message}: {body}" if body else message)


class PrivateSession(SpotifyPollerError):
    """The active device is in a private session; track data is hidden."""

    def __init__(self) -> None:
        super().__init__("Spotify session is private! Can't read track")
