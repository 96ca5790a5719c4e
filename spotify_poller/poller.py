import logging
import threading
from enum import Enum
from typing import Any, Dict, Optional

from .backoff import BackoffController, extract_timeout
from .errors import AuthFailure, MalformedResponse, PrivateSession, RateLimited
from .parser import parse_track_json
from .record import PlaybackRecord, PlaybackStatus
from .tokens import TokenManager
from .transport import (
    HTTP_NO_CONTENT,
    HTTP_OK,
    HTTP_TOO_MANY_REQUESTS,
    SPOTIFY_PLAYER_URL,
    STATUS_FAILED,
    STATUS_SKIPPED,
    HttpResponse,
    HttpTransport,
)

logger = logging.getLogger(__name__)

HTTP_UNAUTHORIZED = 401


class PollState(str, Enum):
    IDLE = "idle"
    COOLING_DOWN = "cooling_down"
    POLLING = "polling"
    HAS_TRACK = "has_track"
    NO_SESSION = "no_session"


class PlaybackPoller:
    """Runs one "current playback" refresh cycle per call.

    Cycles are driven by an external fixed-interval timer. A cycle sends at
    most one player request (plus one playlist-name lookup when the context
    links to one) and never sleeps or retries on its own.

    The shared record is only written while holding lock; the network calls
    happen outside of it.
    """

    def __init__(
        self,
        tokens: TokenManager,
        transport: HttpTransport,
        backoff: BackoffController,
        record: PlaybackRecord,
        *,
        lock: Optional[threading.RLock] = None,
    ):
        self.tokens = tokens
        self.transport = transport
        self.backoff = backoff
        self.record = record
        self.lock = lock or threading.RLock()
        self.state = PollState.IDLE

    def refresh(self) -> PollState:
        if not self.tokens.state.logged_in:
            self.state = PollState.IDLE
            return self.state

        logger.debug("[Spotify] begin refresh")

        if self.tokens.is_expired():
            # A failed refresh still lets the poll go out with the stale token.
            logger.info("Refreshing Spotify token")
            self.tokens.refresh()

        if self.backoff.should_skip():
            logger.debug("Waiting for Spotify-API timeout")
            self.state = PollState.COOLING_DOWN
            return self.state

        self.state = PollState.POLLING
        response = self.transport.execute_command(
            self.tokens.state.access_token, SPOTIFY_PLAYER_URL, backoff=self.backoff
        )
        logger.debug("Executed %s command", SPOTIFY_PLAYER_URL)

        try:
            self.state = self._route(response)
        except RateLimited as e:
            logger.debug("%s", e)
            self.state = PollState.COOLING_DOWN
        except AuthFailure as e:
            logger.error("%s", e)
            self.state = PollState.IDLE
        except (MalformedResponse, PrivateSession) as e:
            logger.error("%s", e)
            self.state = PollState.IDLE

        logger.debug("[Spotify] Finished refresh")
        return self.state

    def _route(self, response: HttpResponse) -> PollState:
        code = response.status_code

        if code == HTTP_OK:
            return self._handle_playback(response)

        if code == HTTP_NO_CONTENT:
            with self.lock:
                self.record.clear()
            return PollState.NO_SESSION

        # Keep the last known record; the API will answer properly again.
        if code in (STATUS_FAILED, STATUS_SKIPPED):
            return PollState.COOLING_DOWN

        if code == HTTP_TOO_MANY_REQUESTS:
            timeout = extract_timeout(response.headers)
            if timeout:
                self.backoff.arm_retry_after(timeout)
                raise RateLimited(timeout)
            logger.warning("Spotify-API rate limit hit without a Retry-After header")
            return PollState.IDLE

        if code == HTTP_UNAUTHORIZED:
            # Force a refresh attempt on the next cycle.
            self.tokens.state.expires_at = 0
            raise AuthFailure(f"Spotify rejected the access token: {response.text}")

        logger.info("Spotify-API returned HTTP %i, keeping last known state", code)
        return PollState.IDLE

    def _handle_playback(self, response: HttpResponse) -> PollState:
        if not isinstance(response.body, dict):
            raise MalformedResponse("Couldn't fetch song data from spotify json", response.text)
        obj: Dict[str, Any] = response.body

        # While an ad is playing we treat playback as paused.
        if obj.get("currently_playing_type") == "ad":
            with self.lock:
                self.record.status = PlaybackStatus.PAUSED
            return PollState.HAS_TRACK

        device = obj.get("device")
        playing = obj.get("is_playing")
        if not isinstance(device, dict) or not isinstance(playing, bool):
            raise MalformedResponse("Couldn't fetch song data from spotify json", response.text)

        if device.get("is_private_session") is True or device.get("is_private") is True:
            raise PrivateSession()

        fresh = parse_track_json(obj, PlaybackRecord(), fetch_playlist_name=self._fetch_playlist_name)
        if playing:
            fresh.status = PlaybackStatus.PLAYING
        elif obj.get("item"):
            fresh.status = PlaybackStatus.PAUSED
        else:
            fresh.status = PlaybackStatus.STOPPED

        progress = obj.get("progress_ms")
        fresh.progress_ms = int(progress) if isinstance(progress, (int, float)) and not isinstance(progress, bool) else 0

        with self.lock:
            self.record.update_from(fresh)
        return PollState.HAS_TRACK

    def _fetch_playlist_name(self, href: str) -> Optional[str]:
        response = self.transport.execute_command(self.tokens.state.access_token, href, backoff=self.backoff)
        if response.status_code != HTTP_OK:
            logger.debug("Playlist lookup for %s returned HTTP %i", href, response.status_code)
            return None
        name = response.json_object.get("name")
        return name if isinstance(name, str) else None
