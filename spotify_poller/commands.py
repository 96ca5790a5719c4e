import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from .record import PlaybackRecord, PlaybackStatus
from .transport import SPOTIFY_PLAYER_URL, HttpTransport

logger = logging.getLogger(__name__)

PLAYER_PAUSE_URL = f"{SPOTIFY_PLAYER_URL}/pause"
PLAYER_PLAY_URL = f"{SPOTIFY_PLAYER_URL}/play"
PLAYER_NEXT_URL = f"{SPOTIFY_PLAYER_URL}/next"
PLAYER_PREVIOUS_URL = f"{SPOTIFY_PLAYER_URL}/previous"
PLAYER_VOLUME_URL = f"{SPOTIFY_PLAYER_URL}/volume"


class Capability(str, Enum):
    PLAY_PAUSE = "play_pause"
    STOP = "stop"
    NEXT = "next"
    PREVIOUS = "previous"
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"


# Volume control has no player endpoint wired up yet.
DEFAULT_CAPABILITIES = frozenset(
    {Capability.PLAY_PAUSE, Capability.STOP, Capability.NEXT, Capability.PREVIOUS}
)


class CommandDispatcher:
    """Runs playback commands off the polling path.

    invoke() only validates and schedules; the request runs on a worker
    thread and its outcome is logged, never returned. Each job gets a copy of
    the token and the last known status taken at invocation time.
    """

    def __init__(
        self,
        transport: HttpTransport,
        record: PlaybackRecord,
        *,
        lock: Optional[threading.RLock] = None,
        capabilities: Iterable[Capability] = DEFAULT_CAPABILITIES,
        resume_from_start: bool = True,
        max_workers: int = 4,
    ):
        self.transport = transport
        self.record = record
        self.lock = lock or threading.RLock()
        self.capabilities: FrozenSet[Capability] = frozenset(capabilities)
        self.resume_from_start = resume_from_start
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="spotify-command")
        self._futures: List[Future] = []

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def invoke(self, capability: Capability, token: str) -> bool:
        """Schedule capability; True means accepted, not executed."""

        try:
            capability = Capability(capability)
        except ValueError:
            logger.warning("Unknown Spotify capability: %s", capability)
            return False

        if not self.supports(capability):
            logger.info("Spotify source does not support %s", capability.value)
            return False

        with self.lock:
            status = self.record.status

        future = self._executor.submit(self._run, capability, str(token), status)
        future.add_done_callback(self._log_failure)
        with self.lock:
            self._futures = [f for f in self._futures if not f.done()]
            self._futures.append(future)
        return True

    @staticmethod
    def _log_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Spotify command crashed: %s", exc)

    def request_for(self, capability: Capability, status: PlaybackStatus):
        """Return (method, url, body) for a capability, or None when it has no endpoint."""

        if capability == Capability.PLAY_PAUSE and status != PlaybackStatus.PLAYING:
            # Resuming restarts the track unless resume_from_start is off.
            body = '{"position_ms": 0}' if self.resume_from_start else None
            return "PUT", PLAYER_PLAY_URL, body
        if capability in (Capability.PLAY_PAUSE, Capability.STOP):
            return "PUT", PLAYER_PAUSE_URL, None
        if capability == Capability.PREVIOUS:
            return "POST", PLAYER_PREVIOUS_URL, None
        if capability == Capability.NEXT:
            return "POST", PLAYER_NEXT_URL, None
        return None

    def _run(self, capability: Capability, token: str, status: PlaybackStatus) -> int:
        request = self.request_for(capability, status)
        if request is None:
            logger.info("Couldn't run spotify command %s: not implemented", capability.value)
            return -1

        method, url, body = request
        response = self.transport.execute_command(token, url, method=method, data=body)

        if not 200 <= response.status_code < 300:
            logger.info("Couldn't run spotify command! HTTP code: %i", response.status_code)
            logger.info("Spotify controls only work for premium users!")
            logger.info("Response: %s", response.text)
        else:
            logger.debug("Spotify command %s done (HTTP %i)", capability.value, response.status_code)
        return response.status_code

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until all scheduled commands finished (used on shutdown and in tests)."""
        with self.lock:
            pending = list(self._futures)
        for future in pending:
            future.exception(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
