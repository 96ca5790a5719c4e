import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Each consecutive transport failure adds this many seconds to the cooldown.
TRANSPORT_BACKOFF_STEP = 5


@dataclass
class BackoffState:
    """One cooldown window.

    cooldown_length is zero whenever no cooldown is active.
    """

    cooldown_start: float = 0.0
    cooldown_length: float = 0.0
    multiplier: int = 1

    @property
    def active(self) -> bool:
        return self.cooldown_length > 0

    def clear(self) -> None:
        self.cooldown_start = 0.0
        self.cooldown_length = 0.0


class BackoffController:
    """Tracks the two cooldown windows that gate outbound requests.

    - rate_limit: armed from a server-provided Retry-After value.
    - transport: armed after every consecutive transport failure with a
      delay of 5 * attempt seconds. The attempt multiplier is reset to 1 by
      record_success(), which the transport calls whenever a response body
      was parsed (including API error objects).

    Windows are measured with a monotonic clock and never block; callers ask
    should_skip() and simply end the cycle while it returns True.
    """

    def __init__(self, *, clock: Optional[Callable[[], float]] = None):
        self.clock = clock or time.monotonic
        self.rate_limit = BackoffState()
        self.transport = BackoffState()

    def _now(self, now: Optional[float]) -> float:
        return float(self.clock() if now is None else now)

    def _window_open(self, state: BackoffState, now: float, name: str) -> bool:
        if not state.active:
            return False
        if now - state.cooldown_start >= state.cooldown_length:
            logger.info("%s cooldown of %i seconds is over", name, int(state.cooldown_length))
            state.clear()
            return False
        return True

    def rate_limited(self, now: Optional[float] = None) -> bool:
        return self._window_open(self.rate_limit, self._now(now), "API rate limit")

    def transport_blocked(self, now: Optional[float] = None) -> bool:
        return self._window_open(self.transport, self._now(now), "Request")

    def should_skip(self, now: Optional[float] = None) -> bool:
        """True while either cooldown window is active.

        An elapsed window is cleared here, so the next request goes through.
        """
        now_ts = self._now(now)
        limited = self.rate_limited(now_ts)
        blocked = self.transport_blocked(now_ts)
        return limited or blocked

    def arm_retry_after(self, seconds: int, now: Optional[float] = None) -> None:
        if seconds <= 0:
            raise ValueError("Retry-After cooldown must be positive")
        self.rate_limit.cooldown_start = self._now(now)
        self.rate_limit.cooldown_length = float(seconds)
        logger.warning("Spotify-API rate limit hit, waiting %i seconds", int(seconds))

    def record_transport_failure(self, now: Optional[float] = None) -> int:
        """Schedule the next transport cooldown and return its length in seconds."""
        delay = TRANSPORT_BACKOFF_STEP * self.transport.multiplier
        self.transport.multiplier += 1
        self.transport.cooldown_start = self._now(now)
        self.transport.cooldown_length = float(delay)
        return delay

    def record_success(self) -> None:
        self.transport.multiplier = 1
        self.transport.clear()


def extract_timeout(header: str) -> int:
    """Return the Retry-After seconds found in raw header text, or 0."""
    what = "retry-after:"
    pos = (header or "").lower().find(what)
    if pos < 0:
        return 0

    pos += len(what)
    end = header.find("\n", pos)
    if end < 0:
        end = len(header)

    value = header[pos:end].strip()
    try:
        return max(0, int(value))
    except ValueError:
        logger.debug("Unparseable Retry-After value: %r", value)
        return 0
