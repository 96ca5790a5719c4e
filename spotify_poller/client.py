import logging
import threading
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

import httpx

from .backoff import BackoffController
from .commands import DEFAULT_CAPABILITIES, Capability, CommandDispatcher
from .poller import PlaybackPoller, PollState
from .record import SUPPORTED_METADATA, PlaybackRecord
from .tokens import TokenManager, TokenState, extract_code_from_redirect_url, get_authorize_url
from .transport import HttpTransport

logger = logging.getLogger(__name__)


class SpotifySource:
    """Spotify now-playing source.

    Wires the token manager, backoff controller, poller and command
    dispatcher around one shared PlaybackRecord. The settings store (any
    object with a ``lock`` and ``persist_tokens(TokenState)``) receives every
    token change; its lock also guards the record.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        store: Any = None,
        http_transport: Optional[httpx.BaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
        monotonic: Optional[Callable[[], float]] = None,
        capabilities: FrozenSet[Capability] = DEFAULT_CAPABILITIES,
    ):
        self.config = dict(config or {})
        self.store = store
        self.lock = getattr(store, "lock", None) or threading.RLock()

        self.http = HttpTransport(
            timeout_ms=int(self.config.get("spotify_request_timeout_ms", 1000)),
            transport=http_transport,
        )
        self.backoff = BackoffController(clock=monotonic)
        self.record = PlaybackRecord()
        self.tokens = TokenManager(self.config, transport=self.http, persist=self._save_tokens, clock=clock)
        self.poller = PlaybackPoller(self.tokens, self.http, self.backoff, self.record, lock=self.lock)
        self.commands = CommandDispatcher(
            self.http,
            self.record,
            lock=self.lock,
            capabilities=capabilities,
            resume_from_start=bool(self.config.get("spotify_resume_from_start", True)),
        )

    # -----------------
    # Source surface
    # -----------------

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return self.commands.capabilities

    @property
    def supported_metadata(self) -> Tuple[str, ...]:
        return SUPPORTED_METADATA

    @property
    def logged_in(self) -> bool:
        return self.tokens.state.logged_in

    @property
    def state(self) -> PollState:
        return self.poller.state

    def load(self, config: Optional[Dict[str, Any]] = None) -> None:
        """Apply (re)loaded settings and renew an expired token right away."""

        with self.lock:
            if config is not None:
                self.config = dict(config)
            self.tokens.reload(self.config)
            self.http.timeout_ms = int(self.config.get("spotify_request_timeout_ms", 1000))
            self.commands.resume_from_start = bool(self.config.get("spotify_resume_from_start", True))

        if self.tokens.state.logged_in and self.tokens.is_expired():
            logger.info("Refreshing Spotify token")
            ok, _ = self.tokens.refresh()
            if ok:
                logger.info("Successfully renewed Spotify token")

    def refresh(self) -> PollState:
        return self.poller.refresh()

    def execute_capability(self, capability: Capability) -> bool:
        with self.lock:
            token = self.tokens.state.access_token
        return self.commands.invoke(capability, token)

    def snapshot(self) -> PlaybackRecord:
        with self.lock:
            return self.record.copy()

    # -----------------
    # Login
    # -----------------

    def authorize_url(self, *, state: Optional[str] = None) -> str:
        return get_authorize_url(self.config, state=state)

    def new_token(self, code_or_redirect_url: str) -> Tuple[bool, str]:
        """Log in with an authorization code or the full redirect URL."""

        value = str(code_or_redirect_url or "").strip()
        if "code=" in value or "error=" in value:
            parsed = extract_code_from_redirect_url(value)
            if parsed.get("error"):
                logger.error("Spotify authorization was denied: %s", parsed["error"])
                return False, parsed["error"]
            value = parsed.get("code", "")
        return self.tokens.exchange_auth_code(value)

    def close(self) -> None:
        self.commands.shutdown(wait=True)

    def _save_tokens(self, state: TokenState) -> None:
        with self.lock:
            self.config.update(state.to_config())
            if self.store is not None:
                self.store.persist_tokens(state)
