import base64
import json
import logging
import os
import time
import urllib.parse
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import AuthFailure, MissingRefreshToken
from .transport import HttpTransport, redact_tokens

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
DEFAULT_REDIRECT_URI = "https://univrsal.github.io/auth/token"
DEFAULT_SCOPES = [
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
]

# Public client id shipped as the default; it only works together with the
# SPOTIFY_CREDENTIALS fallback blob (base64 "id:secret").
FALLBACK_CLIENT_ID = "847d7cf0c5dc4ff185161d1f000a9d0e"


def build_credentials(config: Dict[str, Any]) -> str:
    """Return the Base64 "Basic" credential blob for the token endpoint.

    Uses client id + secret when both are configured, otherwise the
    precomputed blob from SPOTIFY_CREDENTIALS or config.spotify_credentials.
    """

    config = config or {}
    client_id = str(config.get("spotify_client_id", "")).strip()
    client_secret = str(config.get("spotify_client_secret", "")).strip()

    if client_id and client_secret:
        return base64.b64encode(f"{client_id}:{client_secret}".encode("utf-8")).decode("ascii")

    fallback = os.getenv("SPOTIFY_CREDENTIALS") or str(config.get("spotify_credentials", "")).strip()
    if not fallback:
        return ""
    if ":" in fallback:
        return base64.b64encode(fallback.encode("utf-8")).decode("ascii")
    return fallback


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate Spotify OAuth config fields and return a structured status dict."""

    config = config or {}
    client_id = str(config.get("spotify_client_id", "")).strip()
    has_secret = bool(str(config.get("spotify_client_secret", "")).strip())
    redirect_uri = str(config.get("spotify_redirect_uri", "")).strip()

    status = {
        "ok": True,
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "credentials_source": "config" if client_id and has_secret else "fallback",
        "message": "Spotify credentials look OK.",
    }

    if not redirect_uri:
        status.update(ok=False, message="Missing spotify_redirect_uri in config.json.")
    elif not build_credentials(config):
        status.update(
            ok=False,
            message=(
                "No client secret configured and no SPOTIFY_CREDENTIALS fallback available.\n"
                "Set spotify_client_id and spotify_client_secret in config.json."
            ),
        )
    elif not client_id:
        status.update(ok=False, message="Missing spotify_client_id in config.json.")
    return status


def get_authorize_url(config: Dict[str, Any], *, state: Optional[str] = None, show_dialog: bool = True) -> str:
    """Build the browser URL that starts the authorization-code login."""

    config = config or {}
    scopes = config.get("spotify_scopes") or DEFAULT_SCOPES
    params = {
        "client_id": str(config.get("spotify_client_id", "")).strip() or FALLBACK_CLIENT_ID,
        "response_type": "code",
        "redirect_uri": str(config.get("spotify_redirect_uri", "")).strip() or DEFAULT_REDIRECT_URI,
        "scope": " ".join(str(s).strip() for s in scopes if str(s).strip()),
        "show_dialog": "true" if show_dialog else "false",
    }
    if state:
        params["state"] = state
    return f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize?{urllib.parse.urlencode(params)}"


def extract_code_from_redirect_url(redirect_url: str) -> Dict[str, str]:
    """Parse a redirect URL and return {"code": ..., "state": ...} (missing keys omitted)."""

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    qs = urllib.parse.parse_qs(parsed.query)
    out: Dict[str, str] = {}
    for key in ("code", "state", "error"):
        if qs.get(key):
            out[key] = str(qs[key][0])
    return out


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class TokenState:
    """OAuth token state, persisted through the settings store."""

    access_token: str = ""
    refresh_token: str = ""
    auth_code: str = ""
    expires_at: int = 0
    logged_in: bool = False

    @staticmethod
    def from_config(config: Dict[str, Any]) -> "TokenState":
        config = config or {}
        try:
            expires_at = int(config.get("spotify_token_expires_at", 0) or 0)
        except (TypeError, ValueError):
            expires_at = 0
        return TokenState(
            access_token=str(config.get("spotify_token", "") or ""),
            refresh_token=str(config.get("spotify_refresh_token", "") or ""),
            auth_code=str(config.get("spotify_auth_code", "") or ""),
            expires_at=expires_at,
            logged_in=bool(config.get("spotify_logged_in", False)),
        )

    def to_config(self) -> Dict[str, Any]:
        return {
            "spotify_token": self.access_token,
            "spotify_refresh_token": self.refresh_token,
            "spotify_auth_code": self.auth_code,
            "spotify_token_expires_at": int(self.expires_at),
            "spotify_logged_in": bool(self.logged_in),
        }

    def copy(self) -> "TokenState":
        return TokenState(**asdict(self))


class TokenManager:
    """Owns the access/refresh token pair and its expiry.

    Every refresh or exchange attempt ends with a call to the persist
    callback, whatever the outcome. Both operations return (success, log)
    where log is the redacted token-endpoint response for diagnostics.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        transport: HttpTransport,
        persist: Optional[Callable[[TokenState], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or {}
        self.transport = transport
        self.persist = persist
        self.clock = clock or time.time
        self.state = TokenState.from_config(self.config)

    def reload(self, config: Dict[str, Any]) -> None:
        self.config = config or {}
        self.state = TokenState.from_config(self.config)

    def now(self) -> int:
        return int(self.clock())

    def is_expired(self, now: Optional[float] = None) -> bool:
        now_ts = self.now() if now is None else int(now)
        return now_ts > int(self.state.expires_at)

    def _persist(self) -> None:
        if self.persist is None:
            return
        try:
            self.persist(self.state.copy())
        except OSError as e:
            logger.error("Failed to persist Spotify token state: %s", e)

    def _request(self, form: Dict[str, str]) -> Tuple[Optional[Dict[str, Any]], str]:
        payload = self.transport.request_token(form, build_credentials(self.config))
        if payload is None:
            return None, ""
        return payload, json.dumps(redact_tokens(payload), indent=4)

    @staticmethod
    def _response_error(payload: Dict[str, Any]) -> AuthFailure:
        error = payload.get("error")
        if isinstance(error, dict):
            error = error.get("message") or error.get("status")
        if error:
            desc = payload.get("error_description")
            return AuthFailure(f"Received error from spotify: {error}" + (f" ({desc})" if desc else ""))
        return AuthFailure("Couldn't parse json response")

    def refresh(self) -> Tuple[bool, str]:
        """Get a new access token using the stored refresh token."""

        log = ""
        result = False
        try:
            if not self.state.refresh_token:
                raise MissingRefreshToken()

            payload, log = self._request(
                {"grant_type": "refresh_token", "refresh_token": self.state.refresh_token}
            )
            if payload is None:
                raise AuthFailure("Couldn't refresh Spotify token, response was null")

            token = payload.get("access_token")
            expires = payload.get("expires_in")
            if not isinstance(token, str) or not _is_number(expires):
                self.state.logged_in = False
                raise self._response_error(payload)

            self.state.access_token = token
            self.state.expires_at = self.now() + int(expires)
            self.state.logged_in = True

            # Refreshing may hand out a new refresh token.
            new_refresh = payload.get("refresh_token")
            if isinstance(new_refresh, str) and new_refresh:
                logger.info("Received a new refresh token")
                self.state.refresh_token = new_refresh

            result = True
            logger.info("Successfully renewed Spotify token")
        except MissingRefreshToken as e:
            log = str(e)
            logger.error("%s", e)
        except AuthFailure as e:
            logger.error("%s", e)
            log = log or str(e)
        finally:
            self._persist()
        return result, log

    def exchange_auth_code(self, code: Optional[str] = None) -> Tuple[bool, str]:
        """Exchange a one-time authorization code for the initial token pair."""

        if code is not None:
            self.state.auth_code = str(code).strip()

        log = ""
        result = False
        try:
            if not self.state.auth_code:
                raise AuthFailure("Authorization code is empty!")

            redirect_uri = str(self.config.get("spotify_redirect_uri", "")).strip() or DEFAULT_REDIRECT_URI
            payload, log = self._request(
                {
                    "grant_type": "authorization_code",
                    "code": self.state.auth_code,
                    "redirect_uri": redirect_uri,
                }
            )
            if payload is None:
                raise AuthFailure("Couldn't get Spotify token, response was null")

            token = payload.get("access_token")
            refresh = payload.get("refresh_token")
            expires = payload.get("expires_in")
            if not (isinstance(token, str) and isinstance(refresh, str) and _is_number(expires)):
                raise self._response_error(payload)

            self.state.access_token = token
            self.state.refresh_token = refresh
            self.state.expires_at = self.now() + int(expires)
            self.state.auth_code = ""
            result = True
            logger.info("Successfully logged in")
        except AuthFailure as e:
            logger.error("%s", e)
            log = log or str(e)
        finally:
            self.state.logged_in = result
            self._persist()
        return result, log
