import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .backoff import BackoffController
from .errors import MalformedResponse, TransportFailure

logger = logging.getLogger(__name__)

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_PLAYER_URL = "https://api.spotify.com/v1/me/player"

HTTP_OK = 200
HTTP_NO_CONTENT = 204
HTTP_TOO_MANY_REQUESTS = 429

# Pseudo status codes for requests that never reached the server.
STATUS_SKIPPED = 0
STATUS_FAILED = -1


@dataclass
class HttpResponse:
    """Outcome of a single API call.

    headers is the raw header block ("Name: value" lines), consumed as text.
    body is the decoded JSON document, or None when the body was empty or
    could not be decoded.
    """

    status_code: int
    body: Any = None
    headers: str = ""
    text: str = ""

    @property
    def json_object(self) -> Dict[str, Any]:
        return self.body if isinstance(self.body, dict) else {}


def raw_header_text(headers: httpx.Headers) -> str:
    lines = [f"{k.decode('latin-1')}: {v.decode('latin-1')}" for k, v in headers.raw]
    return "".join(f"{line}\r\n" for line in lines)


def redact_tokens(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of a token response safe for logging."""
    out = copy.deepcopy(payload)
    for key in ("access_token", "refresh_token"):
        if isinstance(out.get(key), str):
            out[key] = "REDACTED"
    return out


class HttpTransport:
    """Executes single Spotify Web API requests with httpx.

    A fresh httpx.Client is used per request so that calls issued from
    command worker threads never share connection state with the poller.
    """

    def __init__(self, *, timeout_ms: int = 1000, transport: Optional[httpx.BaseTransport] = None):
        self.timeout_ms = int(timeout_ms)
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=max(0.001, self.timeout_ms / 1000.0),
            follow_redirects=False,
            transport=self.transport,
        )

    def _send(self, method: str, url: str, *, headers: Dict[str, str], content: Optional[str] = None) -> httpx.Response:
        try:
            with self._client() as client:
                resp = client.request(method, url, headers=headers, content=content)
                return resp
        except httpx.HTTPError as e:
            raise TransportFailure(f"{type(e).__name__}: {e}") from e

    @staticmethod
    def _decode(text: str) -> Any:
        try:
            return json.loads(text)
        except ValueError as e:
            raise MalformedResponse(f"Failed to parse json response ({e})", text) from e

    def execute_command(
        self,
        token: str,
        url: str,
        *,
        backoff: Optional[BackoffController] = None,
        method: str = "GET",
        data: Optional[str] = None,
    ) -> HttpResponse:
        """Send a bearer-authorized request to the player API.

        Returns STATUS_SKIPPED while the transport cooldown is active and
        STATUS_FAILED when no HTTP response was received. Non-GET requests
        always carry a JSON body ("{}" when no data is given).
        """

        if backoff is not None and backoff.transport_blocked():
            logger.debug("Waiting for request timeout to be over, skipping %s", url)
            return HttpResponse(STATUS_SKIPPED)

        headers = {"Authorization": f"Bearer {token}"}
        content = None
        if method.upper() != "GET":
            headers["Content-Type"] = "application/json"
            content = data if data is not None else "{}"

        try:
            resp = self._send(method.upper(), url, headers=headers, content=content)
        except TransportFailure as e:
            if backoff is None:
                logger.warning("Request to %s failed: %s", url, e)
            else:
                delay = backoff.record_transport_failure()
                logger.warning(
                    "Request to %s failed (%s). Waiting %i seconds before trying again", url, e, delay
                )
            return HttpResponse(STATUS_FAILED)

        header_text = raw_header_text(resp.headers)
        if header_text:
            logger.debug("Response header: %s", header_text.strip())

        body = None
        if resp.text:
            try:
                body = self._decode(resp.text)
            except MalformedResponse as e:
                logger.error("%s", e)
                return HttpResponse(resp.status_code, None, header_text, resp.text)

        # Any decodable (or empty) body counts, including API error objects.
        if backoff is not None:
            backoff.record_success()
        return HttpResponse(resp.status_code, body, header_text, resp.text)

    def request_token(self, form: Dict[str, str], credentials: str) -> Optional[Dict[str, Any]]:
        """POST a form to the token endpoint with Basic credentials.

        Returns the decoded JSON object (which may be an error object) or
        None when no usable response was received.
        """

        if not form or not credentials:
            logger.error("Cannot request token without valid credentials and/or auth code!")
            return None

        headers = {
            "Authorization": f"Basic {credentials}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        try:
            with self._client() as client:
                resp = client.post(SPOTIFY_TOKEN_URL, data=form, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Spotify token request failed: %s", e)
            return None

        try:
            payload = self._decode(resp.text)
        except MalformedResponse as e:
            logger.error("Couldn't parse token response (HTTP %i): %s", resp.status_code, e)
            return None

        if not isinstance(payload, dict):
            logger.error("Spotify token response was not an object: %s", resp.text)
            return None

        logger.info("Spotify response: %s", json.dumps(redact_tokens(payload), indent=2))
        return payload
