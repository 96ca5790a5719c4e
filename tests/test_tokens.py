import base64
import json
import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotify_poller.tokens import (
    TokenManager,
    TokenState,
    build_credentials,
    extract_code_from_redirect_url,
    get_authorize_url,
)
from spotify_poller.transport import HttpTransport
from tests.fakes import NOW, TOKEN_URL, FakeSpotify, logged_in_config


class TokenTestCase(unittest.TestCase):
    def setUp(self):
        self.fake = FakeSpotify()
        self.persisted = []
        self.config = logged_in_config()
        self.manager = TokenManager(
            self.config,
            transport=HttpTransport(transport=self.fake.transport),
            persist=self.persisted.append,
            clock=lambda: NOW,
        )


class TestRefresh(TokenTestCase):
    def test_success_stores_token_and_expiry(self):
        self.fake.route("POST", TOKEN_URL, json_body={"access_token": "access-2", "expires_in": 3600})

        ok, log = self.manager.refresh()

        self.assertTrue(ok)
        self.assertEqual(self.manager.state.access_token, "access-2")
        self.assertEqual(self.manager.state.expires_at, NOW + 3600)
        self.assertEqual(self.manager.state.refresh_token, "refresh-1")
        self.assertTrue(self.manager.state.logged_in)
        self.assertEqual(len(self.persisted), 1)
        self.assertEqual(self.persisted[0].access_token, "access-2")

        request = self.fake.calls("POST", TOKEN_URL)[0]
        self.assertEqual(
            FakeSpotify.form(request), {"grant_type": "refresh_token", "refresh_token": "refresh-1"}
        )
        expected = base64.b64encode(b"client:secret").decode("ascii")
        self.assertEqual(request.headers["Authorization"], f"Basic {expected}")

    def test_adopts_new_refresh_token(self):
        self.fake.route(
            "POST", TOKEN_URL, json_body={"access_token": "a", "expires_in": 60, "refresh_token": "refresh-2"}
        )
        ok, _ = self.manager.refresh()
        self.assertTrue(ok)
        self.assertEqual(self.manager.state.refresh_token, "refresh-2")

    def test_ignores_empty_new_refresh_token(self):
        self.fake.route("POST", TOKEN_URL, json_body={"access_token": "a", "expires_in": 60, "refresh_token": ""})
        self.manager.refresh()
        self.assertEqual(self.manager.state.refresh_token, "refresh-1")

    def test_error_response_keeps_token_and_logs_out(self):
        self.fake.route(
            "POST",
            TOKEN_URL,
            400,
            json_body={"error": "invalid_grant", "error_description": "Refresh token revoked"},
        )

        with self.assertLogs("spotify_poller", level="ERROR"):
            ok, log = self.manager.refresh()

        self.assertFalse(ok)
        self.assertEqual(self.manager.state.access_token, "access-1")
        self.assertEqual(self.manager.state.expires_at, NOW + 3600)
        self.assertFalse(self.manager.state.logged_in)
        self.assertIn("invalid_grant", log)
        self.assertEqual(len(self.persisted), 1)

    def test_empty_refresh_token_sends_nothing_and_changes_nothing(self):
        self.manager.state.refresh_token = ""
        before = self.manager.state.copy()

        for _ in range(2):
            ok, log = self.manager.refresh()
            self.assertFalse(ok)
            self.assertIn("Refresh token is empty", log)

        self.assertEqual(self.manager.state, before)
        self.assertEqual(self.fake.requests, [])
        self.assertEqual(len(self.persisted), 2)

    def test_log_redacts_tokens(self):
        self.fake.route(
            "POST", TOKEN_URL, json_body={"access_token": "secret-a", "expires_in": 60, "refresh_token": "secret-r"}
        )
        with self.assertLogs("spotify_poller", level="INFO") as captured:
            ok, log = self.manager.refresh()

        self.assertTrue(ok)
        self.assertNotIn("secret-a", log)
        self.assertNotIn("secret-r", log)
        self.assertEqual(json.loads(log)["access_token"], "REDACTED")
        self.assertFalse(any("secret-a" in line for line in captured.output))

    def test_network_failure_keeps_state(self):
        self.fake.fail("POST", TOKEN_URL)
        before = self.manager.state.copy()
        with self.assertLogs("spotify_poller", level="ERROR"):
            ok, _ = self.manager.refresh()
        self.assertFalse(ok)
        self.assertEqual(self.manager.state, before)

    def test_is_expired(self):
        self.assertFalse(self.manager.is_expired())
        self.assertFalse(self.manager.is_expired(now=NOW + 3600))
        self.assertTrue(self.manager.is_expired(now=NOW + 3601))


class TestExchangeAuthCode(TokenTestCase):
    def setUp(self):
        super().setUp()
        self.manager.reload(logged_in_config(spotify_token="", spotify_refresh_token="", spotify_logged_in=False))

    def test_success_requires_both_tokens(self):
        self.fake.route(
            "POST", TOKEN_URL, json_body={"access_token": "a", "refresh_token": "r", "expires_in": 3600}
        )

        ok, _ = self.manager.exchange_auth_code("the-code")

        self.assertTrue(ok)
        self.assertEqual(self.manager.state.access_token, "a")
        self.assertEqual(self.manager.state.refresh_token, "r")
        self.assertEqual(self.manager.state.expires_at, NOW + 3600)
        self.assertTrue(self.manager.state.logged_in)
        self.assertEqual(self.manager.state.auth_code, "")
        form = FakeSpotify.form(self.fake.calls("POST", TOKEN_URL)[0])
        self.assertEqual(form["grant_type"], "authorization_code")
        self.assertEqual(form["code"], "the-code")
        self.assertEqual(form["redirect_uri"], "http://localhost:8888/callback")

    def test_missing_refresh_token_fails(self):
        self.fake.route("POST", TOKEN_URL, json_body={"access_token": "a", "expires_in": 3600})

        with self.assertLogs("spotify_poller", level="ERROR"):
            ok, _ = self.manager.exchange_auth_code("the-code")

        self.assertFalse(ok)
        self.assertEqual(self.manager.state.access_token, "")
        self.assertFalse(self.manager.state.logged_in)
        self.assertEqual(len(self.persisted), 1)

    def test_empty_code_sends_nothing(self):
        with self.assertLogs("spotify_poller", level="ERROR"):
            ok, _ = self.manager.exchange_auth_code("")
        self.assertFalse(ok)
        self.assertEqual(self.fake.requests, [])


class TestCredentialsAndUrls(unittest.TestCase):
    def test_build_credentials_from_id_and_secret(self):
        blob = build_credentials({"spotify_client_id": "id", "spotify_client_secret": "sec"})
        self.assertEqual(base64.b64decode(blob), b"id:sec")

    def test_build_credentials_fallback_blob(self):
        blob = base64.b64encode(b"x:y").decode("ascii")
        self.assertEqual(build_credentials({"spotify_client_id": "id", "spotify_credentials": blob}), blob)

    def test_authorize_url(self):
        url = get_authorize_url({"spotify_client_id": "id", "spotify_redirect_uri": "http://localhost/cb"})
        self.assertIn("accounts.spotify.com/authorize", url)
        self.assertIn("response_type=code", url)
        self.assertIn("user-read-playback-state", url)

    def test_extract_code_from_redirect_url(self):
        parsed = extract_code_from_redirect_url("http://localhost:8888/callback?code=AAA&state=BBB")
        self.assertEqual(parsed.get("code"), "AAA")
        self.assertEqual(parsed.get("state"), "BBB")

    def test_token_state_config_roundtrip(self):
        state = TokenState("a", "r", "", 123, True)
        self.assertEqual(TokenState.from_config(state.to_config()), state)


if __name__ == "__main__":
    unittest.main(verbosity=2)
