import webbrowser

import questionary
from spotify_poller.tokens import check_spotify_credentials
from utils.logger import log_error, log_info, log_success, log_warning


def login_menu(source) -> bool:
    """Walk the user through the authorization-code login.

    Returns True when a token pair was obtained.
    """
    status = check_spotify_credentials(source.config)
    if not status["ok"]:
        log_error(status["message"])
        return False
    if status["credentials_source"] == "fallback":
        log_warning("Using the built-in Spotify app credentials.")

    url = source.authorize_url()
    print("\nOpen this URL, log in and approve access:\n")
    print(f"  {url}\n")

    if questionary.confirm("Open it in your browser now?", default=True).ask():
        try:
            webbrowser.open(url)
        except webbrowser.Error as e:
            log_warning(f"Could not open a browser: {e}")

    answer = questionary.text("Paste the authorization code (or the full redirect URL):").ask()
    if not answer:
        log_info("Login cancelled.")
        return False

    ok, log = source.new_token(answer)
    if log:
        print("\nSpotify response:\n" + log)

    if ok:
        log_success("Logged in to Spotify")
    else:
        log_error("Spotify login failed")
    return ok
