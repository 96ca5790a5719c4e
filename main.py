import json
import threading

from config import CONFIG_PATH, SettingsStore, get_config_value
from menus.config_menu import config_menu
from menus.control_menu import control_menu
from menus.login_menu import login_menu
from menus.main_menu import main_menu
from spotify_poller import SpotifySource
from utils.logger import log_debug, log_error, log_info, setup_logging


def poll_loop(source: SpotifySource, interval_ms: int, stop: threading.Event) -> None:
    """Fixed-interval driver for the poller; runs until stop is set."""
    while not stop.is_set():
        try:
            state = source.refresh()
            log_debug(f"Poll cycle finished: {state.value}")
        except Exception as e:
            # One broken cycle must not kill the driver thread.
            log_error(f"Spotify refresh failed: {e}")
        stop.wait(max(0.1, interval_ms / 1000.0))


if __name__ == "__main__":
    setup_logging(get_config_value("log_level", "INFO"))

    store = SettingsStore(CONFIG_PATH)
    try:
        config = store.load()
    except FileNotFoundError as e:
        log_error(f"Config file not found: {e}")
        log_error("Please create config.json with required settings.")
        exit(1)
    except json.JSONDecodeError as e:
        log_error(f"Config file contains invalid JSON: {e}")
        exit(1)

    source = SpotifySource(config, store=store)
    source.load()

    stop = threading.Event()
    poller = threading.Thread(
        target=poll_loop,
        args=(source, int(config.get("refresh_rate_ms", 1000)), stop),
        name="spotify-poll",
        daemon=True,
    )
    poller.start()

    try:
        while True:
            choice = main_menu()

            if choice == "Now Playing":
                control_menu(source)

            elif choice == "Log in to Spotify":
                login_menu(source)

            elif choice == "Config Menu":
                config = config_menu(store, source=source)

            elif choice == "Exit":
                log_info("Exiting program...")
                break
    finally:
        stop.set()
        poller.join(timeout=5)
        source.close()
