import json

import questionary
from spotify_poller.commands import Capability
from utils.logger import log_info, log_warning

ACTIONS = {
    "⏯ Play / Pause": Capability.PLAY_PAUSE,
    "⏭ Next": Capability.NEXT,
    "⏮ Previous": Capability.PREVIOUS,
    "⏹ Stop": Capability.STOP,
}


def format_now_playing(record) -> str:
    """One line summary of a playback record."""
    if not record.title:
        return "Nothing playing."

    artists = ", ".join(a for a in record.artists if a) or "Unknown artist"
    line = f"[{record.status.value}] {artists} — {record.title}"
    if record.album:
        line += f" ({record.album}"
        if record.release_year:
            line += f", {record.release_year}"
        line += ")"
    if record.duration_ms:
        line += f"  {record.progress_ms // 60000}:{record.progress_ms // 1000 % 60:02d}"
        line += f" / {record.duration_ms // 60000}:{record.duration_ms // 1000 % 60:02d}"
    if record.playlist_name:
        line += f"  ♫ {record.playlist_name}"
    return line


def control_menu(source):
    """Show the current track and send playback commands."""
    while True:
        print("\n" + format_now_playing(source.snapshot()))

        choices = [label for label, cap in ACTIONS.items() if cap in source.capabilities]
        choice = questionary.select(
            "🎵 Playback — What would you like to do?",
            choices=["Refresh", "Show details"] + choices + ["Back"]
        ).ask()

        if choice in (None, "Back"):
            break
        if choice == "Refresh":
            continue
        if choice == "Show details":
            print(json.dumps(source.snapshot().to_dict(), indent=2))
            continue

        if not source.logged_in:
            log_warning("Not logged in to Spotify.")
            continue

        if source.execute_capability(ACTIONS[choice]):
            log_info(f"Sent: {choice}")
