import questionary


def main_menu() -> str:
    return questionary.select(
        "🎧 Spotify Now Playing — Main Menu",
        choices=[
            "Now Playing",
            "Log in to Spotify",
            "Config Menu",
            "Exit",
        ]
    ).ask() or "Exit"
