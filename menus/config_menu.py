import questionary
from config import validate_config, CONFIG_SCHEMA, TOKEN_KEYS
from utils.logger import log_error, log_success

# Secrets are shown masked and token fields are never edited by hand.
SECRET_KEYS = {"spotify_client_secret", "spotify_credentials", "spotify_token", "spotify_refresh_token", "spotify_auth_code"}
EDITABLE_KEYS = [k for k in CONFIG_SCHEMA if k not in TOKEN_KEYS]


def config_menu(store, source=None) -> dict:
    """
    Display the configuration menu and handle user selections.
    Every write goes through the settings store so it cannot race token
    persistence from the poll thread. Returns the current config dict.
    """
    config = store.load()
    while True:
        choice = questionary.select(
            "⚙️ Config Menu — What would you like to do?",
            choices=[
                "View current config",
                "Update a setting",
                "Toggle resume-from-start",
                "Reset to defaults",
                "Validate configuration",
                "Back"
            ]
        ).ask()

        if choice == "View current config":
            view_config(config)

        elif choice == "Update a setting":
            config = update_setting_menu(config, store)

        elif choice == "Toggle resume-from-start":
            config = toggle_resume_menu(config, store)

        elif choice == "Reset to defaults":
            config = reset_config_menu(config, store)

        elif choice == "Validate configuration":
            validate_config_menu(config)

        else:
            break

        config = store.load()
        if source is not None:
            source.load(config)

    return config


def _display_value(key: str, value):
    if key in SECRET_KEYS and value:
        return "********"
    if isinstance(value, bool):
        return "✓ Enabled" if value else "✗ Disabled"
    return value


def view_config(config: dict):
    """Display the current configuration in a readable format."""
    print("\n" + "=" * 50)
    print("📋 Current Configuration")
    print("=" * 50)

    categories = {
        "Spotify App": ["spotify_client_id", "spotify_client_secret", "spotify_credentials",
                        "spotify_redirect_uri", "spotify_scopes"],
        "Login": ["spotify_logged_in", "spotify_token", "spotify_refresh_token", "spotify_token_expires_at"],
        "Polling": ["refresh_rate_ms", "spotify_request_timeout_ms", "spotify_resume_from_start"],
        "Logging": ["log_level"],
    }

    for category, keys in categories.items():
        print(f"\n{category}:")
        for key in keys:
            if key in config:
                print(f"  {key}: {_display_value(key, config[key])}")

    print("\n" + "=" * 50)
    input("\nPress Enter to continue...")


def update_setting_menu(config: dict, store) -> dict:
    """Menu to update individual settings."""
    key = questionary.select(
        "Select setting to update:",
        choices=EDITABLE_KEYS + ["Back"]
    ).ask()

    if key in (None, "Back"):
        return config

    schema = CONFIG_SCHEMA.get(key, {})
    current_value = config.get(key, "Not set")

    print(f"\nCurrent value: {_display_value(key, current_value)}")

    if "choices" in schema:
        new_value = questionary.select(
            f"Select new value for {key}:",
            choices=schema["choices"]
        ).ask()

    elif schema.get("type") == bool:
        new_value = questionary.confirm(
            f"Enable {key}?",
            default=current_value if isinstance(current_value, bool) else True
        ).ask()

    elif schema.get("type") == int:
        min_val = schema.get("min", 0)
        max_val = schema.get("max", 9999)
        new_value_str = questionary.text(
            f"Enter new value for {key} ({min_val}-{max_val}):",
            default=str(current_value) if current_value != "Not set" else ""
        ).ask()
        try:
            new_value = int(new_value_str)
        except (TypeError, ValueError):
            log_error("Invalid number format")
            return config

    elif schema.get("type") == list:
        new_value_str = questionary.text(
            f"Enter space-separated values for {key}:",
            default=" ".join(current_value) if isinstance(current_value, list) else ""
        ).ask()
        new_value = (new_value_str or "").split()

    elif key in SECRET_KEYS:
        new_value = questionary.password(f"Enter new value for {key}:").ask()

    else:
        new_value = questionary.text(
            f"Enter new value for {key}:",
            default=str(current_value) if current_value != "Not set" else ""
        ).ask()

    if new_value is None:
        return config

    success, message = store.update(key, new_value)

    if success:
        log_success(message if key not in SECRET_KEYS else f"Updated '{key}'")
        config[key] = new_value
    else:
        log_error(message)

    return config


def toggle_resume_menu(config: dict, store) -> dict:
    """Toggle whether play/pause restarts a paused track from the beginning."""
    new_value = not config.get("spotify_resume_from_start", True)
    success, message = store.update("spotify_resume_from_start", new_value)

    if success:
        config["spotify_resume_from_start"] = new_value
        status = "enabled" if new_value else "disabled"
        log_success(f"Resume from start {status}")
    else:
        log_error(message)

    return config


def reset_config_menu(config: dict, store) -> dict:
    """Menu to reset configuration to defaults."""
    confirm = questionary.confirm(
        "⚠️ Reset all settings to defaults? This logs you out of Spotify.",
        default=False
    ).ask()

    if confirm:
        success, message = store.reset()

        if success:
            log_success(message)
            config = dict(store.config)
        else:
            log_error(message)

    return config


def validate_config_menu(config: dict):
    """Validate the current configuration and show any errors."""
    is_valid, errors = validate_config(config)

    print("\n" + "=" * 50)
    print("🔍 Configuration Validation")
    print("=" * 50)

    if is_valid:
        log_success("Configuration is valid! ✓")
    else:
        log_error("Configuration has errors:")
        for error in errors:
            print(f"  ✗ {error}")

    print("=" * 50)
    input("\nPress Enter to continue...")
