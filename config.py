import copy
import json
import os
import threading
from typing import Any, Dict, Optional

CONFIG_PATH = "config.json"

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify app credentials. When no secret is set the precomputed
    # spotify_credentials blob (or SPOTIFY_CREDENTIALS env var) is used.
    "spotify_client_id": "847d7cf0c5dc4ff185161d1f000a9d0e",
    "spotify_client_secret": "",
    "spotify_credentials": "",
    "spotify_redirect_uri": "https://univrsal.github.io/auth/token",
    "spotify_scopes": [
        "user-read-playback-state",
        "user-modify-playback-state",
        "user-read-currently-playing",
    ],

    # Token state (written back after every token change)
    "spotify_token": "",
    "spotify_refresh_token": "",
    "spotify_auth_code": "",
    "spotify_token_expires_at": 0,
    "spotify_logged_in": False,

    # Request behavior
    "spotify_request_timeout_ms": 1000,
    "spotify_resume_from_start": True,
    "refresh_rate_ms": 1000,

    "log_level": "INFO",
}

TOKEN_KEYS = (
    "spotify_token",
    "spotify_refresh_token",
    "spotify_auth_code",
    "spotify_token_expires_at",
    "spotify_logged_in",
)

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": False},
    "spotify_client_secret": {"type": str, "required": False},
    "spotify_credentials": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": True},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},

    "spotify_token": {"type": str, "required": False},
    "spotify_refresh_token": {"type": str, "required": False},
    "spotify_auth_code": {"type": str, "required": False},
    "spotify_token_expires_at": {"type": int, "required": False, "min": 0},
    "spotify_logged_in": {"type": bool, "required": False},

    "spotify_request_timeout_ms": {"type": int, "required": False, "min": 100, "max": 60000},
    "spotify_resume_from_start": {"type": bool, "required": False},
    "refresh_rate_ms": {"type": int, "required": False, "min": 100, "max": 60000},

    "log_level": {
        "type": str,
        "required": False,
        "choices": ["DEBUG", "INFO", "WARNING", "ERROR"],
    },
}


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file {path} not found.")

    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def save_config(config: Dict[str, Any], path: str = CONFIG_PATH) -> bool:
    """Save configuration to file (atomically, via a temp file)."""
    tmp = f"{path}.tmp"
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        os.replace(tmp, path)
        return True
    except OSError as e:
        raise IOError(f"Failed to save config: {e}") from e


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        expected_type = rules.get("type")
        # bool is an int subclass; don't let True pass as a number.
        if expected_type is int and isinstance(value, bool):
            errors.append(f"Field '{key}' must be int, got bool")
            continue
        if expected_type and not isinstance(value, expected_type):
            errors.append(f"Field '{key}' must be {expected_type.__name__}, got {type(value).__name__}")
            continue

        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def update_config(key: str, value: Any, path: str = CONFIG_PATH) -> tuple[bool, str]:
    """
    Update a single config field with validation.
    Returns (success, message).
    """
    config = load_config(path)

    if key not in CONFIG_SCHEMA:
        return False, f"Unknown config key: {key}"

    test_config = config.copy()
    test_config[key] = value

    is_valid, errors = validate_config(test_config)
    if not is_valid:
        return False, f"Validation failed: {', '.join(errors)}"

    config[key] = value
    save_config(config, path)

    return True, f"Updated '{key}' to '{value}'"


def reset_to_defaults(path: str = CONFIG_PATH) -> tuple[bool, str]:
    """Reset configuration to default values."""
    try:
        save_config(DEFAULT_CONFIG, path)
        return True, "Configuration reset to defaults"
    except IOError as e:
        return False, f"Failed to reset config: {e}"


def get_config_value(key: str, default: Any = None, path: str = CONFIG_PATH) -> Any:
    """Get a single config value with optional default."""
    try:
        config = load_config(path)
        return config.get(key, default)
    except (OSError, json.JSONDecodeError):
        return default


class SettingsStore:
    """Owns the loaded settings and writes them back to disk.

    The same lock guards configuration load/save and reads of the current
    playback record, so a reload never interleaves with a poll cycle write.
    """

    def __init__(self, path: str = CONFIG_PATH, *, config: Optional[Dict[str, Any]] = None):
        self.path = path
        self.lock = threading.RLock()
        self.config: Dict[str, Any] = dict(config) if config is not None else {}

    def load(self) -> Dict[str, Any]:
        with self.lock:
            self.config = load_config(self.path)
            return dict(self.config)

    def save(self) -> bool:
        with self.lock:
            return save_config(self.config, self.path)

    def persist_tokens(self, state) -> None:
        """Write every token field, in full, whenever any of them changed."""
        with self.lock:
            values = state.to_config()
            self.config.update({k: values[k] for k in TOKEN_KEYS})
            save_config(self.config, self.path)

    def update(self, key: str, value: Any) -> tuple[bool, str]:
        """Validate and save one setting without racing token persistence."""
        with self.lock:
            try:
                success, message = update_config(key, value, self.path)
            except IOError as e:
                return False, str(e)
            if success:
                self.config = load_config(self.path)
        return success, message

    def reset(self) -> tuple[bool, str]:
        """Replace every setting, token fields included, with the defaults."""
        with self.lock:
            success, message = reset_to_defaults(self.path)
            if success:
                self.config = copy.deepcopy(DEFAULT_CONFIG)
        return success, message
