"""
Settings management for the cfg.bin Text Editor.
Handles loading, saving, and managing application settings.
"""

import json
import os
import traceback
from dataclasses import dataclass, asdict
from typing import Dict, Any, List, Optional

from constants import (
    CONFIG_FILE,
    DEFAULT_OUTPUT_SUFFIX,
    EDIT_MODES,
    MODE_STANDARD,
    TEMP_LOG_DIR,
    TEXT_EXTENSIONS,
)


@dataclass
class Settings:
    """Application settings with default values."""

    mode: str = MODE_STANDARD  # "standard" or "nnk"
    text_format: str = "json"  # "json" or "txt"
    output_suffix: str = DEFAULT_OUTPUT_SUFFIX
    json_indent: int = 2
    names_file: str = ""  # newline-separated extra entry names
    recursive: bool = True  # batch commands descend into subfolders
    log_dir: str = ""

    def __post_init__(self):
        """Fall back to defaults for empty or unsupported values."""
        if self.mode not in EDIT_MODES:
            self.mode = MODE_STANDARD
        if self.text_format not in TEXT_EXTENSIONS:
            self.text_format = "json"
        if not self.log_dir:
            self.log_dir = TEMP_LOG_DIR

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Create Settings from dictionary."""
        # Filter out unknown keys
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_data = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered_data)


def get_default_settings() -> Dict[str, Any]:
    """Get default settings as a dictionary."""
    return Settings().to_dict()


def load_settings(config_file: Optional[str] = None) -> Settings:
    """
    Load settings from config file.

    Args:
        config_file: Path to the JSON config. Defaults to CONFIG_FILE.

    Returns:
        Settings with defaults for missing values
    """
    path = config_file or CONFIG_FILE
    settings = get_default_settings()

    try:
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                loaded_settings = json.load(f)
                # Merge with defaults to handle new settings
                settings.update(loaded_settings)
        else:
            # Create config file with defaults
            save_settings(settings, path)
    except Exception as e:
        from utils.logging import log_error

        log_error(
            "Failed to load settings, using defaults",
            type(e).__name__,
            traceback.format_exc(),
        )

    return Settings.from_dict(settings)


def save_settings(settings_to_save: Dict[str, Any], config_file: Optional[str] = None) -> bool:
    """
    Save settings to config file.

    Args:
        settings_to_save: Dictionary of settings to save
        config_file: Path to the JSON config. Defaults to CONFIG_FILE.

    Returns:
        True if successful, False otherwise
    """
    path = config_file or CONFIG_FILE
    try:
        # Create directory if it doesn't exist
        config_dir = os.path.dirname(path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(settings_to_save, f, indent=2)
        return True
    except Exception as e:
        from utils.logging import log_error

        log_error("Failed to save settings", type(e).__name__, traceback.format_exc())
        return False


def load_known_names(names_file: str) -> List[str]:
    """
    Read an extra name list used to resolve entry CRC32s.

    One name per line; blank lines and lines starting with '#' are ignored.

    Returns:
        List of names, empty if the file is not configured or missing
    """
    if not names_file or not os.path.exists(names_file):
        return []

    names = []
    with open(names_file, "r", encoding="utf-8") as f:
        for line in f:
            name = line.strip()
            if name and not name.startswith("#"):
                names.append(name)
    return names
