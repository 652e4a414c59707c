"""
Configuration management for the cfg.bin Text Editor.
"""

from .settings import (
    load_settings,
    save_settings,
    get_default_settings,
    load_known_names,
    Settings,
)

__all__ = [
    'load_settings',
    'save_settings',
    'get_default_settings',
    'load_known_names',
    'Settings',
]
