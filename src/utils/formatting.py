"""
Formatting utilities for the cfg.bin Text Editor.
Provides functions for formatting sizes and field addresses.
"""


def format_size(size_bytes: float) -> str:
    """
    Convert bytes to human readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string with appropriate unit (B, KB, MB, GB, TB)
    """
    for unit in ["B", "KB", "MB", "GB"]:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


def format_address(address: int) -> str:
    """Render an absolute file address the way NNK JSON keys are written."""
    return f"0x{address:08X}"


def parse_address(text: str) -> int:
    """
    Parse an NNK JSON address key.

    Accepts "0x"-prefixed or bare hexadecimal, any case.

    Raises:
        ValueError: If the key is not hexadecimal
    """
    text = text.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    return int(text, 16)
