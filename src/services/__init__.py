"""
Services layer for the cfg.bin Text Editor.
Handles decoding, text extraction and re-encoding of cfg.bin containers.
"""

from .cfgbin_editor import (
    CfgBinEditor,
    Container,
    EditResult,
)

__all__ = [
    'CfgBinEditor',
    'Container',
    'EditResult',
]
