"""cfg.bin Text Editor - Main orchestrator.

Coordinates reading a cfg.bin, exporting its text fields, importing
edited text and writing the re-encoded file. Files in a batch are
processed one after another; a failure is logged and reported in that
file's EditResult without stopping the batch.
"""

import os
import traceback
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from config.settings import Settings
from constants import CFGBIN_SUFFIX, MODE_NNK, TEXT_EXTENSIONS
from services.cfgbin_editor.address_patcher import encode_nnk
from services.cfgbin_editor.container import Container
from services.cfgbin_editor.errors import CfgBinError
from services.cfgbin_editor.text_fields import apply_edits, extract
from services.cfgbin_editor.text_io import dump_fields, load_edits
from utils.logging import log_error, log_warning


@dataclass
class EditResult:
    """Result of an extract or update operation on one file."""

    success: bool
    source_path: str = ""
    output_path: str = ""
    error: str = ""
    fields: int = 0
    changed: int = 0
    unresolved: int = 0


def find_cfgbin_files(folder: str, recursive: bool = True, skip_suffix: str = "") -> List[str]:
    """List *.cfg.bin files under folder, sorted, skipping earlier outputs."""
    found = []
    for root, dirs, files in os.walk(folder):
        dirs.sort()
        for name in sorted(files):
            if not name.lower().endswith(CFGBIN_SUFFIX):
                continue
            if skip_suffix and name[: -len(CFGBIN_SUFFIX)].endswith(skip_suffix):
                continue
            found.append(os.path.join(root, name))
        if not recursive:
            break
    return found


def default_text_path(cfg_path: str, text_format: str) -> str:
    """a.cfg.bin -> a.cfg.bin.json / a.cfg.bin.txt"""
    return cfg_path + TEXT_EXTENSIONS[text_format]


def default_output_path(cfg_path: str, suffix: str) -> str:
    """a.cfg.bin -> a_updated.cfg.bin, next to the input."""
    directory, name = os.path.split(cfg_path)
    if name.lower().endswith(CFGBIN_SUFFIX):
        stem, ext = name[: -len(CFGBIN_SUFFIX)], name[-len(CFGBIN_SUFFIX):]
    else:
        stem, ext = os.path.splitext(name)
    return os.path.join(directory, f"{stem}{suffix}{ext}")


class CfgBinEditor:
    """Extracts and updates the text of cfg.bin files.

    Supports two modes:
      - "standard": fields numbered in order, file fully rebuilt
      - "nnk": fields keyed by address, only the string table rewritten
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        on_status: Optional[Callable[[str], None]] = None,
        extra_names: Optional[Iterable[str]] = None,
    ):
        self.settings = settings or Settings()
        self.on_status = on_status
        self.extra_names = list(extra_names or [])

    def _status(self, message: str):
        if self.on_status:
            self.on_status(message)

    def load(self, cfg_path: str) -> Container:
        """Read and decode a cfg.bin, warning about unresolved entry names."""
        with open(cfg_path, "rb") as f:
            data = f.read()
        container = Container.decode(data, self.extra_names)
        if container.unresolved:
            names = ", ".join(f"0x{crc:08X}" for crc in container.unresolved[:10])
            log_warning(
                f"{cfg_path}: {len(container.unresolved)} entry name(s) not in key table: {names}"
            )
        return container

    def extract(
        self,
        cfg_path: str,
        output_path: Optional[str] = None,
        mode: Optional[str] = None,
        text_format: Optional[str] = None,
    ) -> EditResult:
        """Export text fields of one cfg.bin to JSON or TXT."""
        mode = mode or self.settings.mode
        text_format = text_format or self.settings.text_format
        output_path = output_path or default_text_path(cfg_path, text_format)

        try:
            container = self.load(cfg_path)
            fields = extract(container, mode)
            content = dump_fields(fields, text_format, mode, self.settings.json_indent)
            with open(output_path, "w", encoding="utf-8", newline="\n") as f:
                f.write(content)
        except (CfgBinError, OSError, ValueError) as e:
            log_error(f"Extract failed for {cfg_path}: {e}", type(e).__name__, traceback.format_exc())
            return EditResult(success=False, source_path=cfg_path, error=str(e))

        self._status(f"Extracted {len(fields)} text entries to {output_path}")
        return EditResult(
            success=True,
            source_path=cfg_path,
            output_path=output_path,
            fields=len(fields),
            unresolved=len(container.unresolved),
        )

    def update(
        self,
        cfg_path: str,
        text_path: Optional[str] = None,
        output_path: Optional[str] = None,
        mode: Optional[str] = None,
        text_format: Optional[str] = None,
    ) -> EditResult:
        """Apply an edited JSON/TXT file and write the re-encoded cfg.bin.

        Nothing is written when the edit set does not match the file.
        """
        mode = mode or self.settings.mode
        text_format = text_format or self.settings.text_format
        text_path = text_path or default_text_path(cfg_path, text_format)
        output_path = output_path or default_output_path(cfg_path, self.settings.output_suffix)

        try:
            container = self.load(cfg_path)
            fields = extract(container, mode)
            with open(text_path, "r", encoding="utf-8-sig") as f:
                content = f.read()
            edits = load_edits(content, fields, text_format, mode)
            changed = apply_edits(container, edits, mode)

            if mode == MODE_NNK:
                output = encode_nnk(container)
            else:
                output = container.encode_standard()

            output_dir = os.path.dirname(output_path)
            if output_dir:
                os.makedirs(output_dir, exist_ok=True)
            with open(output_path, "wb") as f:
                f.write(output)
        except (CfgBinError, OSError, ValueError) as e:
            log_error(f"Update failed for {cfg_path}: {e}", type(e).__name__, traceback.format_exc())
            return EditResult(success=False, source_path=cfg_path, error=str(e))

        self._status(f"Written {output_path} ({len(edits)} text entries, {changed} changed)")
        return EditResult(
            success=True,
            source_path=cfg_path,
            output_path=output_path,
            fields=len(fields),
            changed=changed,
            unresolved=len(container.unresolved),
        )

    def batch_extract(
        self,
        folder: str,
        on_progress: Optional[Callable[[float, str], None]] = None,
    ) -> List[EditResult]:
        """Extract every cfg.bin under folder."""
        files = find_cfgbin_files(folder, self.settings.recursive, self.settings.output_suffix)
        results = []
        for i, path in enumerate(files):
            if on_progress:
                on_progress(i / len(files), f"Extracting {os.path.basename(path)}...")
            results.append(self.extract(path))

        if on_progress:
            on_progress(1.0, "Complete")
        return results

    def batch_update(
        self,
        folder: str,
        on_progress: Optional[Callable[[float, str], None]] = None,
    ) -> List[EditResult]:
        """Update every cfg.bin under folder that has a sibling text file."""
        text_format = self.settings.text_format
        files = find_cfgbin_files(folder, self.settings.recursive, self.settings.output_suffix)
        results = []
        for i, path in enumerate(files):
            text_path = default_text_path(path, text_format)
            if not os.path.exists(text_path):
                self._status(f"Skipping {path}: no {os.path.basename(text_path)}")
                continue
            if on_progress:
                on_progress(i / len(files), f"Updating {os.path.basename(path)}...")
            results.append(self.update(path, text_path))

        if on_progress:
            on_progress(1.0, "Complete")
        return results
