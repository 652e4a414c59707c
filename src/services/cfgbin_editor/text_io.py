"""JSON/TXT export and import of text fields for manual translation.

Formats:
  - Standard JSON: [{"index", "entry", "variable_index", "value"}, ...]
  - NNK JSON: {"0x%08X": value, ...} keyed by reference address
  - TXT: one field per line in extraction order, with \\n, \\r and \\\\
    escaped

An empty value is written back as an empty string, never as a null
reference.
"""

import json
import re
from typing import Any, Dict, List

from constants import MODE_NNK
from services.cfgbin_editor.errors import KeyCountMismatch, LineCountMismatch
from services.cfgbin_editor.models import TextField
from services.cfgbin_editor.text_fields import field_key
from utils.formatting import format_address, parse_address

# Some files open with a save timestamp followed by two more fixed fields
# that translators leave out of their TXT
_TIMESTAMP_RE = re.compile(r"^\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2}$")
TIMESTAMP_SKIP = 3

_ESCAPES = {"n": "\n", "r": "\r", "\\": "\\"}


# ──────────────────────────────────────────────────────────────
# TXT escaping
# ──────────────────────────────────────────────────────────────


def escape_txt(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")


def unescape_txt(line: str) -> str:
    out = []
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "\\" and i + 1 < len(line) and line[i + 1] in _ESCAPES:
            out.append(_ESCAPES[line[i + 1]])
            i += 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


# ──────────────────────────────────────────────────────────────
# Export
# ──────────────────────────────────────────────────────────────


def to_standard_json(fields: List[TextField]) -> List[Dict[str, Any]]:
    return [
        {
            "index": f.sequence_index,
            "entry": f.entry_name,
            "variable_index": f.variable_index,
            "value": f.value,
        }
        for f in fields
    ]


def to_nnk_json(fields: List[TextField]) -> Dict[str, str]:
    return {format_address(f.absolute_address): f.value for f in fields}


def to_txt(fields: List[TextField]) -> str:
    return "".join(escape_txt(f.value) + "\n" for f in fields)


def dump_fields(fields: List[TextField], text_format: str, mode: str, indent: int = 2) -> str:
    """Render fields in the requested exchange format."""
    if text_format == "txt":
        return to_txt(fields)
    data = to_nnk_json(fields) if mode == MODE_NNK else to_standard_json(fields)
    return json.dumps(data, indent=indent, ensure_ascii=False) + "\n"


# ──────────────────────────────────────────────────────────────
# Import
# ──────────────────────────────────────────────────────────────


def edits_from_standard_json(data: Any) -> Dict[int, str]:
    """Read index -> value pairs. Other keys of each item are informational."""
    if not isinstance(data, list):
        raise ValueError("Standard JSON must be an array of field objects")

    edits = {}
    for item in data:
        if not isinstance(item, dict) or "index" not in item or "value" not in item:
            raise ValueError(f"Field object needs 'index' and 'value': {item!r}")
        index = item["index"]
        value = item["value"]
        if not isinstance(index, int) or isinstance(index, bool) or not isinstance(value, str):
            raise ValueError(f"Field object has a bad 'index' or 'value': {item!r}")
        edits[index] = value
    return edits


def edits_from_nnk_json(data: Any, fields: List[TextField]) -> Dict[int, str]:
    """Read address -> value pairs; the key set must equal the extracted addresses."""
    if not isinstance(data, dict):
        raise ValueError("NNK JSON must be an object of address -> text")

    edits = {}
    for key, value in data.items():
        if not isinstance(value, str):
            raise ValueError(f"NNK JSON value for {key} is not a string")
        edits[parse_address(key)] = value

    expected = {f.absolute_address for f in fields}
    if set(edits) != expected:
        raise KeyCountMismatch(expected - set(edits), set(edits) - expected)
    return edits


def split_txt_lines(content: str) -> List[str]:
    if not content:
        return []
    if content.endswith("\n"):
        content = content[:-1]
    return [line[:-1] if line.endswith("\r") else line for line in content.split("\n")]


def edits_from_txt(content: str, fields: List[TextField], mode: str) -> Dict[int, str]:
    """Map TXT lines onto fields in extraction order.

    The line count must equal the field count, except that when field 0 is
    a YYYY/MM/DD HH:MM:SS timestamp the first three fields may be omitted.
    """
    lines = split_txt_lines(content)
    expected = len(fields)

    if len(lines) == expected:
        targets = fields
    elif (
        expected >= TIMESTAMP_SKIP
        and len(lines) == expected - TIMESTAMP_SKIP
        and _TIMESTAMP_RE.match(fields[0].value)
    ):
        targets = fields[TIMESTAMP_SKIP:]
    else:
        raise LineCountMismatch(expected, len(lines))

    return {field_key(f, mode): unescape_txt(line) for f, line in zip(targets, lines)}


def load_edits(content: str, fields: List[TextField], text_format: str, mode: str) -> Dict[int, str]:
    """Parse an exchange file's content into an edit set for the given mode."""
    if text_format == "txt":
        return edits_from_txt(content, fields, mode)

    data = json.loads(content)
    if mode == MODE_NNK:
        return edits_from_nnk_json(data, fields)
    return edits_from_standard_json(data)
