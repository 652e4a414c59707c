"""Data models for the cfg.bin codec.

A cfg.bin container is laid out as:
  [16B header: entry_count, string_table_offset, string_table_length,
   string_table_count (all u32 LE)]
  [entries: crc32, param_count, 2-bit type descriptor, 4B payloads]
  [string table: null-terminated strings, 0xFF-padded to 16]
  [key table: header + (crc32, offset) records + name pool, 16-aligned]
  [footer: magic 0x62327401 + encoding flag, 0xFF-padded to 16]

Entries form a flat list. Names ending in BEGIN/BEG/START open a scope and
names ending in END close one; the scope is derived from the name and is
never stored.
"""

import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple, Union


HEADER_SIZE = 0x10
SECTION_ALIGNMENT = 16
ENTRY_ALIGNMENT = 4
PAD_BYTE = 0xFF
NULL_OFFSET = -1

FOOTER_MAGIC = 0x62327401

# Type code -> 2-bit tag
TYPE_STRING = 0
TYPE_INT = 1
TYPE_FLOAT = 2
TYPE_UNKNOWN = 3

_BEGIN_SUFFIXES = ("BEGIN", "BEG", "START", "PTREE")
_END_SUFFIXES = ("END",)


class VariableType(Enum):
    STRING = TYPE_STRING
    INT = TYPE_INT
    FLOAT = TYPE_FLOAT
    UNKNOWN = TYPE_UNKNOWN


class TextEncoding(Enum):
    """Text encoding recorded by the footer flag (0 = Shift-JIS)."""

    SHIFT_JIS = "cp932"
    UTF8 = "utf-8"

    @classmethod
    def from_flag(cls, flag: int) -> "TextEncoding":
        return cls.SHIFT_JIS if flag == 0 else cls.UTF8

    @property
    def codec(self) -> str:
        return self.value

    def decode(self, raw: bytes) -> str:
        # surrogateescape keeps undecodable bytes intact for re-encoding
        return raw.decode(self.codec, errors="surrogateescape")

    def encode(self, text: str) -> bytes:
        return text.encode(self.codec, errors="surrogateescape")


# ──────────────────────────────────────────────────────────────
# Entry names
# ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ResolvedName:
    """An entry name found in the key table or an extra name source."""

    text: str

    @property
    def display(self) -> str:
        return self.text


@dataclass(frozen=True)
class UnresolvedName:
    """An entry whose CRC32 has no known name. Still round-trips."""

    crc32: int

    @property
    def display(self) -> str:
        return f"0x{self.crc32:08X}"


EntryName = Union[ResolvedName, UnresolvedName]


# ──────────────────────────────────────────────────────────────
# Variables and entries
# ──────────────────────────────────────────────────────────────


@dataclass
class Variable:
    """One typed 4-byte slot of an entry.

    Non-string payloads are kept as the raw u32 word so ints, floats and
    unknown values are written back bit-for-bit. String slots carry the
    decoded text (None for the -1 null reference), the offset they were
    read with and the table bytes behind it. Shift-JIS maps several byte
    sequences to one character, so unedited text is written back from
    those bytes rather than re-encoded.
    """

    var_type: VariableType
    word: int = 0
    text: Optional[str] = None
    address: Optional[int] = None  # absolute file offset of the payload
    raw: Optional[bytes] = None  # string-table bytes as read, no terminator

    @classmethod
    def of_string(cls, text: Optional[str]) -> "Variable":
        return cls(VariableType.STRING, word=NULL_OFFSET & 0xFFFFFFFF, text=text)

    @classmethod
    def of_int(cls, value: int) -> "Variable":
        return cls(VariableType.INT, word=value & 0xFFFFFFFF)

    @classmethod
    def of_float(cls, value: float) -> "Variable":
        return cls(VariableType.FLOAT, word=struct.unpack("<I", struct.pack("<f", value))[0])

    @classmethod
    def of_unknown(cls, raw: int) -> "Variable":
        return cls(VariableType.UNKNOWN, word=raw & 0xFFFFFFFF)

    @property
    def is_string(self) -> bool:
        return self.var_type == VariableType.STRING

    @property
    def offset(self) -> int:
        """String-table offset as read from the file (-1 = null)."""
        return struct.unpack("<i", struct.pack("<I", self.word))[0]

    def text_unchanged(self, encoding: TextEncoding) -> bool:
        """True while the text still equals what was decoded from the file."""
        return (
            self.raw is not None
            and self.text is not None
            and encoding.decode(self.raw) == self.text
        )

    def encoded_text(self, encoding: TextEncoding) -> Optional[bytes]:
        """Bytes to store for this string, or None for a null reference."""
        if self.text is None:
            return None
        if self.text_unchanged(encoding):
            return self.raw
        return encoding.encode(self.text)

    @property
    def value(self):
        if self.var_type == VariableType.STRING:
            return self.text
        if self.var_type == VariableType.FLOAT:
            return struct.unpack("<f", struct.pack("<I", self.word))[0]
        return struct.unpack("<i", struct.pack("<I", self.word))[0]


@dataclass
class Entry:
    """A typed record: CRC32 name hash plus its variables.

    type_descriptor holds the packed 2-bit codes and the 0xFF padding that
    follows them exactly as read, so unused bits survive re-encoding.
    """

    crc32: int
    name: EntryName
    variables: List[Variable] = field(default_factory=list)
    type_descriptor: bytes = b""
    offset: Optional[int] = None  # absolute file offset of the record

    @property
    def name_text(self) -> Optional[str]:
        if isinstance(self.name, ResolvedName):
            return self.name.text
        return None

    @property
    def display_name(self) -> str:
        return self.name.display

    @property
    def scope(self) -> Optional[str]:
        """'begin', 'end' or None, derived from the name suffix."""
        text = self.name_text
        if text is None:
            return None
        upper = text.upper()
        if upper.endswith("_PTREE"):
            return "end"
        if upper.endswith(_END_SUFFIXES):
            return "end"
        if upper.endswith(_BEGIN_SUFFIXES):
            return "begin"
        return None

    @property
    def is_end_marker(self) -> bool:
        return self.scope == "end" and not self.variables

    def string_variables(self) -> Iterator[Tuple[int, Variable]]:
        for index, var in enumerate(self.variables):
            if var.is_string:
                yield index, var


def annotate_depth(entries: List[Entry]) -> Iterator[Tuple[int, Entry]]:
    """Yield (depth, entry) pairs for display.

    Begin entries sit at the depth they open; end entries sit at the depth
    they close back to. Unbalanced ends clamp at 0.
    """
    depth = 0
    for entry in entries:
        scope = entry.scope
        if scope == "end":
            depth = max(0, depth - 1)
            yield depth, entry
        elif scope == "begin":
            yield depth, entry
            depth += 1
        else:
            yield depth, entry


# ──────────────────────────────────────────────────────────────
# Header / footer
# ──────────────────────────────────────────────────────────────


@dataclass
class Header:
    entry_count: int = 0
    string_table_offset: int = 0
    string_table_length: int = 0
    string_table_count: int = 0


@dataclass
class Footer:
    """Trailing marker: magic, 0xFE marker, version, encoding flag, trailer."""

    magic: int = FOOTER_MAGIC
    marker: int = 0xFE
    version: int = 0x01
    encoding_flag: int = 1
    trailer: bytes = b"\x00\x01\x00"

    @property
    def encoding(self) -> TextEncoding:
        return TextEncoding.from_flag(self.encoding_flag)


# ──────────────────────────────────────────────────────────────
# Text fields
# ──────────────────────────────────────────────────────────────


@dataclass
class TextField:
    """A view of one non-null String variable, produced per extraction pass.

    Standard mode matches edits by sequence_index, NNK mode by
    absolute_address (the file offset of the 4-byte reference itself).
    """

    sequence_index: int
    absolute_address: int
    entry_name: Optional[str]
    variable_index: int
    value: str
    entry_index: int = 0
