"""String table: decoded pool lookups and the deduplicating builder."""

from typing import Dict, Iterable, Optional

from services.cfgbin_editor.byte_cursor import ByteCursor
from services.cfgbin_editor.errors import OutOfBounds
from services.cfgbin_editor.models import (
    NULL_OFFSET,
    PAD_BYTE,
    SECTION_ALIGNMENT,
    Entry,
    Header,
    TextEncoding,
)


class StringTable:
    """The string pool as read from a file.

    Lookups go by byte offset, so references into the middle of a string
    (suffix sharing) still resolve.
    """

    def __init__(self, raw: bytes, encoding: TextEncoding, count: int = 0):
        self.raw = raw
        self.encoding = encoding
        self.count = count

    @classmethod
    def decode(cls, cursor: ByteCursor, header: Header, encoding: TextEncoding) -> "StringTable":
        cursor.seek(header.string_table_offset)
        raw = cursor.read(header.string_table_length)
        return cls(raw, encoding, header.string_table_count)

    def raw_at(self, offset: int) -> bytes:
        """Bytes from offset up to (not including) the next terminator."""
        if offset < 0 or offset >= len(self.raw):
            raise OutOfBounds(offset, 1, len(self.raw))
        end = self.raw.find(b"\x00", offset)
        if end < 0:
            end = len(self.raw)
        return self.raw[offset:end]


class StringTableBuilder:
    """Assigns offsets to distinct strings in first-occurrence order.

    Strings are keyed by their stored bytes (see Variable.encoded_text).
    Null text has no slot and maps to the -1 sentinel.
    """

    def __init__(self, encoding: TextEncoding):
        self.encoding = encoding
        self._offsets: Dict[bytes, int] = {}
        self._pool = bytearray()
        self.count = 0

    @classmethod
    def from_entries(cls, entries: Iterable[Entry], encoding: TextEncoding) -> "StringTableBuilder":
        builder = cls(encoding)
        for entry in entries:
            for _, var in entry.string_variables():
                builder.add(var.encoded_text(encoding))
        return builder

    @classmethod
    def from_table(cls, table: StringTable) -> "StringTableBuilder":
        """Start from an existing pool, keeping every string at its offset.

        New strings are appended after it and reuse any existing slot
        with the same bytes.
        """
        builder = cls(table.encoding)
        builder._pool = bytearray(table.raw)
        builder.count = table.count
        pos = 0
        while pos < len(table.raw):
            end = table.raw.find(b"\x00", pos)
            if end < 0:
                end = len(table.raw)
            builder._offsets.setdefault(bytes(table.raw[pos:end]), pos)
            pos = end + 1
        return builder

    @property
    def length(self) -> int:
        return len(self._pool)

    def add(self, raw: Optional[bytes]) -> int:
        if raw is None:
            return NULL_OFFSET
        offset = self._offsets.get(raw)
        if offset is None:
            if self._pool and self._pool[-1] != 0:
                # Seeded pool ended without a terminator
                self._pool.append(0)
            offset = len(self._pool)
            self._offsets[raw] = offset
            self._pool += raw + b"\x00"
            self.count += 1
        return offset

    def offset_of(self, raw: Optional[bytes]) -> int:
        if raw is None:
            return NULL_OFFSET
        return self._offsets[raw]

    def serialize(self) -> bytes:
        """Null-terminated strings back to back, without trailing padding."""
        return bytes(self._pool)

    def write(self, cursor: ByteCursor):
        """Write the pool and pad it to the section alignment. Empty pools write nothing."""
        if not self._pool:
            return
        cursor.write(self.serialize())
        cursor.align_to(SECTION_ALIGNMENT, PAD_BYTE)
