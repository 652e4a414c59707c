"""CRC32 -> name key table codec.

Key table layout (offsets relative to the table start):
  [4B key_length   total table size including padding]
  [4B key_count]
  [4B key_string_offset]
  [4B key_string_length   name pool size before padding]
  [key_count × (4B crc32 + 4B offset into name pool)]  0xFF-padded to 16
  [name pool: null-terminated names]                    0xFF-padded to 16
"""

from typing import Dict, Iterable, List, Optional, Tuple

from services.cfgbin_editor.byte_cursor import ByteCursor
from services.cfgbin_editor.crc32 import name_crc32
from services.cfgbin_editor.errors import MalformedHeader, OutOfBounds
from services.cfgbin_editor.models import (
    PAD_BYTE,
    SECTION_ALIGNMENT,
    Entry,
    EntryName,
    ResolvedName,
    TextEncoding,
    UnresolvedName,
)

KEY_HEADER_SIZE = 0x10


class KeyTable:
    """Ordered (crc32, name) records with first-wins lookup by CRC32."""

    def __init__(self, records: Optional[Iterable[Tuple[int, str]]] = None):
        self.records: List[Tuple[int, str]] = []
        self._by_crc: Dict[int, str] = {}
        for crc, name in records or ():
            self._append(crc, name)

    def _append(self, crc: int, name: str):
        self.records.append((crc, name))
        self._by_crc.setdefault(crc, name)

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, crc: int) -> bool:
        return crc in self._by_crc

    def resolve(self, crc: int) -> Optional[str]:
        return self._by_crc.get(crc)

    def add(self, name: str, encoding: TextEncoding) -> int:
        """Register a name, returning its CRC32. Existing CRCs are left alone."""
        crc = name_crc32(name, encoding.codec)
        if crc not in self:
            self._append(crc, name)
        return crc

    # ── decoding ──

    @classmethod
    def decode(cls, cursor: ByteCursor, encoding: TextEncoding) -> "KeyTable":
        """Read a key table at the cursor; leaves the cursor just past it."""
        start = cursor.tell()
        key_length = cursor.read_u32()
        key_count = cursor.read_u32()
        key_string_offset = cursor.read_u32()
        key_string_length = cursor.read_u32()

        if key_length < KEY_HEADER_SIZE or start + key_length > len(cursor):
            raise MalformedHeader(
                f"Key table length 0x{key_length:X} at 0x{start:X} exceeds file"
            )

        pairs = []
        for _ in range(key_count):
            crc = cursor.read_u32()
            string_offset = cursor.read_u32()
            pairs.append((crc, string_offset))

        pool_start = start + key_string_offset
        pool_end = pool_start + key_string_length
        if pool_end > len(cursor):
            raise OutOfBounds(pool_start, key_string_length, len(cursor))

        table = cls()
        for crc, string_offset in pairs:
            if string_offset >= key_string_length:
                raise OutOfBounds(pool_start + string_offset, 1, pool_end)
            cursor.seek(pool_start + string_offset)
            table._append(crc, encoding.decode(cursor.read_cstring(pool_end)))

        cursor.seek(start + key_length)
        return table

    # ── encoding ──

    def encode(
        self,
        cursor: ByteCursor,
        records: List[Tuple[int, str]],
        encoding: TextEncoding,
    ) -> int:
        """Write the given records as a key table. Returns the table length."""
        start = cursor.tell()
        cursor.write(b"\x00" * KEY_HEADER_SIZE)

        pool = []
        string_offset = 0
        for crc, name in records:
            raw = encoding.encode(name)
            cursor.write_u32(crc)
            cursor.write_u32(string_offset)
            pool.append(raw)
            string_offset += len(raw) + 1
        cursor.align_to(SECTION_ALIGNMENT, PAD_BYTE)

        key_string_offset = cursor.tell() - start
        for raw in pool:
            cursor.write_cstring(raw)
        key_string_length = cursor.tell() - start - key_string_offset
        cursor.align_to(SECTION_ALIGNMENT, PAD_BYTE)

        key_length = cursor.tell() - start
        cursor.patch_u32(start, key_length)
        cursor.patch_u32(start + 4, len(records))
        cursor.patch_u32(start + 8, key_string_offset)
        cursor.patch_u32(start + 12, key_string_length)
        return key_length

    def records_for(self, entries: List[Entry]) -> List[Tuple[int, str]]:
        """Records in the order entries first reference them.

        CRC32s the table does not know are skipped rather than invented.
        Records no entry references follow in their original order.
        """
        ordered = []
        seen = set()
        for entry in entries:
            if entry.crc32 in seen or entry.crc32 not in self:
                continue
            seen.add(entry.crc32)
            ordered.append((entry.crc32, self._by_crc[entry.crc32]))

        emitted = set(ordered)
        for record in self.records:
            if record not in emitted:
                ordered.append(record)
                emitted.add(record)
        return ordered


class NameResolver:
    """Resolves entry CRC32s against the key table, then extra known names."""

    def __init__(
        self,
        key_table: KeyTable,
        extra_names: Optional[Iterable[str]] = None,
        encoding: TextEncoding = TextEncoding.UTF8,
    ):
        self.key_table = key_table
        self.extra: Dict[int, str] = {}
        for name in extra_names or ():
            self.extra.setdefault(name_crc32(name, encoding.codec), name)

    def resolve(self, crc: int) -> EntryName:
        name = self.key_table.resolve(crc)
        if name is None:
            name = self.extra.get(crc)
        if name is None:
            return UnresolvedName(crc)
        return ResolvedName(name)
