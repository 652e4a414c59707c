"""In-memory cfg.bin container: decode and full-rebuild (standard) encode.

The footer sits after the key table, whose position follows from the
string table's offset and length, so it is located first to learn the text
encoding before any string or name is decoded.
"""

from typing import Iterable, List, Optional

from services.cfgbin_editor.byte_cursor import ByteCursor, round_up
from services.cfgbin_editor.entry_codec import decode_entries, encode_entries, pack_types
from services.cfgbin_editor.errors import MalformedHeader, OutOfBounds
from services.cfgbin_editor.footer import decode_footer, encode_footer
from services.cfgbin_editor.key_table import KeyTable, NameResolver
from services.cfgbin_editor.models import (
    HEADER_SIZE,
    PAD_BYTE,
    SECTION_ALIGNMENT,
    Entry,
    Footer,
    Header,
    ResolvedName,
    TextEncoding,
    UnresolvedName,
    Variable,
)
from services.cfgbin_editor.string_table import StringTable, StringTableBuilder


def _read_header(cursor: ByteCursor) -> Header:
    return Header(
        entry_count=cursor.read_u32(),
        string_table_offset=cursor.read_u32(),
        string_table_length=cursor.read_u32(),
        string_table_count=cursor.read_u32(),
    )


class Container:
    """Owns the entries, string table and key table of one cfg.bin.

    A decoded container keeps the source buffer so the address patcher can
    copy everything outside the string table verbatim.
    """

    def __init__(
        self,
        entries: Optional[List[Entry]] = None,
        key_table: Optional[KeyTable] = None,
        footer: Optional[Footer] = None,
        header: Optional[Header] = None,
        strings: Optional[StringTable] = None,
        source: Optional[bytes] = None,
    ):
        self.entries: List[Entry] = entries if entries is not None else []
        self.key_table = key_table if key_table is not None else KeyTable()
        self.footer = footer if footer is not None else Footer()
        self.header = header if header is not None else Header()
        self.strings = strings
        self.source = source

    @property
    def encoding(self) -> TextEncoding:
        return self.footer.encoding

    @property
    def key_table_offset(self) -> int:
        """Key table offset in the source buffer."""
        return round_up(
            self.header.string_table_offset + self.header.string_table_length,
            SECTION_ALIGNMENT,
        )

    @property
    def unresolved(self) -> List[int]:
        """Distinct CRC32s of entries whose names could not be resolved."""
        seen = []
        for entry in self.entries:
            if isinstance(entry.name, UnresolvedName) and entry.crc32 not in seen:
                seen.append(entry.crc32)
        return seen

    # ── decoding ──

    @classmethod
    def decode(cls, data: bytes, extra_names: Optional[Iterable[str]] = None) -> "Container":
        """Parse a cfg.bin buffer.

        Args:
            data: The whole file
            extra_names: Additional names tried for CRC32s the key table lacks

        Raises:
            MalformedHeader: Structure offsets are inconsistent
            InvalidFooter: The footer magic is missing
            OutOfBounds: A section runs past the end of the buffer
        """
        if len(data) < HEADER_SIZE:
            raise MalformedHeader(f"File is {len(data)} bytes, smaller than the header")

        cursor = ByteCursor(data)
        header = _read_header(cursor)
        if (
            header.string_table_offset < HEADER_SIZE
            or header.string_table_offset + header.string_table_length > len(data)
        ):
            raise MalformedHeader(
                f"String table 0x{header.string_table_offset:X}+0x{header.string_table_length:X} "
                f"outside file of 0x{len(data):X} bytes"
            )

        key_offset = round_up(
            header.string_table_offset + header.string_table_length, SECTION_ALIGNMENT
        )
        try:
            cursor.seek(key_offset)
            key_length = cursor.read_u32()
            cursor.seek(key_offset + key_length)
        except OutOfBounds as e:
            raise MalformedHeader(f"Key table at 0x{key_offset:X} is truncated") from e
        footer = decode_footer(cursor)
        encoding = footer.encoding

        strings = StringTable.decode(cursor, header, encoding)

        cursor.seek(key_offset)
        key_table = KeyTable.decode(cursor, encoding)

        resolver = NameResolver(key_table, extra_names, encoding)
        cursor.seek(HEADER_SIZE)
        entries = decode_entries(cursor, header, strings, resolver)

        return cls(
            entries=entries,
            key_table=key_table,
            footer=footer,
            header=header,
            strings=strings,
            source=bytes(data),
        )

    # ── building ──

    def add_key(self, name: str) -> int:
        """Register an entry name in the key table and return its CRC32."""
        return self.key_table.add(name, self.encoding)

    def create_entry(self, name: str, variables: Optional[List[Variable]] = None) -> Entry:
        """Append a new entry with a registered name."""
        variables = variables or []
        entry = Entry(
            crc32=self.add_key(name),
            name=ResolvedName(name),
            variables=variables,
            type_descriptor=pack_types([var.var_type for var in variables]),
        )
        self.entries.append(entry)
        return entry

    def create_end_entry(self, name: str) -> Entry:
        """Append a scope end marker (no parameters, 00 FF FF FF)."""
        return self.create_entry(name)

    # ── encoding ──

    def encode_standard(self) -> bytes:
        """Rebuild the whole file from the current entries.

        The string table is rebuilt in first-occurrence order. Unedited
        strings keep the bytes they were read with, so a container decoded
        from a well-formed file and left unedited encodes back to identical
        bytes.
        """
        encoding = self.encoding
        builder = StringTableBuilder.from_entries(self.entries, encoding)

        cursor = ByteCursor()
        cursor.write(b"\x00" * HEADER_SIZE)

        encode_entries(
            cursor, self.entries, lambda var: builder.offset_of(var.encoded_text(encoding))
        )
        cursor.align_to(SECTION_ALIGNMENT, PAD_BYTE)
        string_table_offset = cursor.tell()

        builder.write(cursor)

        self.key_table.encode(cursor, self.key_table.records_for(self.entries), encoding)
        encode_footer(cursor, self.footer)

        cursor.patch_u32(0, len(self.entries))
        cursor.patch_u32(4, string_table_offset)
        cursor.patch_u32(8, builder.length)
        cursor.patch_u32(12, builder.count)
        return cursor.getvalue()
