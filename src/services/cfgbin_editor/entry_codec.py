"""Entry list codec.

Entry record layout:
  [4B crc32 of the entry name]
  [1B param_count]
  [ceil(param_count / 4) bytes of 2-bit type codes, 4 per byte, LSB first]
  [0xFF padding to a 4-byte boundary]
  [param_count × 4B payload]

An entry with no parameters (scope end markers) is therefore
crc32 + 00 FF FF FF.
"""

from typing import Callable, List

from services.cfgbin_editor.byte_cursor import ByteCursor, round_up
from services.cfgbin_editor.errors import MalformedHeader
from services.cfgbin_editor.key_table import NameResolver
from services.cfgbin_editor.models import (
    ENTRY_ALIGNMENT,
    NULL_OFFSET,
    PAD_BYTE,
    Entry,
    Header,
    Variable,
    VariableType,
)
from services.cfgbin_editor.string_table import StringTable


def _descriptor_length(param_count: int) -> int:
    """Bytes taken by the type codes plus the padding after them."""
    # crc32 (4) + param_count (1) + codes must land on a 4-byte boundary
    return round_up(5 + (param_count + 3) // 4, ENTRY_ALIGNMENT) - 5


def unpack_types(descriptor: bytes, param_count: int) -> List[VariableType]:
    types = []
    for i in range(param_count):
        code = (descriptor[i // 4] >> ((i % 4) * 2)) & 0x3
        types.append(VariableType(code))
    return types


def pack_types(types: List[VariableType]) -> bytes:
    """Pack type codes and pad them with 0xFF to the entry alignment."""
    codes = bytearray((len(types) + 3) // 4)
    for i, var_type in enumerate(types):
        codes[i // 4] |= var_type.value << ((i % 4) * 2)
    padding = _descriptor_length(len(types)) - len(codes)
    return bytes(codes) + bytes([PAD_BYTE]) * padding


def descriptor_for(entry: Entry) -> bytes:
    """The descriptor bytes to write for an entry.

    The bytes read at decode time are reused verbatim while they still
    describe the entry's variables; otherwise the codes are repacked.
    """
    types = [var.var_type for var in entry.variables]
    raw = entry.type_descriptor
    if len(raw) == _descriptor_length(len(types)) and unpack_types(raw, len(types)) == types:
        return raw
    return pack_types(types)


# ──────────────────────────────────────────────────────────────
# Decoding
# ──────────────────────────────────────────────────────────────


def decode_entry(
    cursor: ByteCursor,
    strings: StringTable,
    resolver: NameResolver,
) -> Entry:
    offset = cursor.tell()
    crc = cursor.read_u32()
    param_count = cursor.read_u8()
    codes = cursor.read((param_count + 3) // 4)
    padding = cursor.read(round_up(cursor.tell(), ENTRY_ALIGNMENT) - cursor.tell())
    types = unpack_types(codes, param_count)

    variables = []
    for var_type in types:
        address = cursor.tell()
        word = cursor.read_u32()
        var = Variable(var_type, word=word, address=address)
        if var_type == VariableType.STRING and var.offset != NULL_OFFSET:
            var.raw = strings.raw_at(var.offset)
            var.text = strings.encoding.decode(var.raw)
        variables.append(var)

    return Entry(
        crc32=crc,
        name=resolver.resolve(crc),
        variables=variables,
        type_descriptor=codes + padding,
        offset=offset,
    )


def decode_entries(
    cursor: ByteCursor,
    header: Header,
    strings: StringTable,
    resolver: NameResolver,
) -> List[Entry]:
    """Read header.entry_count entries starting at the cursor.

    The entry region ends at string_table_offset; anything between the
    last entry and that offset is alignment padding.
    """
    entries = []
    while len(entries) < header.entry_count:
        if cursor.tell() >= header.string_table_offset:
            raise MalformedHeader(
                f"Entry region ends at 0x{header.string_table_offset:X} after "
                f"{len(entries)} of {header.entry_count} entries"
            )
        entries.append(decode_entry(cursor, strings, resolver))

    if cursor.tell() > header.string_table_offset:
        raise MalformedHeader(
            f"Last entry overruns the string table offset 0x{header.string_table_offset:X}"
        )
    return entries


# ──────────────────────────────────────────────────────────────
# Encoding
# ──────────────────────────────────────────────────────────────


def encode_entry(
    cursor: ByteCursor,
    entry: Entry,
    offset_for: Callable[[Variable], int],
):
    """Write one entry; offset_for maps a String variable to its table offset."""
    cursor.write_u32(entry.crc32)
    cursor.write_u8(len(entry.variables))
    cursor.write(descriptor_for(entry))
    for var in entry.variables:
        if var.is_string:
            cursor.write_i32(offset_for(var))
        else:
            cursor.write_u32(var.word)


def encode_entries(
    cursor: ByteCursor,
    entries: List[Entry],
    offset_for: Callable[[Variable], int],
):
    for entry in entries:
        encode_entry(cursor, entry, offset_for)
